"""Telethon bot session for the "telethon" notification method.

The session is opened once per process and closed by the caller, so the
client's lifetime is the lifetime of one `run` or `once` command.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient

LOGGER = logging.getLogger(__name__)

REQUIRED_ENV = ("API_ID", "API_HASH")


def _session_settings() -> tuple[str, int, str]:
    load_dotenv()
    missing = [name for name in REQUIRED_ENV if not os.getenv(name)]
    if missing:
        raise RuntimeError(f"Missing {', '.join(missing)} in environment (needed for notification_method=telethon)")
    api_id = os.environ["API_ID"]
    if not api_id.isdigit():
        raise RuntimeError("API_ID must be numeric")
    return os.getenv("SESSION_NAME", "newsflash"), int(api_id), os.environ["API_HASH"]


async def connect_bot(bot_token: str) -> TelegramClient:
    """Return a Telethon client logged in as the bot behind ``bot_token``.

    MTProto still needs an application's API_ID/API_HASH even for bots; the
    bot token replaces the interactive phone login.
    """

    session_name, api_id, api_hash = _session_settings()
    LOGGER.info("Connecting Telethon session %s as bot", session_name)
    client = TelegramClient(session_name, api_id, api_hash)
    await client.start(bot_token=bot_token)
    return client
