"""Application entry point for the newsflash breaking news notifier."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_bot_sender import TelegramBotSender
from adapters.telegram_sender import TelethonSender
from client import connect_bot
from core.config import DeliveryConfig, ScheduleConfig
from core.dispatcher import BatchDispatcher
from core.models import ARTICLE_COLLECTION, QUEUE_COLLECTION, USER_COLLECTION
from core.orchestrator import BreakingNewsOrchestrator
from core.selector import CandidateSelector
from importer import import_records

NAME = "NEWSFLASH"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


# Secrets the process itself reads; their values never reach a log line.
ALWAYS_REDACTED = ("BOT_API", "API_HASH")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _RedactingFormatter(logging.Formatter):
    """Mask secret values in the message and in any formatted traceback.

    The Bot API URL embeds the token, so an urllib traceback would otherwise
    leak it.
    """

    def __init__(self, secrets: list[str]) -> None:
        super().__init__(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
        # Longest first so a secret containing another is masked whole.
        self._secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        for secret in self._secrets:
            text = text.replace(secret, "***")
        return text


def _redaction_values(config: dict) -> list[str]:
    names = list(ALWAYS_REDACTED)
    redact_cfg = config.get("redact", {})
    if redact_cfg.get("enabled", True):
        names.extend(redact_cfg.get("patterns", []))
    return [os.environ[name] for name in names if os.getenv(name)]


def _file_handler(file_cfg: dict) -> RotatingFileHandler:
    path = file_cfg.get("path", "logs/newsflash.log")
    if not os.path.isabs(path):
        path = os.path.join(settings.PROJECT_ROOT, path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_cfg.get("backup_count", 5)),
        encoding="utf-8",
    )


def _configure_logging(config: Optional[dict] = None) -> None:
    """Install console and rotating-file handlers from the ``logging`` section."""

    config = settings.LOGGING if config is None else config
    if not config or not config.get("enabled", False):
        return

    load_dotenv()
    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)
    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())
    if config.get("file", {}).get("enabled", False):
        handlers.append(_file_handler(config["file"]))
    if not handlers:
        return

    formatter = _RedactingFormatter(_redaction_values(config))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers, force=True)


def _delivery_config() -> DeliveryConfig:
    if not settings.READ_SERVER_BASE_URL:
        raise RuntimeError("delivery.read_server_base_url is required")
    return DeliveryConfig(
        read_server_base_url=settings.READ_SERVER_BASE_URL,
        batch_size=settings.BATCH_SIZE,
        batch_delay_seconds=settings.BATCH_DELAY_SECONDS,
        alert_text=settings.ALERT_TEXT,
    )


def _open_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    return storage


async def _build_sender():
    """Select the delivery adapter; return (sender, client or None)."""

    load_dotenv()
    bot_token = os.getenv("BOT_API")
    if not bot_token:
        raise RuntimeError("BOT_API is required to deliver breaking news")

    # Select the delivery adapter based on configuration to keep the core
    # independent from channel details.
    if settings.NOTIFICATION_METHOD == "bot":
        sender = TelegramBotSender(bot_token, timeout=settings.SEND_TIMEOUT_SECONDS)
        client = None
    elif settings.NOTIFICATION_METHOD == "telethon":
        client = await connect_bot(bot_token)
        sender = TelethonSender(client)
    else:
        raise RuntimeError("notification_method must be 'bot' or 'telethon'")
    LOGGER.info("Selected notification method - %s", settings.NOTIFICATION_METHOD)
    return sender, client


def _build_orchestrator(storage: SQLiteStorage, sender) -> BreakingNewsOrchestrator:
    config = _delivery_config()
    return BreakingNewsOrchestrator(
        selector=CandidateSelector(storage, config),
        dispatcher=BatchDispatcher(storage, sender, config),
    )


async def _run_pass(orchestrator: BreakingNewsOrchestrator) -> None:
    try:
        await orchestrator.send_outstanding()
    except Exception:
        # The next tick retries; anything left in the queue goes out first.
        LOGGER.exception("Breaking news pass failed")


async def _schedule_loop(orchestrator: BreakingNewsOrchestrator, schedule: ScheduleConfig) -> None:
    """Start a pass every ``run_every_seconds``; overlapping passes are skipped."""

    running: set[asyncio.Task] = set()
    while True:
        task = asyncio.create_task(_run_pass(orchestrator))
        running.add(task)
        task.add_done_callback(running.discard)
        await asyncio.sleep(schedule.run_every_seconds)


async def _serve(loop_forever: bool) -> None:
    storage = _open_storage()
    sender, client = await _build_sender()
    orchestrator = _build_orchestrator(storage, sender)
    try:
        if loop_forever:
            schedule = ScheduleConfig(run_every_seconds=settings.RUN_EVERY_SECONDS)
            LOGGER.info("Running breaking news pass every %ss", schedule.run_every_seconds)
            await _schedule_loop(orchestrator, schedule)
        else:
            await orchestrator.send_outstanding()
            LOGGER.info("Breaking news pass complete")
    finally:
        if client is not None:
            await client.disconnect()


def _run() -> None:
    _print_banner()
    _configure_logging()
    LOGGER.info("Starting newsflash")
    try:
        asyncio.run(_serve(loop_forever=True))
    except KeyboardInterrupt:
        LOGGER.info("Stopped")


def _once() -> None:
    _configure_logging()
    asyncio.run(_serve(loop_forever=False))


def _status() -> None:
    storage = _open_storage()
    print(f"users: {storage.count(USER_COLLECTION)}")
    print(f"articles: {storage.count(ARTICLE_COLLECTION)}")
    print(f"queued: {storage.count(QUEUE_COLLECTION)}")


def _import(path: str) -> None:
    _configure_logging()
    with open(path, "r", encoding="utf-8") as handle:
        payload = json.load(handle)
    users, articles = import_records(_open_storage(), payload)
    LOGGER.info("Imported %s users and %s articles from %s", users, articles, path)
    print(f"Imported {users} users and {articles} articles")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="newsflash")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Run the breaking news pass on a schedule")
    subparsers.add_parser("once", help="Run a single breaking news pass and exit")
    subparsers.add_parser("status", help="Show user, article and queue counts")
    import_parser = subparsers.add_parser("import", help="Import users and articles from JSON")
    import_parser.add_argument("path", help="JSON file with 'users' and 'articles' lists")

    args = parser.parse_args(argv)
    if args.command == "once":
        _once()
        return
    if args.command == "status":
        _status()
        return
    if args.command == "import":
        _import(args.path)
        return
    _run()


if __name__ == "__main__":
    main()
