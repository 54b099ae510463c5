"""Telethon delivery adapter.

Sends the same HTML messages as the Bot API adapter through an MTProto client
logged in as the bot.
"""

from __future__ import annotations

from telethon import Button, errors

from adapters.notification_formatting import (
    CAPTION_LIMIT,
    build_inline_keyboard,
    format_card_html,
    format_text,
)
from core.errors import DeliveryError
from core.models import OutgoingMessage, User


def _to_buttons(message: OutgoingMessage) -> list[list]:
    rows = []
    for row in build_inline_keyboard(message):
        buttons = []
        for spec in row:
            if "url" in spec:
                buttons.append(Button.url(spec["text"], spec["url"]))
            else:
                buttons.append(Button.inline(spec["text"], data=spec["callback_data"].encode("utf-8")))
        rows.append(buttons)
    return rows


def _entity(user: User):
    # Telegram user ids are numeric; keep usernames or other peers as-is.
    try:
        return int(user.id)
    except ValueError:
        return user.id


class TelethonSender:
    """Sender adapter that delivers messages with a Telethon client."""

    def __init__(self, client) -> None:
        self._client = client

    async def send_message(self, user: User, message: OutgoingMessage) -> None:
        """Send one message to the user's chat."""

        buttons = _to_buttons(message) or None
        card = message.card
        try:
            if card is not None and card.image_url:
                await self._client.send_file(
                    _entity(user),
                    card.image_url,
                    caption=format_card_html(card, limit=CAPTION_LIMIT),
                    parse_mode="html",
                    buttons=buttons,
                )
                return
            await self._client.send_message(
                _entity(user),
                format_text(message),
                parse_mode="html",
                buttons=buttons,
                link_preview=False,
            )
        except (errors.RPCError, ConnectionError) as e:
            raise DeliveryError(f"Telegram delivery to {user.id} failed: {e}") from e
