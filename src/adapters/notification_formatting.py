"""Shared notification formatting helpers.

Keeping formatting here prevents drift between adapters and keeps messages
consistent regardless of delivery channel.
"""

from __future__ import annotations

import html
from typing import Optional
from urllib.parse import quote

from core.models import Card, OutgoingMessage

SHARE_BUTTON_LABEL = "Share"
# Telegram photo captions are capped at 1024 characters.
CAPTION_LIMIT = 1024


def share_url(url: str, text: Optional[str] = None) -> str:
    """Return a t.me share link that lets the user forward the article."""

    link = f"https://t.me/share/url?url={quote(url, safe='')}"
    if text:
        link += f"&text={quote(text, safe='')}"
    return link


def _clip(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    if limit <= 0:
        return ""
    return value[: limit - 1].rstrip() + "…"


def format_card_html(card: Card, limit: Optional[int] = None) -> str:
    """Create the HTML body for a card: bold title, then the description.

    Telegram counts limits on the parsed text, so clipping is measured on the
    raw title and description, before escaping.
    """

    label = card.label
    description = card.text or ""
    if limit is not None:
        label = _clip(label, limit)
        description = _clip(description, max(limit - len(label) - 2, 0)) if description else ""
    parts = [f"<b>{html.escape(label)}</b>"]
    if description:
        parts.extend(["", html.escape(description)])
    return "\n".join(parts)


def format_text(message: OutgoingMessage) -> str:
    """Return the HTML text of a message (plain alert or card body)."""

    if message.card is not None:
        return format_card_html(message.card)
    return html.escape(message.text or "")


def build_inline_keyboard(message: OutgoingMessage) -> list[list[dict]]:
    """Return Bot API inline keyboard rows for a message.

    Card buttons become url buttons (plus a Share button when the card is
    shareable); reply options become one row of callback buttons carrying the
    option label as callback data.
    """

    rows: list[list[dict]] = []
    card = message.card
    if card is not None:
        for button in card.buttons:
            row = [{"text": button.label, "url": button.url}]
            if card.sharing and button.sharing:
                row.append({"text": SHARE_BUTTON_LABEL, "url": share_url(button.url, card.label)})
            rows.append(row)
    if message.options:
        # Telegram caps callback_data at 64 bytes.
        rows.append(
            [
                {"text": option, "callback_data": option.encode("utf-8")[:64].decode("utf-8", "ignore")}
                for option in message.options
            ]
        )
    return rows
