"""Telegram Bot API delivery adapter.

Uses the Bot API for delivery so breaking news reaches users through a bot
chat. Alerts go out with sendMessage; cards with an image use sendPhoto.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.request
from typing import Any

from adapters.notification_formatting import (
    CAPTION_LIMIT,
    build_inline_keyboard,
    format_card_html,
    format_text,
)
from core.errors import DeliveryError
from core.models import OutgoingMessage, User

LOGGER = logging.getLogger(__name__)


class TelegramBotSender:
    """Sender adapter that delivers messages via the Telegram Bot API."""

    def __init__(self, bot_token: str, timeout: float = 10.0) -> None:
        self._bot_token = bot_token
        self._timeout = timeout

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._bot_token}/{method}"

    def build_request(self, user: User, message: OutgoingMessage) -> tuple[str, dict[str, Any]]:
        """Return the (Bot API method, payload) pair for one message."""

        payload: dict[str, Any] = {"chat_id": user.id, "parse_mode": "HTML"}
        keyboard = build_inline_keyboard(message)
        if keyboard:
            payload["reply_markup"] = {"inline_keyboard": keyboard}

        card = message.card
        if card is not None and card.image_url:
            payload["photo"] = card.image_url
            payload["caption"] = format_card_html(card, limit=CAPTION_LIMIT)
            return "sendPhoto", payload

        payload["text"] = format_text(message)
        payload["disable_web_page_preview"] = True
        return "sendMessage", payload

    def _post(self, method: str, payload: dict[str, Any]) -> None:
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._endpoint(method), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                body = json.loads(response.read().decode("utf-8") or "{}")
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise DeliveryError(f"Bot API error {e.code}: {body}") from e
        except urllib.error.URLError as e:
            raise DeliveryError(f"Bot API unreachable: {e.reason}") from e
        except TimeoutError as e:
            raise DeliveryError(f"Bot API timed out after {self._timeout}s") from e
        except ValueError as e:
            # Covers a body that is not JSON or not UTF-8.
            raise DeliveryError(f"Bot API returned an unreadable response to {method}") from e
        if not body.get("ok", False):
            raise DeliveryError(f"Bot API rejected {method}: {body.get('description', body)}")

    async def send_message(self, user: User, message: OutgoingMessage) -> None:
        """Send one message to the user's chat."""

        method, payload = self.build_request(user, message)
        # urllib blocks, so the call runs in a worker thread to keep the loop free.
        await asyncio.to_thread(self._post, method, payload)
        LOGGER.debug("Delivered %s to %s", method, user.id)
