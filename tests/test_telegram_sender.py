from __future__ import annotations

import asyncio

import pytest
from telethon import errors

from adapters import telegram_sender
from adapters.telegram_sender import TelethonSender
from core.errors import DeliveryError
from core.messages import build_breaking_news_messages
from core.models import Article, User

from fakes import T0, minutes

BASE_URL = "https://read.example.com"


class _Button:
    """Stand-in for telethon.Button that records what the adapter built."""

    @staticmethod
    def url(text, url):
        return ("url", text, url)

    @staticmethod
    def inline(text, data):
        return ("inline", text, data)


class _Client:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[tuple] = []
        self._error = error

    async def send_message(self, entity, text, **kwargs):
        self.calls.append(("send_message", entity, text, kwargs))
        if self._error is not None:
            raise self._error

    async def send_file(self, entity, file, **kwargs):
        self.calls.append(("send_file", entity, file, kwargs))
        if self._error is not None:
            raise self._error


def _article(image_url=None) -> Article:
    return Article(
        id="a1",
        feed_id="f1",
        title="Bridge closed",
        description="Traffic diverted",
        article_date=T0 + minutes(1),
        image_url=image_url,
        is_priority=True,
    )


@pytest.fixture(autouse=True)
def _fake_buttons(monkeypatch):
    monkeypatch.setattr(telegram_sender, "Button", _Button)


def test_alert_goes_out_as_text_without_buttons() -> None:
    user = User(id="42", created=T0)
    client = _Client()
    alert, _ = build_breaking_news_messages(user, _article(), BASE_URL)

    asyncio.run(TelethonSender(client).send_message(user, alert))

    name, entity, text, kwargs = client.calls[0]
    assert name == "send_message"
    assert entity == 42
    assert text == "Breaking news!"
    assert kwargs["parse_mode"] == "html"
    assert kwargs["buttons"] is None


def test_card_with_image_goes_out_as_photo_with_caption_and_buttons() -> None:
    user = User(id="42", created=T0)
    client = _Client()
    _, card = build_breaking_news_messages(user, _article("https://img/a1.jpg"), BASE_URL)

    asyncio.run(TelethonSender(client).send_message(user, card))

    name, entity, file, kwargs = client.calls[0]
    assert name == "send_file"
    assert entity == 42
    assert file == "https://img/a1.jpg"
    assert kwargs["caption"] == "<b>Bridge closed</b>\n\nTraffic diverted"
    read_row, options_row = kwargs["buttons"]
    assert read_row[0] == ("url", "Read", "https://read.example.com/f1/a1/42")
    assert read_row[1][:2] == ("url", "Share")
    assert options_row == [
        ("inline", "More stories", b"More stories"),
        ("inline", "Main menu", b"Main menu"),
    ]


def test_card_without_image_goes_out_as_text() -> None:
    user = User(id="42", created=T0)
    client = _Client()
    _, card = build_breaking_news_messages(user, _article(), BASE_URL)

    asyncio.run(TelethonSender(client).send_message(user, card))

    assert client.calls[0][0] == "send_message"
    assert client.calls[0][2] == "<b>Bridge closed</b>\n\nTraffic diverted"
    assert client.calls[0][3]["link_preview"] is False


def test_non_numeric_recipient_is_passed_through() -> None:
    user = User(id="newsdesk", created=T0)
    client = _Client()
    alert, _ = build_breaking_news_messages(user, _article(), BASE_URL)

    asyncio.run(TelethonSender(client).send_message(user, alert))

    assert client.calls[0][1] == "newsdesk"


def test_rpc_error_becomes_delivery_error() -> None:
    user = User(id="42", created=T0)
    client = _Client(error=errors.RPCError(None, "USER_IS_BLOCKED", 403))
    alert, _ = build_breaking_news_messages(user, _article(), BASE_URL)

    with pytest.raises(DeliveryError, match="USER_IS_BLOCKED"):
        asyncio.run(TelethonSender(client).send_message(user, alert))


def test_connection_error_becomes_delivery_error() -> None:
    user = User(id="42", created=T0)
    client = _Client(error=ConnectionError("Connection to Telegram failed"))
    _, card = build_breaking_news_messages(user, _article("https://img/a1.jpg"), BASE_URL)

    with pytest.raises(DeliveryError, match="42"):
        asyncio.run(TelethonSender(client).send_message(user, card))
