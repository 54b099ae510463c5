from __future__ import annotations

from adapters.notification_formatting import (
    build_inline_keyboard,
    format_card_html,
    format_text,
    share_url,
)
from core.models import Card, CardButton, OutgoingMessage


def _card(**overrides) -> Card:
    values = dict(
        label="Rates <up>",
        text="Banks & markets react",
        image_url=None,
        buttons=(CardButton(label="Read", url="https://read.example.com/f/a/u", sharing=True),),
        sharing=True,
    )
    values.update(overrides)
    return Card(**values)


def test_card_html_escapes_title_and_description() -> None:
    html_body = format_card_html(_card())
    assert html_body == "<b>Rates &lt;up&gt;</b>\n\nBanks &amp; markets react"


def test_card_html_clips_long_descriptions() -> None:
    body = format_card_html(_card(label="T", text="x" * 50), limit=20)
    description = body.split("\n\n", 1)[1]
    assert len(description) == 17
    assert description.endswith("…")


def test_alert_text_is_escaped() -> None:
    message = OutgoingMessage(recipient_id="u1", text="Breaking <news>")
    assert format_text(message) == "Breaking &lt;news&gt;"


def test_keyboard_has_read_share_and_options() -> None:
    message = OutgoingMessage(recipient_id="u1", card=_card(), options=("More stories", "Main menu"))
    rows = build_inline_keyboard(message)

    assert rows[0][0] == {"text": "Read", "url": "https://read.example.com/f/a/u"}
    assert rows[0][1]["text"] == "Share"
    assert rows[0][1]["url"].startswith("https://t.me/share/url?url=https%3A%2F%2Fread.example.com")
    assert rows[1] == [
        {"text": "More stories", "callback_data": "More stories"},
        {"text": "Main menu", "callback_data": "Main menu"},
    ]


def test_no_share_button_when_card_is_not_shareable() -> None:
    message = OutgoingMessage(recipient_id="u1", card=_card(sharing=False))
    rows = build_inline_keyboard(message)
    assert rows == [[{"text": "Read", "url": "https://read.example.com/f/a/u"}]]


def test_plain_alert_has_no_keyboard() -> None:
    assert build_inline_keyboard(OutgoingMessage(recipient_id="u1", text="hi")) == []


def test_share_url_includes_text() -> None:
    assert share_url("https://x.y/a", "Hi there").endswith("&text=Hi%20there")
