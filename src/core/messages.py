"""Breaking-news message shaping (core domain)."""

from __future__ import annotations

from typing import Tuple

from core.models import Article, Card, CardButton, OutgoingMessage, User

READ_BUTTON_LABEL = "Read"
REPLY_OPTIONS = ("More stories", "Main menu")


def build_read_url(base_url: str, article: Article, user: User) -> str:
    """Deep link back to the read server: <base>/<feed_id>/<article_id>/<user_id>."""

    return f"{base_url.rstrip('/')}/{article.feed_id}/{article.id}/{user.id}"


def build_breaking_news_messages(
    user: User,
    article: Article,
    read_server_base_url: str,
    alert_text: str = "Breaking news!",
) -> Tuple[OutgoingMessage, OutgoingMessage]:
    """Return the (alert, card) pair sent for one obligation, in send order."""

    alert = OutgoingMessage(recipient_id=user.id, text=alert_text)
    card = OutgoingMessage(
        recipient_id=user.id,
        card=Card(
            label=article.title,
            text=article.description,
            image_url=article.image_url,
            buttons=(
                CardButton(
                    label=READ_BUTTON_LABEL,
                    url=build_read_url(read_server_base_url, article, user),
                    sharing=True,
                ),
            ),
            sharing=True,
        ),
        options=REPLY_OPTIONS,
    )
    return alert, card
