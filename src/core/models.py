"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any storage- or channel-specific types. Records in the store are
plain JSON-compatible dicts; the ``from_record``/``to_record`` helpers are the
only place that knows their field layout.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

USER_COLLECTION = "User"
ARTICLE_COLLECTION = "Article"
QUEUE_COLLECTION = "BreakingNewsQueuedItem"


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime so that string order equals time order."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class User:
    """A notification recipient as seen by the delivery core."""

    id: str
    created: datetime
    disabled: bool = False

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "User":
        profile = record.get("profile") or {}
        bot = record.get("bot") or {}
        return cls(
            id=str(record["id"]),
            created=parse_timestamp(profile["created"]),
            disabled=bool(bot.get("disabled", False)),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "profile": {"created": format_timestamp(self.created)},
            "bot": {"disabled": self.disabled},
        }


@dataclass(frozen=True)
class Article:
    """A feed article; only priority articles are relevant here."""

    id: str
    feed_id: str
    title: str
    description: str
    article_date: datetime
    image_url: Optional[str] = None
    is_published: bool = True
    is_priority: bool = False
    received_by_users: tuple[str, ...] = ()

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Article":
        return cls(
            id=str(record["id"]),
            feed_id=str(record.get("feed_id", "")),
            title=record.get("title") or "",
            description=record.get("description") or "",
            article_date=parse_timestamp(record["article_date"]),
            image_url=record.get("image_url"),
            # A missing flag counts as published, matching the selector's $ne: false.
            is_published=record.get("is_published") is not False,
            is_priority=bool(record.get("is_priority", False)),
            received_by_users=tuple(str(u) for u in record.get("received_by_users") or ()),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "feed_id": self.feed_id,
            "title": self.title,
            "description": self.description,
            "image_url": self.image_url,
            "article_date": format_timestamp(self.article_date),
            "is_published": self.is_published,
            "is_priority": self.is_priority,
            "received_by_users": list(self.received_by_users),
        }


@dataclass(frozen=True)
class QueuedItem:
    """Obligation: ``user`` is owed a notification for ``article``."""

    id: str
    user_data: dict
    article_data: dict

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "QueuedItem":
        return cls(
            id=str(record["id"]),
            user_data=dict(record["user_data"]),
            article_data=dict(record["article_data"]),
        )

    @property
    def user(self) -> User:
        return User.from_record(self.user_data)

    @property
    def article(self) -> Article:
        return Article.from_record(self.article_data)


@dataclass(frozen=True)
class CardButton:
    label: str
    url: str
    sharing: bool = False


@dataclass(frozen=True)
class Card:
    """Rich card element: title, description, image and link buttons."""

    label: str
    text: str
    image_url: Optional[str] = None
    buttons: tuple[CardButton, ...] = ()
    sharing: bool = False


@dataclass(frozen=True)
class OutgoingMessage:
    """Channel-agnostic outgoing message envelope.

    A message carries either plain ``text`` or a ``card``; ``options`` are
    quick-reply labels rendered by the adapter in whatever way the channel
    supports.
    """

    recipient_id: str
    text: Optional[str] = None
    card: Optional[Card] = None
    options: tuple[str, ...] = field(default_factory=tuple)
