from __future__ import annotations

import copy
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from core.errors import DeliveryError
from core.models import ARTICLE_COLLECTION, USER_COLLECTION, Article, OutgoingMessage, User
from core.query import apply_mutation, matches, page, sort_records

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeStorage:
    """In-memory document store sharing the adapters' query language."""

    def __init__(self) -> None:
        self.collections: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, str]] = []
        self._clock = 0

    def get(
        self,
        collection: str,
        conditions: Mapping[str, Any],
        *,
        sort: Optional[Mapping[str, str]] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> list[dict]:
        self.calls.append(("get", collection))
        records = [r for r in self.collections.get(collection, []) if matches(r, conditions)]
        return copy.deepcopy(page(sort_records(records, sort), skip, limit))

    def insert(self, collection: str, record: Mapping[str, Any]) -> dict:
        self.calls.append(("insert", collection))
        self._clock += 1
        document = copy.deepcopy(dict(record))
        document.setdefault("id", uuid.uuid4().hex)
        document.setdefault("added_date", f"{self._clock:012d}")
        self.collections.setdefault(collection, []).append(document)
        return copy.deepcopy(document)

    def update(self, collection: str, record: Mapping[str, Any], mutation) -> None:
        self.calls.append(("update", collection))
        documents = self.collections.get(collection, [])
        for index, document in enumerate(documents):
            if document["id"] == record["id"]:
                documents[index] = apply_mutation(document, mutation)

    def delete_where(self, collection: str, conditions: Mapping[str, Any]) -> int:
        self.calls.append(("delete_where", collection))
        documents = self.collections.get(collection, [])
        kept = [d for d in documents if not matches(d, conditions)]
        self.collections[collection] = kept
        return len(documents) - len(kept)

    def add_user(self, user_id: str, created: datetime = T0, disabled: bool = False) -> dict:
        return self.insert(USER_COLLECTION, User(user_id, created, disabled).to_record())

    def add_article(
        self,
        article_id: str,
        published_at: datetime,
        *,
        is_priority: bool = True,
        is_published: bool = True,
        received_by_users: tuple[str, ...] = (),
    ) -> dict:
        article = Article(
            id=article_id,
            feed_id="feed-1",
            title=f"Title {article_id}",
            description=f"Description {article_id}",
            article_date=published_at,
            image_url=f"https://img.example.com/{article_id}.jpg",
            is_published=is_published,
            is_priority=is_priority,
            received_by_users=received_by_users,
        )
        return self.insert(ARTICLE_COLLECTION, article.to_record())

    def article(self, article_id: str) -> dict:
        return next(a for a in self.collections[ARTICLE_COLLECTION] if a["id"] == article_id)


class FakeSender:
    def __init__(self, fail_on: Optional[int] = None) -> None:
        self.sent: list[tuple[str, OutgoingMessage]] = []
        self._fail_on = fail_on
        self._attempts = 0

    async def send_message(self, user: User, message: OutgoingMessage) -> None:
        self._attempts += 1
        if self._fail_on is not None and self._attempts == self._fail_on:
            raise DeliveryError("channel down")
        self.sent.append((user.id, message))

    def alerts(self) -> list[str]:
        return [user_id for user_id, message in self.sent if message.card is None]

    def cards(self) -> list[tuple[str, str]]:
        return [
            (user_id, message.card.buttons[0].url)
            for user_id, message in self.sent
            if message.card is not None
        ]


def minutes(n: int) -> timedelta:
    return timedelta(minutes=n)
