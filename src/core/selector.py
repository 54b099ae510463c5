"""Candidate selection: decide which user is owed which breaking article.

Users are paged in a stable id order so that the scan visits every enabled
user exactly once per pass, no matter how many there are. Lookups inside a
page run one user at a time to keep the load on the store bounded.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core.config import DeliveryConfig
from core.models import (
    ARTICLE_COLLECTION,
    QUEUE_COLLECTION,
    USER_COLLECTION,
    User,
)
from core.ports import StoragePort

LOGGER = logging.getLogger(__name__)


class CandidateSelector:
    """Builds durable obligations for the earliest unread priority article."""

    def __init__(self, storage: StoragePort, config: DeliveryConfig) -> None:
        self._storage = storage
        self._config = config

    def get_batch_of_users(self, skip: int = 0) -> list[dict]:
        records = self._storage.get(
            USER_COLLECTION,
            {"bot.disabled": {"$ne": True}},
            # Keep the entire result set in a consistent order between pages.
            sort={"id": "asc"},
            skip=skip,
            limit=self._config.batch_size,
        )
        return records or []

    def get_next_breaking_news_for_user(self, user: User) -> Optional[dict]:
        """Return the earliest unread priority article record for the user."""

        records = self._storage.get(
            ARTICLE_COLLECTION,
            {
                "received_by_users": {"$nin": [user.id]},
                "article_date": {"$gt": user.created},
                "is_published": {"$ne": False},
                "is_priority": True,
            },
            sort={"article_date": "asc"},
            limit=1,
        )
        return records[0] if records else None

    async def queue_page(self, skip: int) -> int:
        """Queue obligations for one page of users; return the page size."""

        user_records = self.get_batch_of_users(skip)
        queued = 0
        for user_record in user_records:
            user = User.from_record(user_record)
            article_record = self.get_next_breaking_news_for_user(user)
            if article_record is None:
                continue
            self._storage.insert(
                QUEUE_COLLECTION,
                {"user_data": user_record, "article_data": article_record},
            )
            queued += 1
            LOGGER.debug("Queued article %s for user %s", article_record.get("id"), user.id)

        if user_records:
            LOGGER.info(
                "Queued %s breaking news items for %s users (offset %s)", queued, len(user_records), skip
            )
        return len(user_records)

    async def queue_breaking_news(self, skip: int = 0) -> None:
        """Queue breaking news for every enabled user, one page at a time."""

        while True:
            processed = await self.queue_page(skip)
            if not processed:
                return
            skip += self._config.batch_size
            # Pace the scan between pages instead of hammering the store.
            await asyncio.sleep(self._config.batch_delay_seconds)
