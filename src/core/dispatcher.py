"""Batch dispatcher: drain queued obligations at a bounded pace.

Per page the order is strict:
1) Send alert then card for every item, one item at a time
2) Mark every article of the page as received by its user ($addToSet)
3) Delete the page's items from the queue

A send failure aborts the page before steps 2 and 3, so the whole page stays
queued and is retried on the next invocation. Users may then see a repeated
alert for items sent earlier in that page; nothing is ever silently dropped.
"""

from __future__ import annotations

import asyncio
import logging

from core.config import DeliveryConfig
from core.messages import build_breaking_news_messages
from core.models import ARTICLE_COLLECTION, QUEUE_COLLECTION, QueuedItem
from core.ports import SenderPort, StoragePort

LOGGER = logging.getLogger(__name__)


class BatchDispatcher:
    """Sends queued breaking news items and records their delivery."""

    def __init__(self, storage: StoragePort, sender: SenderPort, config: DeliveryConfig) -> None:
        self._storage = storage
        self._sender = sender
        self._config = config

    def get_batch_of_queued_items(self, skip: int = 0) -> list[QueuedItem]:
        """Return the oldest queued items, or an empty list if there are none."""

        records = self._storage.get(
            QUEUE_COLLECTION,
            {},
            sort={"added_date": "asc"},
            skip=skip,
            limit=self._config.batch_size,
        )
        return [QueuedItem.from_record(record) for record in records or []]

    async def send_item(self, item: QueuedItem) -> None:
        user = item.user
        alert, card = build_breaking_news_messages(
            user,
            item.article,
            self._config.read_server_base_url,
            alert_text=self._config.alert_text,
        )
        await self._sender.send_message(user, alert)
        await self._sender.send_message(user, card)

    def mark_as_received(self, items: list[QueuedItem]) -> None:
        # Set-add is idempotent, so replaying a page after a crash is harmless.
        for item in items:
            self._storage.update(
                ARTICLE_COLLECTION,
                item.article_data,
                {"$addToSet": {"received_by_users": item.user.id}},
            )

    async def send_page(self) -> int:
        """Drain one page from the head of the queue; return the item count."""

        # Drained items are deleted, so the next page always starts at the head.
        items = self.get_batch_of_queued_items(skip=0)
        if not items:
            return 0

        for item in items:
            await self.send_item(item)

        self.mark_as_received(items)
        expended_ids = [item.id for item in items]
        self._storage.delete_where(QUEUE_COLLECTION, {"id": {"$in": expended_ids}})
        LOGGER.info("Sent %s breaking news items", len(items))
        return len(items)

    async def send_queued_items(self) -> None:
        """Send every queued item, one page at a time, until the queue is empty."""

        while True:
            sent = await self.send_page()
            if not sent:
                return
            # Pace the channel between pages.
            await asyncio.sleep(self._config.batch_delay_seconds)
