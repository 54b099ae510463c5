"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage and delivery adapters so
that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from core.models import OutgoingMessage, User


class StoragePort(Protocol):
    """Collection-scoped document operations required by the core pipeline."""

    def get(
        self,
        collection: str,
        conditions: Mapping[str, Any],
        *,
        sort: Optional[Mapping[str, str]] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> list[dict]:
        ...

    def insert(self, collection: str, record: Mapping[str, Any]) -> dict:
        ...

    def update(
        self,
        collection: str,
        record: Mapping[str, Any],
        mutation: Mapping[str, Mapping[str, Any]],
    ) -> None:
        ...

    def delete_where(self, collection: str, conditions: Mapping[str, Any]) -> int:
        ...


class SenderPort(Protocol):
    """Delivery operation required by the core pipeline."""

    async def send_message(self, user: User, message: OutgoingMessage) -> None:
        ...
