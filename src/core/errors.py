"""Error types raised by the core and its adapters."""

from __future__ import annotations


class NewsflashError(Exception):
    """Base class for newsflash errors."""


class DeliveryError(NewsflashError):
    """The outbound channel rejected or failed to deliver a message."""


class QueryError(NewsflashError, ValueError):
    """A condition, sort spec or mutation uses an unsupported operator."""
