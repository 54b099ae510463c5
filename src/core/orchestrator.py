"""Recovery orchestrator: the entry point invoked by the scheduler.

Each pass flushes obligations left over from an earlier pass (crash or slow
drain), builds fresh obligations and flushes again. Errors are not handled
here; they propagate to the scheduler.
"""

from __future__ import annotations

import asyncio
import logging

from core.dispatcher import BatchDispatcher
from core.selector import CandidateSelector

LOGGER = logging.getLogger(__name__)


class BreakingNewsOrchestrator:
    """Runs drain -> build -> drain, never two passes at once."""

    def __init__(self, selector: CandidateSelector, dispatcher: BatchDispatcher) -> None:
        self._selector = selector
        self._dispatcher = dispatcher
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def send_outstanding(self) -> None:
        """Send the most recent outstanding breaking news stories to users."""

        if self._lock.locked():
            LOGGER.warning("Breaking news pass still running; skipping this invocation")
            return

        async with self._lock:
            # Anything still queued from a previous pass goes out first.
            await self._dispatcher.send_queued_items()
            await self._selector.queue_breaking_news()
            await self._dispatcher.send_queued_items()
