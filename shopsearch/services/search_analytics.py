"""Fire-and-forget dispatch of search events."""

import asyncio
import logging
from typing import Protocol

from shopsearch.core.config import settings
from shopsearch.schemas.search import SearchEvent

logger = logging.getLogger(__name__)


class SearchAnalytics(Protocol):
    """Receives one event per text search. ``track`` must return immediately."""

    def track(self, event: SearchEvent) -> None: ...


class NullSearchAnalytics:
    """Discards events. Used when analytics is disabled."""

    def track(self, event: SearchEvent) -> None:
        logger.debug("Search analytics disabled, dropping event for %r", event.query)


class CelerySearchAnalytics:
    """Publishes search events to the ``tasks.search.record_search_event`` task.

    Publishing talks to the broker synchronously, so it runs in a worker
    thread as a background task bounded by ``timeout``. A broker outage is
    logged and never reaches the search request.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = settings.analytics_timeout_seconds if timeout is None else timeout
        # Strong references so pending tasks are not garbage collected
        self._pending: set[asyncio.Task[None]] = set()

    def track(self, event: SearchEvent) -> None:
        task = asyncio.get_running_loop().create_task(self._publish(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish(self, event: SearchEvent) -> None:
        # Imported here so the API does not load the worker task registry at import
        from shopsearch.workers.tasks.search_analytics import record_search_event

        payload = event.model_dump(mode="json", by_alias=True)
        try:
            await asyncio.wait_for(
                asyncio.to_thread(record_search_event.delay, payload),
                timeout=self.timeout,
            )
        except TimeoutError:
            logger.warning(
                "Timed out publishing search event",
                extra={"search_query": event.query, "timeout": self.timeout},
            )
        except Exception:
            logger.exception("Failed to publish search event")

    async def drain(self) -> None:
        """Wait for in-flight publishes. Called on shutdown."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
