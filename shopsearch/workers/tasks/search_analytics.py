"""Celery task that records search events for the analytics pipeline."""

import logging
from typing import Any

from shopsearch.workers.celery_app import BaseTask, celery_app

logger = logging.getLogger(__name__)


@celery_app.task(  # type: ignore[untyped-decorator]
    name="tasks.search.record_search_event",
    base=BaseTask,
    bind=True,
)
def record_search_event(self: BaseTask, event: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG001
    """Emit one search event as a structured log record.

    The analytics pipeline ships these records from the worker logs; the
    search service never waits for this task.

    Args:
        event: ``SearchEvent`` dumped in JSON mode with camelCase keys

    Returns:
        Dict with the query and status
    """
    logger.info(
        "Search event recorded",
        extra={
            "search_query": event.get("query"),
            "user_id": event.get("userId"),
            "ip_address": event.get("ipAddress"),
            "user_agent": event.get("userAgent"),
            "results_count": event.get("resultsCount"),
            "search_time_ms": event.get("searchTime"),
            "search_filters": event.get("filters"),
            "event_timestamp": event.get("timestamp"),
        },
    )
    return {"query": event.get("query"), "status": "recorded"}
