"""Tests for search event dispatch and the Celery analytics task."""

import logging
import time
from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from shopsearch.schemas.search import SearchEvent
from shopsearch.services.search_analytics import CelerySearchAnalytics, NullSearchAnalytics
from shopsearch.workers.tasks.search_analytics import record_search_event

TASK_PATH = "shopsearch.workers.tasks.search_analytics.record_search_event"


@pytest.fixture
def event() -> SearchEvent:
    return SearchEvent(
        query="desk lamp",
        user_id="user-1",
        ip_address="10.0.0.1",
        user_agent="pytest",
        results_count=3,
        search_time=12,
        filters={"query": "desk lamp", "page": 1},
        timestamp=datetime(2025, 1, 1, 12, 0, tzinfo=UTC),
    )


class TestCelerySearchAnalytics:
    """Tests for CelerySearchAnalytics."""

    @pytest.mark.asyncio
    async def test_publishes_camel_case_payload(self, event: SearchEvent) -> None:
        with patch(TASK_PATH) as task:
            analytics = CelerySearchAnalytics()
            analytics.track(event)
            await analytics.drain()

        task.delay.assert_called_once()
        payload = task.delay.call_args.args[0]
        assert payload["query"] == "desk lamp"
        assert payload["userId"] == "user-1"
        assert payload["resultsCount"] == 3
        assert payload["timestamp"] == "2025-01-01T12:00:00Z"

    @pytest.mark.asyncio
    async def test_track_returns_before_publish(self, event: SearchEvent) -> None:
        with patch(TASK_PATH) as task:
            analytics = CelerySearchAnalytics()
            analytics.track(event)
            # Nothing has run yet: the publish is a pending task
            task.delay.assert_not_called()
            await analytics.drain()
        task.delay.assert_called_once()

    @pytest.mark.asyncio
    async def test_broker_failure_is_logged(
        self, event: SearchEvent, caplog: pytest.LogCaptureFixture
    ) -> None:
        with patch(TASK_PATH) as task:
            task.delay.side_effect = ConnectionError("broker unreachable")
            analytics = CelerySearchAnalytics()
            with caplog.at_level(logging.ERROR, logger="shopsearch.services.search_analytics"):
                analytics.track(event)
                await analytics.drain()

        assert "Failed to publish search event" in caplog.text

    @pytest.mark.asyncio
    async def test_slow_broker_times_out(
        self, event: SearchEvent, caplog: pytest.LogCaptureFixture
    ) -> None:
        with patch(TASK_PATH) as task:
            task.delay.side_effect = lambda _payload: time.sleep(0.3)
            analytics = CelerySearchAnalytics(timeout=0.01)
            with caplog.at_level(logging.WARNING, logger="shopsearch.services.search_analytics"):
                analytics.track(event)
                await analytics.drain()

        assert "Timed out publishing search event" in caplog.text

    @pytest.mark.asyncio
    async def test_drain_without_pending(self) -> None:
        await CelerySearchAnalytics().drain()


class TestNullSearchAnalytics:
    def test_track_does_nothing(self, event: SearchEvent) -> None:
        with patch(TASK_PATH) as task:
            NullSearchAnalytics().track(event)
        task.delay.assert_not_called()


class TestRecordSearchEventTask:
    """Tests for the record_search_event task body, run without a worker."""

    def test_records_event(self, event: SearchEvent, caplog: pytest.LogCaptureFixture) -> None:
        payload = event.model_dump(mode="json", by_alias=True)

        with caplog.at_level(logging.INFO, logger="shopsearch.workers.tasks.search_analytics"):
            result = record_search_event.run(payload)

        assert result == {"query": "desk lamp", "status": "recorded"}
        record = next(r for r in caplog.records if r.message == "Search event recorded")
        assert record.user_id == "user-1"  # type: ignore[attr-defined]
        assert record.results_count == 3  # type: ignore[attr-defined]

    def test_tolerates_sparse_payload(self) -> None:
        assert record_search_event.run({"query": "lamp"}) == {"query": "lamp", "status": "recorded"}

    def test_routed_to_analytics_queue(self) -> None:
        routes = record_search_event.app.conf.task_routes
        assert routes["tasks.search.*"] == {"queue": "analytics"}
        assert record_search_event.name == "tasks.search.record_search_event"