"""Celery application configuration."""

from celery import Celery
from celery import signals as celery_signals

from shopsearch.core.config import settings
from shopsearch.core.logging_config import setup_logging

# Create Celery app
celery_app = Celery(
    "shopsearch",
    broker=str(settings.redis_url),
    backend=str(settings.redis_url),
    include=[
        "shopsearch.workers.tasks.search_analytics",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Task safety limits
    task_time_limit=60,
    task_soft_time_limit=45,
    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Search events carry no useful result
    task_ignore_result=True,
    result_expires=3600,
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,
    # Default queue name (must match worker -Q flag)
    task_default_queue="default",
    task_routes={
        "tasks.search.*": {"queue": "analytics"},
    },
)


# Task base class with common error handling
class BaseTask(celery_app.Task):  # type: ignore[misc, name-defined]
    """Base task class with error handling."""

    abstract = True
    autoretry_for = (Exception,)
    retry_backoff = True
    retry_backoff_max = 600  # Max 10 minutes between retries
    retry_jitter = True
    max_retries = 3


@celery_signals.setup_logging.connect
def _configure_worker_logging(**_kwargs: object) -> None:
    """Log from workers in the same JSON shape as the API."""
    setup_logging(debug=settings.debug)
