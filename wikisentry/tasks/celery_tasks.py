"""Celery task definitions for retrying pending events."""

from threading import Lock
from typing import Any, Dict, Optional

import structlog
from celery import Celery

from ..config import settings
from ..reporter import Reporter

logger = structlog.get_logger(__name__)

# Create Celery app
celery_app = Celery(
    "wikisentry",
    broker=f"redis://{settings.redis_host}:{settings.redis_port}/{settings.redis_db}",
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_routes={
        "retry_pending": {"queue": "maintenance"},
    },
    task_default_queue="maintenance",
    task_ignore_result=True,
)


# Lazy reporter initialization with thread safety
_reporter: Optional[Reporter] = None
_reporter_lock = Lock()


def get_reporter() -> Reporter:
    """
    Get reporter instance (lazy initialization).

    Thread-safe singleton pattern.

    Returns:
        Reporter instance
    """
    global _reporter

    if _reporter is None:
        with _reporter_lock:
            # Double-check locking pattern
            if _reporter is None:
                _reporter = Reporter(settings)

    return _reporter


@celery_app.task(name="retry_pending")
def retry_pending_task() -> Dict[str, Any]:
    """
    Retry delivery of all pending events.

    Events that fail again stay queued for the next run; there is no
    task-level retry.

    Returns:
        Result dict with attempted/delivered/failed/missing counts
    """
    reporter = get_reporter()

    if not reporter.settings.capture_enabled:
        logger.info("retry_pending_skipped", reason="no dsn configured")
        return {"status": "skipped"}

    try:
        report = reporter.retry_pending()
    except Exception as e:
        logger.error("retry_pending_failed", error=str(e))
        return {"status": "failed", "error": str(e)}

    return {"status": "success", **report.to_dict()}


# Periodic task schedule (Celery Beat)
celery_app.conf.beat_schedule = {
    "retry-pending-events": {
        "task": "retry_pending",
        "schedule": float(settings.retry_interval_seconds),
    },
}
