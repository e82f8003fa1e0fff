"""Tests for the periodic retry task."""

from unittest.mock import MagicMock, patch

from wikisentry.reporter import RetryReport
from wikisentry.tasks.celery_tasks import celery_app, retry_pending_task


def make_reporter(dsn="https://pub@sentry.example.com/1"):
    reporter = MagicMock()
    reporter.settings.capture_enabled = bool(dsn)
    return reporter


class TestRetryPendingTask:
    """Test cases for retry_pending_task."""

    def test_retry_success(self):
        """Test that the report counts are returned."""
        reporter = make_reporter()
        reporter.retry_pending.return_value = RetryReport(
            attempted=2, delivered=1, failed=1, delivered_ids=["a" * 32]
        )

        with patch("wikisentry.tasks.celery_tasks.get_reporter", return_value=reporter):
            result = retry_pending_task()

        assert result == {"status": "success", "attempted": 2, "delivered": 1, "failed": 1, "missing": 0}

    def test_skipped_without_dsn(self):
        """Test that nothing is retried when capture is disabled."""
        reporter = make_reporter(dsn="")

        with patch("wikisentry.tasks.celery_tasks.get_reporter", return_value=reporter):
            result = retry_pending_task()

        assert result == {"status": "skipped"}
        reporter.retry_pending.assert_not_called()

    def test_failure_is_reported(self):
        """Test that an unexpected error does not escape the task."""
        reporter = make_reporter()
        reporter.retry_pending.side_effect = OSError("cache unavailable")

        with patch("wikisentry.tasks.celery_tasks.get_reporter", return_value=reporter):
            result = retry_pending_task()

        assert result["status"] == "failed"
        assert "cache unavailable" in result["error"]

    def test_beat_schedule(self):
        """Test that the task is scheduled periodically."""
        entry = celery_app.conf.beat_schedule["retry-pending-events"]
        assert entry["task"] == "retry_pending"
        assert entry["schedule"] > 0
