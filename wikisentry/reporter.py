"""Capture, deliver and queue events."""

import socket
import traceback
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import structlog

from .config import Settings
from .errors import InvalidDSN, PersistenceFailure
from .event.model import CaptureContext, Event, RawError
from .event.modules import collect_modules
from .pending.store import RetryQueue
from .transport.client import DeliveryClient
from .transport.dsn import parse_dsn

logger = structlog.get_logger(__name__)


@dataclass
class RetryReport:
    """Result of a retry pass over the pending events."""

    attempted: int = 0
    delivered: int = 0
    failed: int = 0
    missing: int = 0
    delivered_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempted": self.attempted,
            "delivered": self.delivered,
            "failed": self.failed,
            "missing": self.missing,
        }


class Reporter:
    """
    Entry point for everything that captures errors.

    Capture never raises into the caller: an event that cannot be sent
    right away is queued, and the retry task picks it up later.
    """

    def __init__(
        self,
        settings: Settings,
        queue: Optional[RetryQueue] = None,
        client: Optional[DeliveryClient] = None,
    ):
        """
        Initialize reporter.

        Args:
            settings: Application settings
            queue: Retry queue (defaults to <cache_dir>/_sentry)
            client: Delivery client (defaults to one using send_timeout)
        """
        self.settings = settings
        self.queue = queue or RetryQueue.in_cache_dir(settings.cache_dir)
        self.client = client or DeliveryClient(timeout=settings.send_timeout)

    def capture_context(self, **fields: Any) -> CaptureContext:
        """
        Build a capture context from the settings.

        Keyword arguments (request and user details) are added on top.
        """
        data: Dict[str, Any] = {
            "server_name": self.settings.server_name or socket.gethostname(),
            "release": self.settings.app_version,
            "environment": self.settings.env or None,
            "app_name": self.settings.app_name,
            "app_version": self.settings.app_version,
            "modules": collect_modules(
                plugin_dir=self.settings.plugin_dir,
                template_dir=self.settings.template_dir,
                template=self.settings.template,
            ),
        }
        data.update(fields)
        return CaptureContext(**data)

    def should_report(self, error_type: int) -> bool:
        """Check the error classification against the configured bitmask."""
        return bool(self.settings.errors & error_type)

    def send_event(self, event: Event) -> bool:
        """
        Send an event to Sentry.

        The DSN is parsed on every call so configuration changes apply
        immediately.

        Returns:
            True if the event was accepted
        """
        try:
            credentials = parse_dsn(self.settings.dsn)
        except InvalidDSN as e:
            logger.error("invalid_dsn", event_id=event.event_id, error=str(e))
            return False

        return self.client.send(event, credentials).success

    def log_event(self, event: Event) -> bool:
        """
        Deliver an event, queueing it when delivery fails.

        Returns:
            True if the event was delivered right away
        """
        try:
            if self.send_event(event):
                return True
        except Exception as e:
            logger.error("event_send_error", event_id=event.event_id, error=str(e))

        try:
            self.queue.persist(event)
        except PersistenceFailure as e:
            # the event is lost, nothing left to retry
            logger.error("event_lost", event_id=event.event_id, error=str(e))
        return False

    def log_exception(self, exc: BaseException, context: Optional[CaptureContext] = None) -> bool:
        """Log an exception, including its chain of causes."""
        try:
            event = Event.from_exception(exc, context or self.capture_context())
        except Exception as e:
            logger.error("event_build_failed", error=str(e), exception_type=type(exc).__name__)
            return False
        return self.log_event(event)

    def log_error(
        self,
        error: Union[RawError, Dict[str, Any]],
        context: Optional[CaptureContext] = None,
    ) -> bool:
        """Log a classified error that has no call stack."""
        try:
            event = Event.from_error(error, context or self.capture_context())
        except Exception as e:
            logger.error("event_build_failed", error=str(e))
            return False
        return self.log_event(event)

    def retry_pending(self) -> RetryReport:
        """
        Try to deliver every queued event.

        Delivered events are removed; failed ones stay queued for the
        next pass. Events deleted by a concurrent pass are skipped.
        """
        report = RetryReport()

        for event_id in self.queue.list_pending():
            event = self.queue.load(event_id)
            if event is None:
                report.missing += 1
                continue

            report.attempted += 1
            try:
                delivered = self.send_event(event)
            except Exception as e:
                logger.error("event_send_error", event_id=event_id, error=str(e))
                delivered = False

            if delivered:
                self.queue.delete(event_id)
                report.delivered += 1
                report.delivered_ids.append(event_id)
            else:
                report.failed += 1

        if report.attempted or report.missing:
            logger.info("pending_events_retried", **report.to_dict())
        return report

    def format_exception(self, exc: BaseException, debug: Optional[bool] = None) -> str:
        """
        Format an exception as a short notice for the end user.

        Location and traceback are only included in debug mode.
        """
        if debug is None:
            debug = self.settings.debug

        lines = ["An error occurred", f"{type(exc).__name__}: {exc}"]
        if debug:
            lines.append("")
            lines.extend(
                line.rstrip("\n")
                for line in traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
        lines.append("The error has been logged.")
        return "\n".join(lines)
