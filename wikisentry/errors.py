"""Error taxonomy for event capture and delivery."""

from typing import Optional


class SentryPluginError(Exception):
    """Base class for all errors raised by wikisentry."""


class InvalidDSN(SentryPluginError, ValueError):
    """The configured DSN is not a usable connection string."""


class DeliveryFailure(SentryPluginError):
    """
    An event could not be delivered to the ingestion API.

    Never raised out of the delivery client; carried inside a
    DeliveryResult so callers can log it and queue the event.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class PersistenceFailure(SentryPluginError, OSError):
    """A pending event could not be written to the retry directory."""
