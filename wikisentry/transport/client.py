"""HTTP delivery of events to the Sentry store API."""

from dataclasses import dataclass
from typing import Optional

import httpx
import structlog

from ..errors import DeliveryFailure
from ..event.model import Event
from .dsn import DSNCredentials, build_auth_header, user_agent

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 4.0
# response bodies are only kept for diagnostics
MAX_BODY_LOG = 1000


@dataclass
class DeliveryResult:
    """Outcome of a single delivery attempt."""

    success: bool
    status_code: Optional[int] = None
    body: Optional[str] = None
    failure: Optional[DeliveryFailure] = None

    def __bool__(self) -> bool:
        return self.success


class DeliveryClient:
    """
    Sends one event per call to the store endpoint.

    Never retries and never raises for network or HTTP errors; the
    caller decides what to do with a failed result.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize delivery client.

        Args:
            timeout: Seconds before a send attempt is abandoned
            transport: Optional httpx transport (used by tests)
        """
        self.timeout = timeout
        self.transport = transport

    def build_headers(self, credentials: DSNCredentials) -> dict:
        return {
            "User-Agent": user_agent(),
            "X-Sentry-Auth": build_auth_header(credentials),
            "Content-Type": "application/json",
        }

    def send(self, event: Event, credentials: DSNCredentials) -> DeliveryResult:
        """
        POST the serialized event to the store API.

        Args:
            event: Event to deliver
            credentials: Parsed DSN

        Returns:
            DeliveryResult, successful for any 2xx response
        """
        try:
            payload = event.serialize()
        except (ValueError, TypeError) as e:
            logger.error("event_not_serializable", event_id=event.event_id, error=str(e))
            return DeliveryResult(success=False, failure=DeliveryFailure(str(e)))

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    credentials.store_url,
                    content=payload,
                    headers=self.build_headers(credentials),
                )
        except httpx.HTTPError as e:
            logger.warning(
                "event_delivery_failed",
                event_id=event.event_id,
                url=credentials.store_url,
                error=str(e),
            )
            return DeliveryResult(success=False, failure=DeliveryFailure(str(e)))

        if response.is_success:
            logger.debug("event_delivered", event_id=event.event_id, status=response.status_code)
            return DeliveryResult(success=True, status_code=response.status_code)

        body = response.text[:MAX_BODY_LOG]
        logger.warning(
            "event_rejected",
            event_id=event.event_id,
            status=response.status_code,
            body=body,
        )
        return DeliveryResult(
            success=False,
            status_code=response.status_code,
            body=body,
            failure=DeliveryFailure(
                f"Store API returned {response.status_code}",
                status_code=response.status_code,
                body=body,
            ),
        )
