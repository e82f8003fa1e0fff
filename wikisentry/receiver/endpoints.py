"""FastAPI endpoints for browser error capture and pending event maintenance."""

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from ..event.model import CaptureContext, Event
from ..reporter import Reporter

logger = structlog.get_logger(__name__)

router = APIRouter()


class JavaScriptError(BaseModel):
    """Error report posted by the browser-side listener."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = "Error"
    message: str = ""
    stack: str = ""
    id: Optional[str] = None  # page id the error happened on
    additional_data: Dict[str, Any] = Field(default_factory=dict, alias="additionalData")


def get_reporter(request: Request) -> Reporter:
    """Get the reporter from application state."""
    return request.app.state.reporter


def request_context(reporter: Reporter, request: Request) -> CaptureContext:
    """Capture context for the current HTTP request."""
    headers = dict(request.headers)
    client_host = request.client.host if request.client else None

    return reporter.capture_context(
        url=str(request.url),
        method=request.method,
        cookies=headers.get("cookie"),
        query_string=request.url.query or None,
        headers=headers,
        user_agent=headers.get("user-agent"),
        remote_addr=client_host,
        remote_user=headers.get("x-remote-user"),
    )


@router.post("/ajax/sentry")
def capture_javascript_error(payload: JavaScriptError, request: Request) -> dict:
    """
    Turn a browser error into an event and log it.

    Body: {"name", "message", "stack", "id", "additionalData"}
    """
    reporter = get_reporter(request)
    if not reporter.settings.capture_enabled:
        raise HTTPException(status_code=404, detail="Error capture not configured")

    try:
        additional_data = dict(payload.additional_data)
        if payload.id:
            extra = dict(additional_data.get("extra") or {})
            extra.setdefault("page_id", payload.id)
            additional_data["extra"] = extra

        event = Event.from_javascript(
            name=payload.name,
            message=payload.message,
            stack=payload.stack,
            additional_data=additional_data,
            context=request_context(reporter, request),
        )
    except Exception as e:
        logger.error("javascript_event_invalid", error=str(e))
        raise HTTPException(status_code=400, detail="Invalid error report")

    delivered = reporter.log_event(event)
    logger.info("javascript_error_captured", event_id=event.event_id, delivered=delivered)

    return {"id": event.event_id}


@router.get("/pending")
async def list_pending(request: Request) -> dict:
    """List the ids of events waiting for delivery."""
    reporter = get_reporter(request)
    pending = reporter.queue.list_pending()
    return {"count": len(pending), "ids": pending}


@router.post("/pending/retry")
def retry_pending(request: Request) -> dict:
    """
    Retry delivery of all pending events.

    Runs in the threadpool; each delivery is a blocking HTTP call.
    """
    reporter = get_reporter(request)
    report = reporter.retry_pending()
    return report.to_dict()
