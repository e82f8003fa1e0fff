"""Sentry event model: building, cause translation and serialization."""

import platform
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import orjson
import structlog
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enricher import browser_context, os_context
from .frames import Frame, frames_from_traceback, parse_javascript_stacktrace
from .severity import (
    LVL_ERROR,
    error_type_to_severity,
    error_type_to_string,
)

logger = structlog.get_logger(__name__)

CLIENT = "WikiSentry"
VERSION = 1

# keys the override patch is never allowed to replace
IDENTITY_KEYS = ("event_id", "timestamp")


def new_event_id() -> str:
    """Generate a 32 character hex event id."""
    return uuid.uuid4().hex


def utc_timestamp() -> str:
    """Current UTC time in the format the store API expects."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


def _prune(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset entries so absent keys are omitted, not null-padded."""
    return {key: value for key, value in data.items() if value not in (None, "", {})}


class Stacktrace(BaseModel):
    frames: List[Frame] = Field(default_factory=list)


class ExceptionRecord(BaseModel):
    """One causal layer of an event."""

    type: str
    value: str = ""
    stacktrace: Stacktrace = Field(default_factory=Stacktrace)


class RawError(BaseModel):
    """A classified error without a live call stack."""

    type: int
    message: str = ""
    file: str = ""
    line: int = 0


class CaptureContext(BaseModel):
    """
    Snapshot of the environment an event is captured in.

    Passed explicitly into Event construction so that nothing reads
    ambient process or request state.
    """

    model_config = ConfigDict(frozen=True)

    # Server / application
    server_name: Optional[str] = None
    release: Optional[str] = None
    environment: Optional[str] = None
    app_name: Optional[str] = None
    app_version: Optional[str] = None
    server_software: Optional[str] = None

    # Runtime
    runtime_name: str = Field(default_factory=platform.python_implementation)
    runtime_version: str = Field(default_factory=platform.python_version)
    runtime_os: str = sys.platform

    # Request
    url: Optional[str] = None
    method: Optional[str] = None
    cookies: Optional[str] = None
    query_string: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    user_agent: Optional[str] = None

    # User
    remote_addr: Optional[str] = None
    remote_user: Optional[str] = None
    user_email: Optional[str] = None

    # Running components (plugins, template) and their versions
    modules: Dict[str, str] = Field(default_factory=dict)

    def event_defaults(self) -> Dict[str, Any]:
        """Build the default event fields from this snapshot."""
        data: Dict[str, Any] = {
            "logger": "default",
            "level": LVL_ERROR,
            "platform": "python",
            "sdk": {"name": CLIENT, "version": VERSION},
        }
        data.update(
            _prune(
                {
                    "server_name": self.server_name,
                    "release": self.release,
                    "environment": self.environment,
                }
            )
        )

        user = _prune(
            {
                "ip_address": self.remote_addr,
                "username": self.remote_user,
                "email": self.user_email,
            }
        )
        if user:
            data["user"] = user

        request = _prune(
            {
                "url": self.url,
                "method": self.method,
                "cookies": self.cookies,
                "query_string": self.query_string,
                "headers": dict(self.headers),
                "env": _prune({"REMOTE_ADDR": self.remote_addr}),
            }
        )
        if request:
            data["request"] = request

        contexts = {
            "app": _prune({"app_name": self.app_name, "app_version": self.app_version}),
            "runtime": _prune(
                {
                    "name": self.runtime_name,
                    "version": self.runtime_version,
                    "os": self.runtime_os,
                    "server": self.server_software,
                }
            ),
            "browser": browser_context(self.user_agent),
            "os": os_context(self.user_agent),
        }
        data["contexts"] = _prune(contexts)

        if self.modules:
            data["modules"] = dict(self.modules)

        return data


class EventOverrides(BaseModel):
    """
    Partial event applied on top of the defaults.

    Top-level keys replace the default of the same name (shallow merge).
    ``event_id`` and ``timestamp`` are identity fields and are dropped
    from the patch.
    """

    model_config = ConfigDict(extra="allow")

    level: Optional[str] = None
    logger: Optional[str] = None
    platform: Optional[str] = None
    server_name: Optional[str] = None
    release: Optional[str] = None
    environment: Optional[str] = None
    message: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    request: Optional[Dict[str, Any]] = None
    contexts: Optional[Dict[str, Any]] = None
    exception: Optional[Dict[str, Any]] = None
    modules: Optional[Dict[str, Any]] = None
    tags: Optional[Dict[str, Any]] = None
    extra: Optional[Dict[str, Any]] = None

    @model_validator(mode="before")
    @classmethod
    def drop_identity(cls, data: Any) -> Any:
        """Remove identity keys; they are fixed when the event is created."""
        if isinstance(data, dict) and any(key in data for key in IDENTITY_KEYS):
            logger.debug("override_identity_ignored", keys=[k for k in IDENTITY_KEYS if k in data])
            data = {key: value for key, value in data.items() if key not in IDENTITY_KEYS}
        return data

    def to_patch(self) -> Dict[str, Any]:
        """Keys explicitly given by the caller, ready for a shallow merge."""
        patch = self.model_dump(exclude_unset=True)
        return {key: value for key, value in patch.items() if value is not None}


class Event(BaseModel):
    """
    A Sentry event.

    Identity (``event_id``, ``timestamp``) is fixed at construction.
    Unknown top-level keys are kept and sent along as-is.
    """

    model_config = ConfigDict(extra="allow")

    event_id: str = Field(frozen=True)
    timestamp: str = Field(frozen=True)
    level: str = LVL_ERROR
    logger: str = "default"
    platform: str = "python"
    server_name: Optional[str] = None
    release: Optional[str] = None
    environment: Optional[str] = None
    message: Optional[str] = None
    sdk: Optional[Dict[str, Any]] = None
    user: Optional[Dict[str, Any]] = None
    request: Optional[Dict[str, Any]] = None
    contexts: Dict[str, Any] = Field(default_factory=dict)
    exception: Optional[Dict[str, Any]] = None
    modules: Optional[Dict[str, Any]] = None
    tags: Optional[Dict[str, Any]] = None
    extra: Optional[Dict[str, Any]] = None

    @classmethod
    def create(
        cls,
        context: Optional[CaptureContext] = None,
        overrides: Union[EventOverrides, Dict[str, Any], None] = None,
    ) -> "Event":
        """
        Create a new event.

        Args:
            context: Environment snapshot for the default fields
            overrides: Partial event merged over the defaults

        Returns:
            Event with a fresh id and timestamp
        """
        context = context or CaptureContext()
        data = context.event_defaults()

        if overrides is not None:
            if not isinstance(overrides, EventOverrides):
                overrides = EventOverrides.model_validate(overrides)
            data.update(overrides.to_patch())

        data["event_id"] = new_event_id()
        data["timestamp"] = utc_timestamp()
        return cls.model_validate(data)

    @property
    def id(self) -> str:
        return self.event_id

    def set_log_level(self, level: str) -> None:
        self.level = level

    def set_severity_from_native_error(self, error_type: int) -> None:
        """Set the level from an error classification."""
        self.set_log_level(error_type_to_severity(error_type))

    def add_cause(self, exc: BaseException) -> None:
        """
        Add an exception as cause of this event.

        Previous exceptions (``__cause__``, or the implicit
        ``__context__``) are added first, so the list reads root cause
        first. The level is assigned after the recursion returns, so the
        outermost exception's classification is the one that sticks.
        """
        self._add_cause(exc, set())

    def _add_cause(self, exc: BaseException, seen: set) -> None:
        seen.add(id(exc))
        if not self.exception or not isinstance(self.exception.get("values"), list):
            self.exception = {"values": []}

        previous = previous_exception(exc)
        if previous is not None and id(previous) not in seen:
            self._add_cause(previous, seen)

        severity = getattr(exc, "severity", None)
        if isinstance(severity, int):
            self.set_severity_from_native_error(severity)
        else:
            self.set_log_level(LVL_ERROR)

        record = ExceptionRecord(
            type=type(exc).__name__,
            value=str(exc),
            stacktrace=Stacktrace(frames=frames_from_traceback(exc.__traceback__)),
        )
        self.exception["values"].append(record.model_dump(exclude_none=True))

    def set_from_raw_error(self, error: Union[RawError, Dict[str, Any]]) -> None:
        """Set a single error without call stack as the cause of this event."""
        if not isinstance(error, RawError):
            error = RawError.model_validate(error)

        record = ExceptionRecord(
            type=error_type_to_string(error.type),
            value=error.message,
            stacktrace=Stacktrace(
                frames=[Frame(filename=error.file, function="", lineno=error.line, vars={})]
            ),
        )
        self.exception = {"values": [record.model_dump(exclude_none=True)]}
        self.set_severity_from_native_error(error.type)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    def serialize(self) -> bytes:
        """Serialize to JSON bytes."""
        return orjson.dumps(self.to_dict())

    @classmethod
    def deserialize(cls, payload: Union[bytes, str]) -> "Event":
        """
        Load an event from its JSON form.

        Identity is taken from the payload; only used to reload events
        that were persisted earlier.
        """
        return cls.model_validate(orjson.loads(payload))

    # region factory methods

    @classmethod
    def from_exception(
        cls, exc: BaseException, context: Optional[CaptureContext] = None
    ) -> "Event":
        event = cls.create(context)
        event.add_cause(exc)
        return event

    @classmethod
    def from_error(
        cls, error: Union[RawError, Dict[str, Any]], context: Optional[CaptureContext] = None
    ) -> "Event":
        event = cls.create(context)
        event.set_from_raw_error(error)
        return event

    @classmethod
    def from_javascript(
        cls,
        name: str,
        message: str,
        stack: str,
        additional_data: Optional[Dict[str, Any]] = None,
        context: Optional[CaptureContext] = None,
    ) -> "Event":
        """
        Build an event from an error reported by the browser.

        ``additional_data`` is merged over the generated fields; the raw
        stack is always kept in ``extra.original_stack``.
        """
        record = ExceptionRecord(
            type=name,
            value=message,
            stacktrace=Stacktrace(frames=parse_javascript_stacktrace(stack)),
        )
        data: Dict[str, Any] = {
            "logger": "javascript",
            "exception": {"values": [record.model_dump(exclude_none=True)]},
        }
        data.update(additional_data or {})
        extra = dict(data.get("extra") or {})
        extra["original_stack"] = stack
        data["extra"] = extra
        return cls.create(context, data)

    # endregion


def previous_exception(exc: BaseException) -> Optional[BaseException]:
    """The exception that led to ``exc``, if any."""
    if exc.__cause__ is not None:
        return exc.__cause__
    if exc.__suppress_context__:
        return None
    return exc.__context__
