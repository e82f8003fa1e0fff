"""Native error classifications and their Sentry log levels."""

from enum import IntFlag
from typing import Dict, Optional, Tuple, Type

# the Sentry log levels
LVL_DEBUG = "debug"
LVL_INFO = "info"
LVL_WARN = "warning"
LVL_ERROR = "error"
LVL_FATAL = "fatal"

LEVELS = (LVL_DEBUG, LVL_INFO, LVL_WARN, LVL_ERROR, LVL_FATAL)

UNKNOWN_ERROR_TYPE = "E_UNKNOWN_ERROR_TYPE"


class ErrorType(IntFlag):
    """
    Error classifications eligible for capture.

    Bit values are compatible with PHP's E_* constants so that an
    existing error_reporting bitmask can be reused as configuration.
    """

    E_ERROR = 1
    E_WARNING = 2
    E_PARSE = 4
    E_NOTICE = 8
    E_CORE_ERROR = 16
    E_CORE_WARNING = 32
    E_COMPILE_ERROR = 64
    E_COMPILE_WARNING = 128
    E_USER_ERROR = 256
    E_USER_WARNING = 512
    E_USER_NOTICE = 1024
    E_STRICT = 2048
    E_RECOVERABLE_ERROR = 4096
    E_DEPRECATED = 8192
    E_USER_DEPRECATED = 16384


E_ALL = 32767

# classification -> (severity, name)
CORE_ERRORS: Dict[ErrorType, Tuple[str, str]] = {
    ErrorType.E_ERROR: (LVL_ERROR, "E_ERROR"),
    ErrorType.E_WARNING: (LVL_WARN, "E_WARNING"),
    ErrorType.E_PARSE: (LVL_ERROR, "E_PARSE"),
    ErrorType.E_NOTICE: (LVL_INFO, "E_NOTICE"),
    ErrorType.E_CORE_ERROR: (LVL_ERROR, "E_CORE_ERROR"),
    ErrorType.E_CORE_WARNING: (LVL_WARN, "E_CORE_WARNING"),
    ErrorType.E_COMPILE_ERROR: (LVL_ERROR, "E_COMPILE_ERROR"),
    ErrorType.E_COMPILE_WARNING: (LVL_WARN, "E_COMPILE_WARNING"),
    ErrorType.E_USER_ERROR: (LVL_ERROR, "E_USER_ERROR"),
    ErrorType.E_USER_WARNING: (LVL_WARN, "E_USER_WARNING"),
    ErrorType.E_USER_NOTICE: (LVL_INFO, "E_USER_NOTICE"),
    ErrorType.E_STRICT: (LVL_INFO, "E_STRICT"),
    ErrorType.E_RECOVERABLE_ERROR: (LVL_ERROR, "E_RECOVERABLE_ERROR"),
    ErrorType.E_DEPRECATED: (LVL_WARN, "E_DEPRECATED"),
    ErrorType.E_USER_DEPRECATED: (LVL_WARN, "E_USER_DEPRECATED"),
}


def error_type_to_severity(error_type: int) -> str:
    """Translate an error classification into a Sentry log level."""
    if error_type in CORE_ERRORS:
        return CORE_ERRORS[error_type][0]
    return LVL_ERROR


def error_type_to_string(error_type: int) -> str:
    """Get the name of an error classification for logging purposes."""
    if error_type in CORE_ERRORS:
        return CORE_ERRORS[error_type][1]
    return UNKNOWN_ERROR_TYPE


def error_type_from_name(name: str) -> Optional[ErrorType]:
    """Look up a classification by its E_* name."""
    for error_type, (_, error_name) in CORE_ERRORS.items():
        if error_name == name.strip().upper():
            return error_type
    return None


def warning_error_type(category: Type[Warning]) -> ErrorType:
    """Classify a Python warning category."""
    if issubclass(category, (DeprecationWarning, PendingDeprecationWarning, FutureWarning)):
        return ErrorType.E_DEPRECATED
    return ErrorType.E_WARNING


class NativeError(Exception):
    """
    An exception wrapping a classified runtime error.

    The classification is exposed as ``severity`` and decides the level
    of the event the exception ends up in.
    """

    def __init__(
        self,
        message: str,
        severity: int = ErrorType.E_ERROR,
        filename: Optional[str] = None,
        lineno: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.filename = filename
        self.lineno = lineno

    def __str__(self) -> str:
        return self.message
