"""Normalize call stacks into Sentry stacktrace frames.

All functions return frames outermost call first, which is the order the
ingestion API displays. Sources that record innermost-first are reversed
here, at the boundary.
"""

import re
import reprlib
import traceback
from types import TracebackType
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel

UNKNOWN_FILE = "<unknown file>"
UNKNOWN_FUNCTION = "<unknown function>"

# V8 / Chrome: "    at foo (http://host/script.js:10:5)"
CHROME_PATTERN = re.compile(
    r"^\s*at (?:(?:(?:Anonymous function)?|((?:\[object object\])?\S+"
    r"(?: \[as \S+\])?)) )?\(?((?:file|http|https):.*?):(\d+)(?::(\d+))?\)?\s*$",
    re.IGNORECASE,
)

# Gecko / Safari: "foo@http://host/script.js:10:5"
GECKO_PATTERN = re.compile(
    r"^(?:\s*([^@]*)(?:\((.*?)\))?@)?(\S.*?):(\d+)(?::(\d+))?\s*$",
    re.IGNORECASE,
)

_repr = reprlib.Repr()
_repr.maxstring = 200
_repr.maxother = 200


class Frame(BaseModel):
    """One call-stack entry."""

    filename: str = UNKNOWN_FILE
    function: str = UNKNOWN_FUNCTION
    lineno: int = 0
    colno: Optional[int] = None
    vars: Optional[Dict[str, Any]] = None


def safe_repr(value: Any) -> str:
    """Render a local variable without ever raising."""
    try:
        return _repr.repr(value)
    except Exception:
        return "<unrepresentable {}>".format(type(value).__name__)


def _frame_vars(f_locals: Dict[str, Any], capture_locals: bool) -> Dict[str, str]:
    if not capture_locals:
        return {}
    return {name: safe_repr(value) for name, value in f_locals.items()}


def frames_from_traceback(
    tb: Optional[TracebackType], capture_locals: bool = True
) -> List[Frame]:
    """
    Convert a traceback into frames.

    Tracebacks are walked from the frame that caught the exception down
    to the one that raised it, so the result is already outermost-first.

    Args:
        tb: Traceback of a caught exception (may be None)
        capture_locals: Record each frame's locals as repr strings

    Returns:
        List of Frame objects
    """
    frames = []
    for frame, lineno in traceback.walk_tb(tb):
        frames.append(
            Frame(
                filename=frame.f_code.co_filename,
                function=frame.f_code.co_name,
                lineno=lineno or 0,
                vars=_frame_vars(frame.f_locals, capture_locals),
            )
        )
    return frames


def frames_from_stack(stack: Iterable[Any], capture_locals: bool = True) -> List[Frame]:
    """
    Convert an innermost-first stack into frames.

    Accepts the records returned by ``inspect.stack()`` as well as plain
    mappings with ``file``, ``function``, ``line`` and ``locals`` keys.
    """
    frames = []
    for record in stack:
        if isinstance(record, dict):
            filename = record.get("file")
            function = record.get("function")
            lineno = record.get("line")
            f_locals = record.get("locals") or {}
        else:
            filename = record.filename
            function = record.function
            lineno = record.lineno
            f_locals = record.frame.f_locals
        frames.append(
            Frame(
                filename=filename or UNKNOWN_FILE,
                function=function or UNKNOWN_FUNCTION,
                lineno=lineno or 0,
                vars=_frame_vars(f_locals, capture_locals),
            )
        )
    frames.reverse()
    return frames


def parse_javascript_stacktrace(trace: Optional[str]) -> List[Frame]:
    """
    Parse a browser stack trace into frames.

    Understands the Gecko (``func@file:line:col``) and V8
    (``at func (file:line:col)``) dialects. Lines matching neither are
    dropped; a partial stack is better than none.

    Args:
        trace: The ``Error.stack`` string as sent by the browser

    Returns:
        List of Frame objects, outermost call first
    """
    frames: List[Frame] = []
    if not trace:
        return frames

    for line in trace.split("\n"):
        match = GECKO_PATTERN.match(line)
        if match:
            function, _, filename, lineno, colno = match.groups()
        else:
            match = CHROME_PATTERN.match(line)
            if not match:
                continue
            function, filename, lineno, colno = match.groups()

        frames.append(
            Frame(
                filename=filename or UNKNOWN_FILE,
                function=function or UNKNOWN_FUNCTION,
                lineno=int(lineno or 0),
                colno=int(colno or 0),
            )
        )
    # browsers print the throwing frame first
    frames.reverse()
    return frames
