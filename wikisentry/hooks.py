"""Process-wide hooks that feed uncaught errors into the reporter."""

import atexit
import sys
import warnings
from typing import Callable, Optional

import structlog

from .event.model import RawError
from .event.severity import warning_error_type
from .reporter import Reporter

logger = structlog.get_logger(__name__)

_original_showwarning = warnings.showwarning

LastErrorSource = Callable[[], Optional[RawError]]


class ErrorHooks:
    """
    Installs the exception, warning and shutdown handlers.

    - uncaught exceptions are logged and replaced by a short notice
    - warnings are converted to classified errors and logged when
      enabled in the ``errors`` bitmask, then shown as usual
    - at shutdown the last error reported by the host (if any) is logged,
      unless the warning handler already handled it
    """

    def __init__(self, reporter: Reporter, last_error: Optional[LastErrorSource] = None):
        """
        Initialize hooks.

        Args:
            reporter: Reporter that receives the captured errors
            last_error: Returns the error that ended the process, if the host knows one
        """
        self.reporter = reporter
        self.last_error = last_error or (lambda: None)
        self.last_handled_error: Optional[RawError] = None

        self._previous_excepthook = None
        self._previous_showwarning = None
        self._installed = False

    def install(self) -> bool:
        """
        Register the handlers.

        Returns:
            False if no DSN is configured and nothing was installed
        """
        if self._installed:
            return True
        if not self.reporter.settings.capture_enabled:
            logger.info("error_hooks_disabled", reason="no dsn configured")
            return False

        self._previous_excepthook = sys.excepthook
        self._previous_showwarning = warnings.showwarning
        sys.excepthook = self.exception_handler
        warnings.showwarning = self.warning_handler
        atexit.register(self.fatal_handler)
        self._installed = True
        logger.info("error_hooks_installed")
        return True

    def uninstall(self) -> None:
        if not self._installed:
            return
        sys.excepthook = self._previous_excepthook
        warnings.showwarning = self._previous_showwarning
        atexit.unregister(self.fatal_handler)
        self._installed = False

    def exception_handler(self, exc_type, exc, tb) -> None:
        """Log an uncaught exception and print the user notice."""
        if issubclass(exc_type, (KeyboardInterrupt, SystemExit)):
            previous = self._previous_excepthook or sys.__excepthook__
            previous(exc_type, exc, tb)
            return

        if exc.__traceback__ is None:
            exc = exc.with_traceback(tb)
        self.reporter.log_exception(exc)
        print(self.reporter.format_exception(exc), file=sys.stderr)

    def warning_handler(self, message, category, filename, lineno, file=None, line=None) -> None:
        """Log a warning as a classified error, then show it as usual."""
        error = RawError(
            type=int(warning_error_type(category)),
            message=str(message),
            file=filename or "",
            line=lineno or 0,
        )
        self.last_handled_error = error

        if self.reporter.should_report(error.type):
            self.reporter.log_error(error)

        previous = self._previous_showwarning or _original_showwarning
        previous(message, category, filename, lineno, file, line)

    def fatal_handler(self) -> None:
        """Log the error that ended the process."""
        error = self.last_error()
        if error is None:
            return
        # already processed by the warning handler
        if error == self.last_handled_error:
            return
        self.reporter.log_error(error)
