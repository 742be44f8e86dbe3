"""
Error Handling
==============

One exception family for everything that can go wrong while scanning:
each class knows its severity and the header/body of the alert the user
sees. ErrorHandler logs errors, keeps a short history and forwards alerts
to the UI; the two decorators cover the swallow-and-log and retry cases
used around file I/O.
"""

# ============================================================================
# IMPORTS
# ============================================================================

import functools
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple, Type, TypeVar

logger = logging.getLogger("sckm.errors")

GENERIC_USER_MESSAGE = "An error occurred while performing the desired action."


class ErrorSeverity(Enum):
    """Severity of an error, doubles as the alert icon"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class KillMonitorError(Exception):
    """
    Base exception for all kill monitor errors

    Subclasses set the class-level defaults; any of them can be overridden
    per instance.

    Args:
        message: Technical message (logs only)
        severity: Overrides the class severity
        header: Short alert title
        user_message: Alert body
        context: Extra key/values for the log line
    """

    severity = ErrorSeverity.ERROR
    header = "ERROR"
    user_message = GENERIC_USER_MESSAGE

    def __init__(
        self,
        message: str,
        severity: Optional[ErrorSeverity] = None,
        header: Optional[str] = None,
        user_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        if severity is not None:
            self.severity = severity
        if header is not None:
            self.header = header
        if user_message is not None:
            self.user_message = user_message
        self.context = dict(context or {})

    @property
    def is_fatal(self) -> bool:
        return self.severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)


class ConfigurationError(KillMonitorError):
    """Start rejected: empty handle, interval or path, or a bad interval"""
    header = "Invalid settings"
    user_message = "Please check your settings."


class LogFileError(KillMonitorError):
    """The game log cannot be opened or read"""
    header = "Failed to read log file"
    user_message = "Please check if the file exists and the path is set correctly."


class LogParseError(KillMonitorError):
    severity = ErrorSeverity.WARNING
    header = "Failed to parse log line"
    user_message = "A log line could not be parsed and was skipped."


class PersistenceError(KillMonitorError):
    severity = ErrorSeverity.WARNING
    header = "Failed to write kill event"
    user_message = "Kill event file error. Scanning continues without saving."


class SettingsError(KillMonitorError):
    severity = ErrorSeverity.WARNING
    header = "Settings error"
    user_message = "Settings could not be loaded or saved."


class ScanStateError(KillMonitorError):
    """start() on a monitor that already ran"""
    header = "Scan error"


@dataclass
class ErrorContext:
    """Where an error happened"""
    operation: str
    component: str
    details: Dict[str, Any] = field(default_factory=dict)


# ============================================================================
# ERROR HANDLER
# ============================================================================

AlertCallback = Callable[[ErrorSeverity, str, str], None]


class ErrorHandler:
    """
    Central sink for errors

    Every error is logged and remembered (last max_history entries).
    User-facing errors are passed to on_error, but only from the main
    thread: Tk widgets must not be touched from the scan worker, which
    reports its failures through the message queue instead.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, max_history: int = 100):
        self.logger = logger or logging.getLogger("sckm.errors")
        self.max_history = max_history
        self.error_history: Deque[KillMonitorError] = deque(maxlen=max_history)
        self._history_lock = threading.Lock()
        self.on_error: Optional[AlertCallback] = None

    def handle_error(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None,
        notify_user: bool = True
    ) -> KillMonitorError:
        """
        Log, record and (optionally) alert

        Args:
            error: Any exception; non-KillMonitorError values are wrapped
            context: Where it happened
            notify_user: Forward to on_error

        Returns:
            The recorded KillMonitorError
        """
        if not isinstance(error, KillMonitorError):
            error = KillMonitorError(
                str(error),
                context={"exception": type(error).__name__},
            )

        with self._history_lock:
            self.error_history.append(error)

        line = self._describe(error, context)
        if error.is_fatal:
            self.logger.error(line)
        else:
            self.logger.info(line)

        if notify_user and self.on_error is not None:
            if threading.current_thread() is threading.main_thread():
                self.on_error(error.severity, error.header, error.user_message)
            else:
                self.logger.debug("Alert not shown outside the UI thread: %s", error.header)

        return error

    @staticmethod
    def _describe(error: KillMonitorError, context: Optional[ErrorContext]) -> str:
        parts = [f"{error.severity.value}: {error.message}"]
        if context is not None:
            parts.append(f"[{context.component}.{context.operation}]")
            if context.details:
                parts.append(f"{context.details}")
        if error.context:
            parts.append(f"{error.context}")
        return " ".join(parts)

    def get_recent_errors(self, count: int = 10) -> List[KillMonitorError]:
        with self._history_lock:
            return list(self.error_history)[-count:]


# ============================================================================
# DECORATORS
# ============================================================================

T = TypeVar("T")


def with_error_handling(
    component: str,
    operation: str,
    default_return: Any = None
):
    """
    Method decorator: hand exceptions to self.error_handler, return a default

    Errors are logged and recorded, never shown as an alert.

    Usage:
        @with_error_handling("KillEventWriter", "append", default_return=False)
        def append(self, event, suffix):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except Exception as e:
                handler = getattr(self, "error_handler", None)
                if handler is not None:
                    handler.handle_error(
                        e,
                        ErrorContext(operation, component, {"function": func.__name__}),
                        notify_user=False
                    )
                else:
                    logger.exception("%s.%s failed", component, operation)
                return default_return

        return wrapper
    return decorator


def retry_on_error(
    max_attempts: int = 3,
    delay_seconds: float = 0.1,
    exponential_backoff: bool = True,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,)
):
    """
    Retry a call that raises one of `exceptions`

    Sleeps delay_seconds between attempts (doubled each time with
    exponential_backoff) and re-raises the last exception when every
    attempt failed.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = delay_seconds
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        raise
                    logger.info("%s failed (attempt %d/%d): %s", func.__name__, attempt, max_attempts, e)
                    time.sleep(delay)
                    if exponential_backoff:
                        delay *= 2

        return wrapper
    return decorator
