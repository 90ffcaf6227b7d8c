"""
Error Handling - Logging, tallying and retrying for weathr's failure paths.

Every failure weathr recovers from (or stops for) goes through
handle_error(): the error is filed under an ErrorCategory, given an
ErrorSeverity, logged in full the first time it is seen and counted in the
session ErrorTally, which the command line reports on exit. A weather
refresh that fails every five minutes is therefore logged once per repeat
window rather than once per attempt.

USAGE:
    from weathr.utils.error_handling import (
        ErrorCategory,
        handle_error,
        safe_execute,
        with_error_handling,
    )

    @with_error_handling(category=ErrorCategory.NETWORK, retry_count=2)
    def fetch():
        ...

    with safe_execute("reading location cache", ErrorCategory.FILESYSTEM) as result:
        result.value = load()
"""

import functools
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

from ..errors import (
    ConfigError,
    DataUnavailable,
    GeocodeNotFound,
    InvalidLocationError,
    NetworkFailure,
    TerminalError,
    UnmappedCondition,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ErrorCategory(Enum):
    """Which part of weathr a failure came from."""
    # Open-Meteo, ipinfo.io and Nominatim calls
    NETWORK = "network"

    # Weather codes or payloads that cannot be used
    DATA = "data"

    # config.toml and the WEATHR_* variables
    CONFIG = "config"

    # Location cache
    FILESYSTEM = "filesystem"

    # curses setup, drawing and resize
    TERMINAL = "terminal"

    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """How bad a failure is. Values are the logging levels used for it."""
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    FATAL = logging.CRITICAL


# First match wins
_CATEGORY_BY_TYPE: Tuple[Tuple[type, ErrorCategory], ...] = (
    (TerminalError, ErrorCategory.TERMINAL),
    (ConfigError, ErrorCategory.CONFIG),
    (InvalidLocationError, ErrorCategory.CONFIG),
    (NetworkFailure, ErrorCategory.NETWORK),
    (GeocodeNotFound, ErrorCategory.NETWORK),
    (UnmappedCondition, ErrorCategory.DATA),
    (DataUnavailable, ErrorCategory.DATA),
    (OSError, ErrorCategory.FILESYSTEM),
)


def categorize(error: Exception) -> ErrorCategory:
    """Category for an error raised somewhere in weathr."""
    for error_type, category in _CATEGORY_BY_TYPE:
        if isinstance(error, error_type):
            return category
    return ErrorCategory.UNKNOWN


def determine_severity(error: Exception, category: ErrorCategory) -> ErrorSeverity:
    """
    Severity of an error in its category.

    Only terminal failures stop the program. Missing settlements and
    unmapped weather codes are normal outcomes with a visible fallback.
    Network, config, data and cache problems degrade to a fallback but are
    worth a warning.
    """
    if category == ErrorCategory.TERMINAL:
        return ErrorSeverity.FATAL
    if isinstance(error, GeocodeNotFound):
        return ErrorSeverity.INFO
    if category in (
        ErrorCategory.NETWORK,
        ErrorCategory.DATA,
        ErrorCategory.CONFIG,
        ErrorCategory.FILESYSTEM,
    ):
        return ErrorSeverity.WARNING
    return ErrorSeverity.ERROR


@dataclass
class ErrorRecord:
    """One handled failure."""
    error: Exception
    category: ErrorCategory
    severity: ErrorSeverity
    operation: str
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def message(self) -> str:
        """Text for the user, from user_friendly_message() where the error has one."""
        friendly = getattr(self.error, 'user_friendly_message', None)
        return friendly() if callable(friendly) else str(self.error)

    def log_line(self) -> str:
        extra = ''.join(f" {key}={value}" for key, value in self.details.items())
        return (
            f"{self.operation} failed [{self.category.value}] "
            f"{type(self.error).__name__}: {self.error}{extra}"
        )


class ErrorTally:
    """
    Counts the errors handled during a session.

    The same (category, operation, error type) seen again within
    repeat_window seconds of its first sighting is counted but reported as
    a repeat. Thread-safe: fetch threads and the loop thread both report.
    """

    def __init__(self, repeat_window: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        self._lock = threading.Lock()
        self._repeat_window = repeat_window
        self._clock = clock
        self._counts: Dict[ErrorCategory, int] = {}
        self._first_seen: Dict[Tuple[ErrorCategory, str, str], float] = {}

    def record(self, rec: ErrorRecord) -> bool:
        """Count rec. Returns False if it repeats one seen inside the window."""
        key = (rec.category, rec.operation, type(rec.error).__name__)
        now = self._clock()
        with self._lock:
            self._counts[rec.category] = self._counts.get(rec.category, 0) + 1
            seen = self._first_seen.get(key)
            if seen is not None and now - seen < self._repeat_window:
                return False
            self._first_seen[key] = now
            return True

    def count(self, category: Optional[ErrorCategory] = None) -> int:
        with self._lock:
            if category is None:
                return sum(self._counts.values())
            return self._counts.get(category, 0)

    def summary(self) -> str:
        """Counts per category, e.g. "3 network, 1 config"; empty if none."""
        with self._lock:
            return ', '.join(
                f"{self._counts[category]} {category.value}"
                for category in ErrorCategory
                if self._counts.get(category)
            )

    def clear(self):
        with self._lock:
            self._counts.clear()
            self._first_seen.clear()


_session_tally = ErrorTally()


def get_error_tally() -> ErrorTally:
    """The tally shared by the whole process."""
    return _session_tally


def handle_error(
    error: Exception,
    operation: str,
    category: Optional[ErrorCategory] = None,
    severity: Optional[ErrorSeverity] = None,
    details: Optional[Dict[str, Any]] = None,
    reraise: bool = False,
) -> ErrorRecord:
    """
    Log and count a failure.

    Args:
        error: The exception that occurred
        operation: What weathr was doing, e.g. "weather refresh"
        category: Defaults to categorize(error)
        severity: Defaults to determine_severity()
        details: Extra key=value pairs for the log line
        reraise: Re-raise the error after recording it

    Returns:
        The ErrorRecord, whose message is suitable for the user
    """
    category = category or categorize(error)
    severity = severity or determine_severity(error, category)
    rec = ErrorRecord(error, category, severity, operation, dict(details or {}))

    if _session_tally.record(rec):
        # Tracebacks only for failures that are not expected in normal use
        with_trace = severity.value >= logging.ERROR
        logger.log(severity.value, rec.log_line(), exc_info=error if with_trace else None)
    else:
        logger.debug(f"{rec.log_line()} (repeat)")

    if reraise:
        raise error
    return rec


@dataclass
class SafeResult:
    """Outcome of a safe_execute block."""
    value: Any = None
    error: Optional[ErrorRecord] = None

    @property
    def success(self) -> bool:
        return self.error is None


@contextmanager
def safe_execute(
    operation: str,
    category: Optional[ErrorCategory] = None,
    default_return: Any = None,
    details: Optional[Dict[str, Any]] = None,
):
    """
    Run a block whose failure should not stop weathr.

    On error the failure is handled, result.value is reset to
    default_return and execution continues after the with statement.

    Usage:
        with safe_execute("reading location cache", ErrorCategory.FILESYSTEM) as result:
            result.value = load()
    """
    result = SafeResult(default_return)
    try:
        yield result
    except Exception as e:
        result.error = handle_error(e, operation, category, details=details)
        result.value = default_return


def with_error_handling(
    category: Optional[ErrorCategory] = None,
    operation: Optional[str] = None,
    default_return: Any = None,
    reraise: bool = False,
    retry_count: int = 0,
    retry_delay: float = 1.0,
    retry_backoff: float = 2.0,
    should_retry: Optional[Callable[[Exception], bool]] = None,
):
    """
    Decorator: handle failures of the wrapped call, retrying with backoff.

    Args:
        category: Error category for this call
        operation: Operation name (defaults to the function name)
        default_return: Returned once attempts run out, unless reraise
        reraise: Raise the last error once attempts run out
        retry_count: Retries after the first attempt
        retry_delay: Seconds before the first retry
        retry_backoff: Multiplier applied to the delay after each retry
        should_retry: Decides whether an error is worth another attempt

    Usage:
        @with_error_handling(category=ErrorCategory.NETWORK, retry_count=2)
        def fetch_data():
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        op_name = operation or func.__name__
        attempts = retry_count + 1

        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            delay = retry_delay
            for attempt in range(1, attempts + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    retry = attempt < attempts and (should_retry is None or should_retry(e))
                    handle_error(e, op_name, category, details={'attempt': f"{attempt}/{attempts}"})
                    if not retry:
                        if reraise:
                            raise
                        return default_return
                    logger.info(f"Retrying {op_name} in {delay:.1f}s")
                    time.sleep(delay)
                    delay *= retry_backoff
            return default_return

        return wrapper
    return decorator
