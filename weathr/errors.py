"""
Weathr error taxonomy.

Network and data errors are recovered inside the animation loop; only
TerminalError is fatal.
"""

from typing import Iterable, Optional


class WeathrError(Exception):
    """Base class for all weathr errors."""


class NetworkFailure(WeathrError):
    """A fetch, geolocation or geocoding call was unreachable or timed out."""

    def __init__(self, message: str, url: Optional[str] = None, retryable: bool = True):
        super().__init__(message)
        self.url = url
        self.retryable = retryable

    def user_friendly_message(self) -> str:
        target = f" ({self.url})" if self.url else ""
        return f"Network error{target}: {self}"


class DataUnavailable(WeathrError):
    """No prior reading exists and the current fetch failed."""


class UnmappedCondition(WeathrError):
    """The provider returned a weather code with no known condition."""

    def __init__(self, code: int):
        super().__init__(f"Unknown weather code {code}")
        self.code = code


class TerminalError(WeathrError):
    """The display or resize primitive failed; rendering cannot continue."""

    def user_friendly_message(self) -> str:
        return (
            f"Terminal error: {self}\n"
            "Make sure weathr runs in an interactive terminal (TERM is set)."
        )


class ConfigError(WeathrError):
    """The config file could not be read, parsed or validated."""

    def __init__(self, kind: str, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.path = path


class InvalidLocationError(WeathrError, ValueError):
    """Latitude or longitude outside the valid range."""


class UnknownConditionError(WeathrError, ValueError):
    """A simulation name did not match any weather condition."""

    def __init__(self, name: str, valid: Iterable[str]):
        self.name = name
        self.valid = list(valid)
        super().__init__(
            f"Unknown weather condition '{name}'. Valid conditions: {', '.join(self.valid)}"
        )


class GeocodeNotFound(WeathrError):
    """Reverse geocoding found no settlement for the coordinates.

    A normal outcome: the HUD falls back to showing coordinates.
    """
