"""
Weather Provider Protocol

Defines the abstract interface any weather source must follow to feed the
animation core.

Usage:
    from weathr.protocol import WeatherProvider, FetchResult

    class MyProvider(WeatherProvider):
        def fetch(self, location, units):
            return FetchResult.ok(RawReading(weather_code=0, temperature=20.0))
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .errors import NetworkFailure
from .models import Location, RawReading, WeatherUnits


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one fetch: either a reading or a typed failure."""
    reading: Optional[RawReading] = None
    error: Optional[NetworkFailure] = None

    @classmethod
    def ok(cls, reading: RawReading) -> 'FetchResult':
        return cls(reading=reading)

    @classmethod
    def fail(cls, error: NetworkFailure) -> 'FetchResult':
        return cls(error=error)

    @property
    def succeeded(self) -> bool:
        return self.reading is not None


class WeatherProvider(ABC):
    """
    Abstract interface for a current-weather source.

    fetch() must not raise: every failure comes back as FetchResult.fail().
    It is called from a background thread.
    """

    name: str = "provider"

    @abstractmethod
    def fetch(self, location: Location, units: WeatherUnits) -> FetchResult:
        """Fetch the current reading for a location."""
        pass
