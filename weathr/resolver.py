"""
Condition Resolver - Turns fetched readings or a simulation override into the
(WeatherCondition, Reading) pair the animation runs on.

Weather fetches run on a background thread. Their results come back through a
single-slot FetchInbox that the animation loop polls once per tick, so the
loop only ever swaps in a complete Resolution. At most one fetch is in flight.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Union

from .client import simulated_reading
from .conditions import WeatherCondition, condition_from_code
from .errors import DataUnavailable, NetworkFailure
from .models import Location, RawReading, Reading, WeatherUnits
from .protocol import FetchResult, WeatherProvider
from .utils.error_handling import ErrorCategory, handle_error

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = 300.0


@dataclass(frozen=True)
class SimulationOverride:
    """--simulate <condition> with the optional --night / --leaves flags."""
    condition: WeatherCondition
    night: bool = False
    leaves: bool = False


@dataclass(frozen=True)
class RemoteReading:
    """A reading returned by the weather provider."""
    raw: RawReading


Source = Union[SimulationOverride, RemoteReading]


@dataclass(frozen=True)
class Resolution:
    """
    What the loop renders until the next refresh.

    reading is None only for the first-run fallback, when no fetch has ever
    succeeded. stale marks a reading kept over from an earlier fetch.
    """
    condition: WeatherCondition
    reading: Optional[Reading]
    source: str
    warning: Optional[str] = None
    stale: bool = False


class FetchInbox:
    """
    One-shot handoff from the fetch thread to the loop.

    Each dispatch gets a generation token; a delivery carrying an old token
    (after cancel() or a newer dispatch) is dropped.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._slot: Optional[FetchResult] = None
        self._generation = 0

    def open(self) -> int:
        """Start a new generation and return its token."""
        with self._lock:
            self._generation += 1
            self._slot = None
            return self._generation

    def deliver(self, token: int, result: FetchResult) -> bool:
        with self._lock:
            if token != self._generation:
                return False
            self._slot = result
            return True

    def take(self) -> Optional[FetchResult]:
        with self._lock:
            result, self._slot = self._slot, None
            return result

    def cancel(self):
        """Discard whatever is pending and anything still on its way."""
        with self._lock:
            self._generation += 1
            self._slot = None


def _start_thread(target: Callable[[], None]):
    thread = threading.Thread(target=target, daemon=True, name="weathr-fetch")
    thread.start()


class ConditionResolver:
    """
    Resolves the current condition for the animation loop.

    A simulation override always wins and never touches the network.
    """

    def __init__(
        self,
        provider: Optional[WeatherProvider],
        location: Location,
        units: Optional[WeatherUnits] = None,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        simulation: Optional[SimulationOverride] = None,
        silent: bool = False,
        dispatch: Callable[[Callable[[], None]], None] = _start_thread,
    ):
        if provider is None and simulation is None:
            raise ValueError("Either a provider or a simulation override is required")
        self.provider = provider
        self.location = location
        self.units = units or WeatherUnits()
        self.refresh_interval = refresh_interval
        self.simulation = simulation
        self.silent = silent
        self._clock = clock
        self._dispatch = dispatch

        self.inbox = FetchInbox()
        self._in_flight = False
        self._last_dispatch: Optional[float] = None
        self._last_good: Optional[Resolution] = None
        self._current: Optional[Resolution] = None
        self._simulated: Dict[SimulationOverride, Tuple[WeatherCondition, Reading]] = {}
        self.fetch_count = 0
        # Called from the fetch thread after a result lands in the inbox
        self.on_result: Optional[Callable[[], None]] = None

    @property
    def current(self) -> Optional[Resolution]:
        """Latest resolution, None while the first fetch is pending."""
        return self._current

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def resolve(self, source: Source) -> Tuple[WeatherCondition, Reading]:
        """
        Map a source to a (condition, reading) pair.

        Repeated calls with the same override return the cached pair.
        """
        if isinstance(source, SimulationOverride):
            cached = self._simulated.get(source)
            if cached is None:
                raw = simulated_reading(source.condition, source.night, self.units)
                cached = (source.condition, Reading.from_raw(raw))
                self._simulated[source] = cached
            return cached

        if isinstance(source, RemoteReading):
            return condition_from_code(source.raw.weather_code), Reading.from_raw(source.raw)

        raise TypeError(f"Cannot resolve {type(source).__name__}")

    def start(self, now: Optional[float] = None) -> Optional[Resolution]:
        """
        Initial resolution.

        With an override the resolution is immediate. Otherwise the first
        fetch is dispatched and the result arrives through poll().
        """
        if self.simulation is not None:
            condition, reading = self.resolve(self.simulation)
            self._current = Resolution(condition, reading, "simulated")
            logger.info(f"Simulating {condition.display_name}")
            return self._current

        self.maybe_refresh(now)
        return self._current

    def maybe_refresh(self, now: Optional[float] = None) -> bool:
        """
        Dispatch a background fetch if the refresh interval has elapsed.

        Returns True if a fetch was started. Skips while one is in flight.
        """
        if self.simulation is not None:
            return False

        now = self._clock() if now is None else now
        if self._in_flight:
            return False
        if self._last_dispatch is not None and now - self._last_dispatch < self.refresh_interval:
            return False

        self._in_flight = True
        self._last_dispatch = now
        self.fetch_count += 1
        token = self.inbox.open()
        provider, location, units = self.provider, self.location, self.units

        def work():
            try:
                result = provider.fetch(location, units)
            except Exception as e:
                # Providers should not raise; treat it as a network failure
                handle_error(e, "weather fetch", ErrorCategory.NETWORK)
                result = FetchResult.fail(NetworkFailure(str(e)))
            if not self.inbox.deliver(token, result):
                logger.debug("Discarded late weather result")
            elif self.on_result is not None:
                self.on_result()

        logger.debug(f"Dispatching weather fetch #{self.fetch_count}")
        self._dispatch(work)
        return True

    def poll(self) -> Optional[Resolution]:
        """Apply a delivered fetch result, if any. Called once per tick."""
        result = self.inbox.take()
        if result is None:
            return None
        self._in_flight = False
        self._current = self._apply(result)
        return self._current

    def cancel(self):
        """Abandon any in-flight fetch; its result will be discarded."""
        self.inbox.cancel()
        self._in_flight = False

    def _apply(self, result: FetchResult) -> Resolution:
        if result.succeeded:
            condition, reading = self.resolve(RemoteReading(result.reading))
            resolution = Resolution(condition, reading, self.provider.name)
            self._last_good = resolution
            return resolution

        error = result.error or NetworkFailure("unknown fetch failure")
        handle_error(error, "weather refresh", ErrorCategory.NETWORK)

        if self._last_good is not None:
            # Keep showing the last good reading
            warning = None if self.silent else f"Weather update failed ({error}), showing last reading"
            return Resolution(
                self._last_good.condition,
                self._last_good.reading,
                self._last_good.source,
                warning=warning,
                stale=True,
            )

        # Changes what is displayed, so never suppressed
        unavailable = DataUnavailable(f"Weather unavailable: {error}")
        logger.warning(f"{unavailable}; showing {WeatherCondition.CLEAR.display_name}")
        return Resolution(
            WeatherCondition.CLEAR,
            None,
            "fallback",
            warning=f"{unavailable} (showing Clear)",
        )
