"""
Shared fakes for the weathr tests: a frame clock, a terminal surface and a
weather provider, none of which touch a real terminal or the network.
"""

import os
import sys
from typing import Dict, List, Optional, Tuple

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from weathr.colors import NEUTRAL, ColorCapability, Style
from weathr.errors import NetworkFailure
from weathr.models import RawReading
from weathr.protocol import FetchResult, WeatherProvider
from weathr.render import CellUpdate, TerminalSurface


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeSurface(TerminalSurface):
    """
    In-memory terminal.

    read_key() pops scripted keys and advances the clock by the input
    timeout, as a blocking getch() would. on_flush is called after every
    frame so tests can inspect the loop mid-run.
    """

    def __init__(self, width: int = 80, height: int = 24,
                 capability: ColorCapability = ColorCapability.TRUECOLOR,
                 clock: Optional[FakeClock] = None, keys: Optional[List[int]] = None):
        self.width = width
        self.height = height
        self._capability = capability
        self.clock = clock
        self.keys = list(keys or [])
        self.timeout_ms = 0
        self.cells: Dict[Tuple[int, int], Tuple[str, Style]] = {}
        self.draw_calls: List[List[CellUpdate]] = []
        self.clears = 0
        self.flushes = 0
        self.resize_notifications = 0
        self.on_flush = None

    @property
    def capability(self) -> ColorCapability:
        return self._capability

    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def draw(self, updates: List[CellUpdate]):
        self.draw_calls.append(list(updates))
        for u in updates:
            self.cells[(u.row, u.col)] = (u.glyph, u.style)

    def clear(self):
        self.clears += 1
        self.cells.clear()

    def flush(self):
        self.flushes += 1
        if self.on_flush is not None:
            self.on_flush()

    def read_key(self) -> int:
        if self.clock is not None:
            self.clock.advance(max(self.timeout_ms, 1) / 1000.0)
        if self.keys:
            return self.keys.pop(0)
        return -1

    def set_input_timeout(self, milliseconds: int):
        self.timeout_ms = milliseconds

    def handle_resize(self):
        self.resize_notifications += 1

    def text(self, row: int) -> str:
        return ''.join(self.cells.get((row, c), (' ', NEUTRAL))[0] for c in range(self.width))


class FakeProvider(WeatherProvider):
    """Returns queued results in order, repeating the last one."""

    name = "fake"

    def __init__(self, *results: FetchResult):
        self.results = list(results) or [FetchResult.ok(RawReading(weather_code=61, temperature=12.0))]
        self.calls = 0

    def fetch(self, location, units) -> FetchResult:
        self.calls += 1
        index = min(self.calls, len(self.results)) - 1
        return self.results[index]


def run_now(target):
    """Dispatcher that runs the fetch on the calling thread."""
    target()


class DeferredDispatch:
    """Dispatcher that holds fetches until run_pending() is called."""

    def __init__(self):
        self.pending = []

    def __call__(self, target):
        self.pending.append(target)

    def run_pending(self):
        pending, self.pending = self.pending, []
        for target in pending:
            target()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ok_reading():
    return RawReading(weather_code=61, temperature=12.5, wind_speed=20.0,
                      wind_direction=270.0, precipitation=1.2)


@pytest.fixture
def network_down():
    return FetchResult.fail(NetworkFailure("Unreachable: connection refused", "https://example.invalid"))
