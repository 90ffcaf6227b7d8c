"""
Tests for the AnimationLoop.

The loop is driven on a FakeSurface with a FakeClock, so every run is
deterministic and finishes instantly. Simulated weather is used unless a
test wires a FakeProvider through its own resolver.
"""

import os
import random
import sys
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import FakeClock, FakeProvider, FakeSurface, run_now

from weathr import app
from weathr.app import AnimationLoop, EventType, LoopEvent, LoopState
from weathr.colors import NEUTRAL, ColorCapability, Colors
from weathr.conditions import ParticleKind, WeatherCondition
from weathr.config import Config
from weathr.errors import TerminalError
from weathr.models import Location, RawReading
from weathr.protocol import FetchResult
from weathr.resolver import ConditionResolver, SimulationOverride
from weathr.utils.error_handling import get_error_tally

# Late morning in Berlin, local solar time
MORNING = datetime(2024, 6, 21, 10, 0, tzinfo=timezone.utc)
BERLIN = Location(52.52, 13.41)


@pytest.fixture(autouse=True)
def clear_errors():
    get_error_tally().clear()


def make_loop(condition=WeatherCondition.CLEAR, night=False, leaves=False, config=None,
              clock=None, **kwargs):
    simulation = SimulationOverride(condition, night, leaves) if condition else None
    return AnimationLoop(
        config or Config(),
        simulation=simulation,
        rng=random.Random(1),
        clock=clock or FakeClock(),
        now_fn=lambda: MORNING,
        capability=ColorCapability.TRUECOLOR,
        night=night,
        leaves=leaves,
        **kwargs,
    )


def make_surface(loop, width=60, height=20, **kwargs):
    return FakeSurface(width, height, clock=loop.clock, **kwargs)


# ============================================================================
# Scenarios
# ============================================================================

class TestRainScenario:
    def test_rain_falls_and_hud_shows_rain(self):
        loop = make_loop(WeatherCondition.RAIN)
        surface = make_surface(loop)
        ticks = loop.run_on(surface, max_ticks=20)

        assert ticks == 20
        assert surface.text(1)[2:].startswith("Weather: Rain | Temp: 20.0°C")
        assert loop.particles.counts().get(ParticleKind.RAIN, 0) > 0
        assert loop.particles.lightning.flash_count == 0
        assert loop.loop_state is LoopState.STOPPING

    def test_status_line_contents(self):
        loop = make_loop(WeatherCondition.RAIN)
        surface = make_surface(loop, width=140)
        loop.run_on(surface, max_ticks=1)
        line = surface.text(1)
        assert "Wind: 10.0 km/h" in line
        assert "Precip: 2.5 mm" in line
        assert "Location: 52.52°N, 13.41°E" in line
        assert "Press 'q' to quit" in line


class TestNightStormScenario:
    def test_flashes_are_short_and_revert(self):
        loop = make_loop(WeatherCondition.THUNDERSTORM_HAIL, night=True)
        surface = make_surface(loop, width=50, height=16)
        frames = []

        def record():
            flashing = loop.particles.flash_active
            sky_bg = surface.cells[(0, 0)][1].bg
            frames.append(flashing)
            assert (sky_bg == Colors.FLASH) == flashing

        surface.on_flush = record
        loop.run_on(surface, max_ticks=1500)

        assert loop.sky().is_night
        assert loop.particles.lightning.flash_count > 0
        run = 0
        for flashing in frames:
            run = run + 1 if flashing else 0
            assert run <= 2

    def test_hail_falls_with_rain(self):
        loop = make_loop(WeatherCondition.THUNDERSTORM_HAIL, night=True)
        loop.run_on(make_surface(loop), max_ticks=60)
        counts = loop.particles.counts()
        assert counts.get(ParticleKind.RAIN, 0) > 0
        assert counts.get(ParticleKind.HAIL, 0) > 0


class TestLeavesScenario:
    def test_leaves_on_clear_day(self):
        loop = make_loop(WeatherCondition.CLEAR, leaves=True)
        loop.run_on(make_surface(loop), max_ticks=200)
        counts = loop.particles.counts()
        assert counts.get(ParticleKind.LEAF, 0) > 0
        assert not any(kind.is_precipitation for kind in counts)
        assert not loop.sky().is_night

    def test_leaves_flag_with_live_weather(self):
        clock = FakeClock()
        provider = FakeProvider(FetchResult.ok(RawReading(weather_code=0, temperature=15.0)))
        resolver = ConditionResolver(provider, BERLIN, clock=clock, dispatch=run_now)
        loop = make_loop(None, leaves=True, clock=clock, resolver=resolver)
        assert loop.leaves

        loop.run_on(make_surface(loop), max_ticks=200)

        assert loop.state.resolution.condition is WeatherCondition.CLEAR
        assert loop.particles.counts().get(ParticleKind.LEAF, 0) > 0


class TestChimneyAndFireflies:
    def test_smoke_rises_from_the_house(self):
        loop = make_loop(WeatherCondition.CLOUDY)
        loop.run_on(make_surface(loop), max_ticks=40)
        assert loop.particles.chimney == loop.world.chimney_top
        smoke = [p for p in loop.particles.particles if p.kind is ParticleKind.SMOKE]
        assert smoke
        assert all(p.row <= loop.world.chimney_top[0] for p in smoke)

    def test_fireflies_on_warm_clear_night(self):
        loop = make_loop(WeatherCondition.CLEAR, night=True)
        loop.run_on(make_surface(loop), max_ticks=150)
        assert loop.sky().is_night
        assert loop.particles.counts().get(ParticleKind.FIREFLY, 0) > 0

    def test_no_fireflies_by_day(self):
        loop = make_loop(WeatherCondition.CLEAR)
        loop.run_on(make_surface(loop), max_ticks=150)
        assert ParticleKind.FIREFLY not in loop.particles.counts()

    def test_no_fireflies_on_cold_night(self):
        clock = FakeClock()
        provider = FakeProvider(FetchResult.ok(RawReading(weather_code=0, temperature=4.0)))
        resolver = ConditionResolver(provider, BERLIN, clock=clock, dispatch=run_now)
        loop = make_loop(None, night=True, clock=clock, resolver=resolver)
        loop.run_on(make_surface(loop), max_ticks=150)
        assert loop.state.resolution.condition is WeatherCondition.CLEAR
        assert ParticleKind.FIREFLY not in loop.particles.counts()


# ============================================================================
# Loop mechanics
# ============================================================================

class TestInput:
    @pytest.mark.parametrize("key", [ord('q'), ord('Q'), 3])
    def test_quit_keys(self, key):
        loop = make_loop()
        surface = make_surface(loop, keys=[-1, -1, key])
        ticks = loop.run_on(surface, max_ticks=1000)
        assert ticks < 10
        assert loop.loop_state is LoopState.STOPPING

    def test_other_keys_ignored(self):
        loop = make_loop()
        surface = make_surface(loop, keys=[ord('x'), ord(' ')])
        assert loop.run_on(surface, max_ticks=5) == 5

    def test_quit_request_from_another_thread(self):
        loop = make_loop()
        surface = make_surface(loop)
        surface.on_flush = loop.request_quit
        assert loop.run_on(surface, max_ticks=1000) <= 1


class TestResize:
    def test_shrinking_terminal(self):
        loop = make_loop(WeatherCondition.SNOW)
        surface = make_surface(loop, width=80, height=24)
        frames = [0]

        def shrink():
            frames[0] += 1
            if frames[0] == 30:
                surface.width, surface.height = 40, 12

        surface.on_flush = shrink
        loop.run_on(surface, max_ticks=40)

        assert (loop.state.width, loop.state.height) == (40, 12)
        assert loop.world.width == 40
        assert surface.resize_notifications >= 1
        assert surface.clears == 2
        for p in loop.particles.particles:
            assert p.in_bounds(40, 12)

    def test_resize_event(self):
        loop = make_loop()
        surface = make_surface(loop)
        loop.run_on(surface, max_ticks=1)
        surface.width = 30
        loop.state.loop_state = LoopState.RUNNING
        loop._handle_event(LoopEvent(EventType.RESIZE))
        assert loop.state.width == 30
        assert loop.state.previous is None

    def test_tiny_terminal(self):
        loop = make_loop(WeatherCondition.RAIN_SHOWERS)
        surface = make_surface(loop, width=5, height=3)
        assert loop.run_on(surface, max_ticks=20) == 20


class CursesError(Exception):
    pass


class TestCursesRun:
    def fake_curses(self, monkeypatch, wrapper):
        monkeypatch.setattr(app, "curses", SimpleNamespace(wrapper=wrapper, error=CursesError))
        monkeypatch.setattr(app, "CURSES_AVAILABLE", True)

    def test_setup_failure_becomes_terminal_error(self, monkeypatch):
        def no_terminal(main_loop):
            raise CursesError("setupterm: could not find terminal")

        self.fake_curses(monkeypatch, no_terminal)
        with pytest.raises(TerminalError) as exc_info:
            make_loop().run()
        assert "could not find terminal" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, CursesError)

    def test_failure_inside_loop_becomes_terminal_error(self, monkeypatch):
        def wrapper(main_loop):
            raise CursesError()

        self.fake_curses(monkeypatch, wrapper)
        with pytest.raises(TerminalError, match="curses call failed"):
            make_loop().run()

    def test_wrapper_runs_main_loop(self, monkeypatch):
        screens = []
        loop = make_loop()
        monkeypatch.setattr(loop, "_main_loop", screens.append)
        self.fake_curses(monkeypatch, lambda main_loop: main_loop("screen"))
        loop.run()
        assert screens == ["screen"]


class TestRendering:
    def test_hide_hud(self):
        loop = make_loop(WeatherCondition.RAIN, config=Config(hide_hud=True))
        surface = make_surface(loop)
        loop.run_on(surface, max_ticks=5)
        assert all("Weather" not in surface.text(r) for r in range(surface.height))

    def test_monochrome_terminal(self):
        loop = make_loop(WeatherCondition.RAIN)
        surface = make_surface(loop, capability=ColorCapability.NONE)
        loop.run_on(surface, max_ticks=5)
        assert all(style == NEUTRAL for _, style in surface.cells.values())

    def test_only_changes_redrawn(self):
        loop = make_loop(WeatherCondition.OVERCAST)
        surface = make_surface(loop)
        loop.run_on(surface, max_ticks=5)
        assert surface.clears == 1
        first, rest = surface.draw_calls[0], surface.draw_calls[1:]
        assert len(first) == 60 * 20
        assert all(len(updates) < len(first) for updates in rest)

    def test_forced_night(self):
        loop = make_loop(WeatherCondition.CLEAR, night=True)
        loop.run_on(make_surface(loop), max_ticks=1)
        assert loop.sky().is_night
        assert loop.sky().celestial == "moon"


class TestLiveWeather:
    def make_live_loop(self, *results, clock=None):
        clock = clock or FakeClock()
        resolver = ConditionResolver(FakeProvider(*results), BERLIN, clock=clock, dispatch=run_now)
        loop = make_loop(None, clock=clock, resolver=resolver)
        return loop, resolver

    def test_loading_then_reading(self, ok_reading):
        loop, resolver = self.make_live_loop(FetchResult.ok(ok_reading))
        surface = make_surface(loop, width=120)
        first_frames = []
        surface.on_flush = lambda: first_frames.append(surface.text(1))
        loop.run_on(surface, max_ticks=3)

        assert "Weather: Loading... |" in first_frames[0]
        assert "Weather: Rain | Temp: 12.5°C" in surface.text(1)
        assert loop.state.resolution.source == "fake"
        assert not resolver.in_flight

    def test_fetch_failure_shows_clear_and_warning(self, network_down):
        loop, _ = self.make_live_loop(network_down)
        surface = make_surface(loop, width=120)
        loop.run_on(surface, max_ticks=3)
        assert "Weather: Clear" in surface.text(1)
        assert "Weather unavailable" in surface.text(2)

    def test_periodic_refresh(self, ok_reading):
        clock = FakeClock()
        provider = FakeProvider(FetchResult.ok(ok_reading))
        resolver = ConditionResolver(provider, BERLIN, clock=clock, dispatch=run_now,
                                     refresh_interval=1.0)
        loop = make_loop(None, clock=clock, resolver=resolver)
        loop.run_on(make_surface(loop), max_ticks=25)
        assert provider.calls >= 2

    def test_wind_drives_drift(self, ok_reading):
        loop, _ = self.make_live_loop(FetchResult.ok(ok_reading))
        loop.run_on(make_surface(loop), max_ticks=3)
        assert loop.particles.drift > 0

    def test_stop_cancels_fetches(self, ok_reading):
        loop, resolver = self.make_live_loop(FetchResult.ok(ok_reading))
        loop.run_on(make_surface(loop), max_ticks=2)
        assert not resolver.in_flight
