"""
Animation Loop - Ticks the simulation, refreshes the weather and draws frames.

The loop owns every piece of mutable animation state (AppState). Everything
that happens to it arrives as a LoopEvent on one queue and is handled in
order by the loop thread: ticks from the frame clock, fetch results from the
background fetch thread, key presses, resizes and quit requests.

Usage:
    from weathr import AnimationLoop, Config
    AnimationLoop(Config()).run()
"""

import logging
import math
import queue
import random
import signal
import sys
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Tuple

# Handle curses import for Windows compatibility
try:
    import curses
    CURSES_AVAILABLE = True
except ImportError:
    curses = None
    CURSES_AVAILABLE = False

from .client import OpenMeteoProvider
from .colors import ColorCapability, detect_color_capability
from .compositor import SceneCompositor
from .conditions import AnimationProfile, fireflies_visible, profile_for
from .config import Config
from .daynight import DayNightModel, SkyPalette, solar_day_fraction
from .errors import TerminalError
from .hud import format_hud, format_location
from .models import Location
from .protocol import WeatherProvider
from .render import CursesSurface, Renderer, TerminalSurface
from .resolver import ConditionResolver, Resolution, SimulationOverride
from .scene import Scene, WorldScene
from .weather import ParticleSystem, wind_drift

logger = logging.getLogger(__name__)

# q, Q and Ctrl-C (when the terminal delivers it as a key)
QUIT_KEYS = (ord('q'), ord('Q'), 3)


class LoopState(Enum):
    """Lifecycle of the animation loop."""
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class EventType(Enum):
    TICK = "tick"
    REFRESH_RESULT = "refresh_result"
    INPUT = "input"
    RESIZE = "resize"
    QUIT = "quit"


@dataclass(frozen=True)
class LoopEvent:
    """One entry in the loop's event queue."""
    type: EventType
    key: int = -1


@dataclass
class AppState:
    """Mutable animation state, touched only by the loop thread."""
    loop_state: LoopState = LoopState.STARTING
    resolution: Optional[Resolution] = None
    previous: Optional[Scene] = None
    width: int = 0
    height: int = 0
    frame: int = 0
    ticks: int = 0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AnimationLoop:
    """
    Drives one run of the weather scene.

    run() takes over the terminal through curses; run_on() drives any
    TerminalSurface and is what tests use.
    """

    def __init__(
        self,
        config: Config,
        simulation: Optional[SimulationOverride] = None,
        provider: Optional[WeatherProvider] = None,
        location: Optional[Location] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        now_fn: Callable[[], datetime] = _utc_now,
        capability: Optional[ColorCapability] = None,
        resolver: Optional[ConditionResolver] = None,
        night: bool = False,
        leaves: bool = False,
    ):
        self.config = config
        self.simulation = simulation
        self.location = location or Location(
            config.location.latitude,
            config.location.longitude,
            config.location.city,
            config.location.city_name_language,
        )
        self.rng = rng or random.Random()
        self.clock = clock
        self.now_fn = now_fn
        self.capability = capability if capability is not None else detect_color_capability()
        self.night = night or (simulation is not None and simulation.night)
        self.leaves = leaves or (simulation is not None and simulation.leaves)

        if resolver is None:
            if provider is None and simulation is None:
                provider = OpenMeteoProvider()
            resolver = ConditionResolver(
                provider,
                self.location,
                units=config.units,
                refresh_interval=config.refresh_interval,
                clock=clock,
                simulation=simulation,
                silent=config.silent,
            )
        self.resolver = resolver
        self.resolver.on_result = self._on_fetch_result

        self.tick_interval = 1.0 / config.fps
        self.state = AppState()
        self.events: "queue.Queue[LoopEvent]" = queue.Queue()
        self.world = WorldScene(0, 0)
        self.particles = ParticleSystem(0, 0, rng=self.rng)
        self.compositor = SceneCompositor()
        self.surface: Optional[TerminalSurface] = None
        self.renderer: Optional[Renderer] = None

        self._next_tick = 0.0
        self._daynight: Optional[DayNightModel] = None
        self._daynight_day: Optional[Tuple[int, int]] = None
        self._previous_handlers = {}

    @property
    def loop_state(self) -> LoopState:
        return self.state.loop_state

    def run(self):
        """Run in the terminal until the user quits."""
        if not CURSES_AVAILABLE:
            if sys.platform == 'win32':
                print("Error: curses library not available on Windows.")
                print("")
                print("Try: pip install windows-curses")
            else:
                print("Error: curses library not available.")
            sys.exit(1)
        try:
            curses.wrapper(self._main_loop)
        except curses.error as e:
            # setupterm, start_color, getch and friends
            raise TerminalError(str(e) or "curses call failed") from e

    def _main_loop(self, screen):
        """Main curses loop."""
        surface = CursesSurface(screen, self.capability)
        self.run_on(surface)

    def run_on(self, surface: TerminalSurface, max_ticks: Optional[int] = None) -> int:
        """
        Run on a surface until quit (or max_ticks ticks). Returns the tick count.

        TerminalError propagates after the loop has stopped cleanly.
        """
        self.surface = surface
        self.renderer = Renderer(surface)
        self.state = AppState()
        logger.info(f"Starting animation ({self.renderer.capability.value} color, {self.config.fps} fps)")

        try:
            self._install_signal_handlers()
            self._resize(*surface.size())

            self.state.resolution = self.resolver.start()
            self._tick(0.0)
            self._next_tick = self.clock() + self.tick_interval

            self.state.loop_state = LoopState.RUNNING
            while self.state.loop_state is LoopState.RUNNING:
                if max_ticks is not None and self.state.ticks >= max_ticks:
                    break
                self._step()
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            self._stop()

        return self.state.ticks

    def request_quit(self):
        """Ask the loop to stop after the current event. Thread-safe."""
        self.events.put(LoopEvent(EventType.QUIT))

    def _stop(self):
        self.state.loop_state = LoopState.STOPPING
        self.resolver.cancel()
        self._restore_signal_handlers()
        logger.info(f"Animation stopped after {self.state.ticks} ticks")

    def _install_signal_handlers(self):
        if threading.current_thread() is not threading.main_thread():
            return
        # Handle terminal resize (Unix only - Windows doesn't have SIGWINCH)
        if hasattr(signal, 'SIGWINCH'):
            self._previous_handlers[signal.SIGWINCH] = signal.signal(
                signal.SIGWINCH, lambda *_: self.events.put(LoopEvent(EventType.RESIZE)))
        self._previous_handlers[signal.SIGTERM] = signal.signal(
            signal.SIGTERM, lambda *_: self.request_quit())

    def _restore_signal_handlers(self):
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        self._previous_handlers = {}

    def _on_fetch_result(self):
        self.events.put(LoopEvent(EventType.REFRESH_RESULT))

    def _step(self):
        """Wait for input or the next tick, then handle every queued event."""
        surface = self.surface
        wait = max(0.0, self._next_tick - self.clock())
        surface.set_input_timeout(int(math.ceil(wait * 1000)))

        key = surface.read_key()
        if key != -1:
            if CURSES_AVAILABLE and key == curses.KEY_RESIZE:
                self.events.put(LoopEvent(EventType.RESIZE))
            else:
                self.events.put(LoopEvent(EventType.INPUT, key))

        if surface.size() != (self.state.width, self.state.height):
            self.events.put(LoopEvent(EventType.RESIZE))

        now = self.clock()
        if now >= self._next_tick:
            self.events.put(LoopEvent(EventType.TICK))
            self._next_tick += self.tick_interval
            if self._next_tick < now:
                # Fell behind; skip the missed ticks instead of bursting
                self._next_tick = now + self.tick_interval

        while self.state.loop_state is LoopState.RUNNING:
            try:
                event = self.events.get_nowait()
            except queue.Empty:
                break
            self._handle_event(event)

    def _handle_event(self, event: LoopEvent):
        if event.type is EventType.TICK:
            self._tick(self.tick_interval)
        elif event.type is EventType.REFRESH_RESULT:
            resolution = self.resolver.poll()
            if resolution is not None:
                self.state.resolution = resolution
                logger.debug(f"Condition now {resolution.condition.display_name} ({resolution.source})")
        elif event.type is EventType.INPUT:
            if event.key in QUIT_KEYS:
                logger.info("Quit requested")
                self.state.loop_state = LoopState.STOPPING
        elif event.type is EventType.RESIZE:
            self.surface.handle_resize()
            width, height = self.surface.size()
            if (width, height) != (self.state.width, self.state.height):
                self._resize(width, height)
        elif event.type is EventType.QUIT:
            self.state.loop_state = LoopState.STOPPING

    def _resize(self, width: int, height: int):
        logger.debug(f"Viewport {width}x{height}")
        self.state.width, self.state.height = width, height
        self.world.update_size(width, height)
        self.particles.resize(width, height, self.world.horizon_row, chimney=self.world.chimney_top)
        self.state.previous = None
        if self.renderer is not None:
            self.renderer.invalidate()

    def _tick(self, dt: float):
        """Advance the simulation one step and draw the frame."""
        self.resolver.maybe_refresh()

        sky = self.sky()
        resolution = self.state.resolution
        fireflies = False
        if resolution is None:
            profile, drift = AnimationProfile(), 0.0
        else:
            profile = profile_for(resolution.condition)
            reading = resolution.reading
            drift = wind_drift(reading.wind_kmh, reading.wind_direction) if reading else 0.0
            if reading is not None:
                fireflies = fireflies_visible(resolution.condition, reading.temperature_c, sky.is_night)
        self.particles.set_profile(profile, drift, self.leaves, fireflies)
        if dt > 0:
            self.particles.update(dt)

        scene = self.compose(sky)
        self.renderer.render(self.state.previous, scene)
        self.state.previous = scene
        self.state.frame += 1
        if dt > 0:
            self.state.ticks += 1

    def compose(self, sky: Optional[SkyPalette] = None) -> Scene:
        """Build the current frame without drawing it."""
        hud = None
        if not self.config.hide_hud:
            resolution = self.state.resolution
            loc = self.config.location
            hud = format_hud(
                resolution.condition if resolution else None,
                resolution.reading if resolution else None,
                self.config.units,
                format_location(self.location.latitude, self.location.longitude,
                                self.location.city, loc.display, loc.hide),
                warning=resolution.warning if resolution else None,
                frame=self.state.frame,
            )
        if sky is None:
            sky = self.sky()
        return self.compositor.compose(sky, self.world, self.particles, hud)

    def sky(self) -> SkyPalette:
        """Sky palette for the current moment at this location."""
        now = self.now_fn()
        day = (now.year, now.timetuple().tm_yday)
        if self._daynight is None or day != self._daynight_day:
            self._daynight = DayNightModel.for_location(
                self.location.latitude, day[1], self.config.twilight_minutes)
            self._daynight_day = day
            logger.debug(f"Day/night for {day}: {self._daynight!r}")
        return self._daynight.sky_for(
            solar_day_fraction(now, self.location.longitude),
            self.state.width,
            self.state.height,
            night_override=self.night,
        )
