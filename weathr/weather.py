"""
Weather Effects - The particle field for the active animation profile.

Rain, snow, hail, fog banks, autumn leaves, chimney smoke and fireflies are
Particles owned by the ParticleSystem. Randomness comes only from the injected random.Random and is
used for spawn position, spawn timing and lightning timing; moving an
existing particle is deterministic.
"""

import logging
import math
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .actors import AirplaneFleet, LightningFlash
from .colors import Colors, Style
from .conditions import AnimationProfile, ParticleKind

logger = logging.getLogger(__name__)


# Glyphs per kind; rain picks by drift direction instead
KIND_CHARS: Dict[ParticleKind, str] = {
    ParticleKind.RAIN: "|",
    ParticleKind.DRIZZLE: ",'",
    ParticleKind.SLEET: ":;",
    ParticleKind.SNOW: "*.+",
    ParticleKind.SNOW_GRAIN: ".·",
    ParticleKind.HAIL: "o°",
    ParticleKind.LEAF: "&%",
    ParticleKind.FOG: "~=-",
    ParticleKind.SMOKE: "()~",
    ParticleKind.FIREFLY: "*",
}

KIND_STYLES: Dict[ParticleKind, Tuple[Style, ...]] = {
    ParticleKind.RAIN: (Colors.RAIN_BRIGHT, Colors.RAIN_DIM),
    ParticleKind.DRIZZLE: (Colors.DRIZZLE,),
    ParticleKind.SLEET: (Colors.SLEET, Colors.RAIN_DIM),
    ParticleKind.SNOW: (Colors.SNOW_BRIGHT, Colors.SNOW_DIM),
    ParticleKind.SNOW_GRAIN: (Colors.SNOW_DIM,),
    ParticleKind.HAIL: (Colors.HAIL,),
    ParticleKind.LEAF: (Colors.LEAF_ORANGE, Colors.LEAF_RED, Colors.LEAF_YELLOW),
    ParticleKind.FOG: (Colors.FOG,),
    ParticleKind.SMOKE: (Colors.SMOKE,),
    ParticleKind.FIREFLY: (Colors.FIREFLY,),
}

# Hail is sparse next to the rain it falls with
KIND_DENSITY_SCALE: Dict[ParticleKind, float] = {
    ParticleKind.HAIL: 0.15,
}

# How strongly wind pushes each kind sideways
WIND_RESPONSE: Dict[ParticleKind, float] = {
    ParticleKind.RAIN: 1.0,
    ParticleKind.DRIZZLE: 1.5,
    ParticleKind.SLEET: 1.0,
    ParticleKind.SNOW: 2.0,
    ParticleKind.SNOW_GRAIN: 1.5,
    ParticleKind.HAIL: 0.5,
    ParticleKind.LEAF: 2.5,
    ParticleKind.FOG: 0.0,
    ParticleKind.SMOKE: 1.5,
    ParticleKind.FIREFLY: 0.0,
}

SNOW_KINDS = (ParticleKind.SNOW, ParticleKind.SNOW_GRAIN)

# Leaf overlay parameters (orthogonal to any profile's precipitation)
LEAF_DENSITY = 0.02
LEAF_FALL_SPEED = (1.0, 2.0)
LEAF_DRIFT = (-1.5, 1.5)
LEAF_LIFETIME = (200, 400)

# Chimney smoke: puffs per second, rise speed (rows/s, upward), wander
SMOKE_RATE = 3.0
SMOKE_RISE = (0.8, 1.5)
SMOKE_WANDER = (-0.3, 0.3)
SMOKE_LIFETIME = (30, 60)
# Puffs thin out for their last ticks
SMOKE_FADE_TICKS = 10

# Fireflies hover in a band just above the ground
FIREFLY_BAND = 6
FIREFLY_RATE = 2.0
FIREFLY_SPEED = 0.6
FIREFLY_LIFETIME = (40, 100)
# Ticks per blink phase (lit, then dim)
FIREFLY_BLINK = 5

AIRBORNE_KINDS = (ParticleKind.FOG, ParticleKind.SMOKE, ParticleKind.FIREFLY)

# Transient ground marks: (min ticks, max ticks)
SPLASH_LIFE = (2, 4)
SETTLE_LIFE = (30, 60)

# Wind speed (km/h) giving one column per second of drift
WIND_KMH_PER_COLUMN = 40.0
MAX_WIND_DRIFT = 3.0


@dataclass
class Particle:
    """One moving glyph. Position is fractional (row, col) in the viewport."""
    row: float
    col: float
    vrow: float
    vcol: float
    life: int
    glyph: str
    style: Style
    kind: ParticleKind

    def advance(self, dt: float):
        """Integrate position by velocity and use up one tick of life."""
        self.row += self.vrow * dt
        self.col += self.vcol * dt
        self.life -= 1

    @property
    def cell(self) -> Tuple[int, int]:
        return int(math.floor(self.row)), int(math.floor(self.col))

    def in_bounds(self, width: int, height: int) -> bool:
        return 0 <= self.row < height and 0 <= self.col < width


@dataclass
class Splash:
    """Short-lived mark where rain hit or snow settled."""
    row: int
    col: int
    glyph: str
    style: Style
    life: int


def wind_drift(speed_kmh: float, direction_degrees: float) -> float:
    """
    Sideways drift in columns per second.

    Meteorological direction is where the wind comes from, so a westerly
    (270) pushes particles to the right.
    """
    strength = min(MAX_WIND_DRIFT, max(0.0, speed_kmh) / WIND_KMH_PER_COLUMN)
    return math.sin(math.radians(direction_degrees + 180.0)) * strength


class ParticleSystem:
    """
    Owns the live particles and advances them once per tick.

    ground_row is the first row of the ground; precipitation reaching it
    ends there, leaving a splash (rain) or settled flake (snow). chimney is
    the cell smoke rises from, or None when the house is off-screen.
    """

    MAX_SPLASHES_PER_COLUMN = 2

    def __init__(self, width: int, height: int, rng: Optional[random.Random] = None,
                 ground_row: Optional[int] = None, lightning_probability: float = 0.03):
        self.width = max(0, width)
        self.height = max(0, height)
        self.ground_row = self.height if ground_row is None else ground_row
        self.rng = rng or random.Random()
        self.profile = AnimationProfile()
        self.drift = 0.0
        self.leaves = False
        self.fireflies = False
        self.chimney: Optional[Tuple[int, int]] = None
        self._particles: List[Particle] = []
        self._splashes: List[Splash] = []
        self.lightning = LightningFlash(self.rng, probability=lightning_probability)
        self.airplanes = AirplaneFleet(self.rng)
        self.tick_count = 0

    @property
    def particles(self) -> List[Particle]:
        return self._particles

    @property
    def splashes(self) -> List[Splash]:
        return self._splashes

    @property
    def flash_active(self) -> bool:
        return self.lightning.active

    @property
    def leaves_active(self) -> bool:
        """Leaves only fall when nothing else is falling."""
        return self.leaves and self.profile.leaves_allowed and not self.profile.has_precipitation

    @property
    def fireflies_active(self) -> bool:
        return self.fireflies and not self.profile.has_precipitation

    def set_profile(self, profile: AnimationProfile, drift: float = 0.0, leaves: bool = False,
                    fireflies: bool = False):
        """Switch profile. Existing precipitation finishes its fall."""
        if profile != self.profile:
            logger.debug(f"Particle profile -> {profile.kinds or 'none'} (lightning={profile.lightning})")
            if not profile.lightning:
                self.lightning.reset()
            if profile.has_precipitation:
                # Leaves and fireflies never share the sky with precipitation
                self._particles = [
                    p for p in self._particles
                    if p.kind not in (ParticleKind.LEAF, ParticleKind.FIREFLY)
                ]
        self.profile = profile
        self.drift = drift
        self.leaves = leaves
        self.fireflies = fireflies

    def resize(self, width: int, height: int, ground_row: Optional[int] = None,
               chimney: Optional[Tuple[int, int]] = None):
        """Drop particles outside the new bounds; no particle is moved."""
        self.width = max(0, width)
        self.height = max(0, height)
        self.ground_row = self.height if ground_row is None else ground_row
        self.chimney = chimney
        self._particles = [p for p in self._particles if p.in_bounds(self.width, self.height)]
        self._splashes = [
            s for s in self._splashes
            if 0 <= s.row < self.height and 0 <= s.col < self.width
        ]
        self.lightning.reset()
        self.airplanes.clear()

    def update(self, dt: float):
        """Advance one tick: age splashes, move particles, spawn new ones."""
        self.tick_count += 1

        for splash in self._splashes:
            splash.life -= 1
        self._splashes = [s for s in self._splashes if s.life > 0]

        survivors: List[Particle] = []
        for particle in self._particles:
            particle.advance(dt)
            if particle.life <= 0:
                continue
            if particle.kind is not ParticleKind.FOG and particle.row >= self.ground_row:
                if particle.kind not in AIRBORNE_KINDS:
                    self._land(particle)
                continue
            if not particle.in_bounds(self.width, self.height):
                continue
            if particle.kind is ParticleKind.SMOKE:
                self._fade_smoke(particle)
            elif particle.kind is ParticleKind.FIREFLY:
                self._blink(particle)
            survivors.append(particle)
        self._particles = survivors

        self._spawn(dt)

        self.lightning.tick(self.profile.lightning, self.width, self.ground_row)
        self.airplanes.update(dt, self.width, self.ground_row, enabled=self.profile.airplanes)

    def _land(self, particle: Particle):
        if not self.profile.splash:
            return
        col = int(math.floor(particle.col))
        row = self.ground_row
        if not (0 <= col < self.width and 0 <= row < self.height):
            return
        if len(self._splashes) >= self.width * self.MAX_SPLASHES_PER_COLUMN:
            return
        if particle.kind in SNOW_KINDS:
            splash = Splash(row, col, '_' if particle.kind is ParticleKind.SNOW else '.',
                            Colors.SNOW_SETTLED, self.rng.randint(*SETTLE_LIFE))
        elif particle.kind is ParticleKind.HAIL:
            splash = Splash(row, col, 'o', Colors.HAIL, self.rng.randint(*SPLASH_LIFE))
        else:
            splash = Splash(row, col, self.rng.choice('.o'), Colors.SPLASH, self.rng.randint(*SPLASH_LIFE))
        self._splashes.append(splash)

    def _spawn(self, dt: float):
        if self.width <= 0 or self.ground_row <= 0:
            return
        profile = self.profile
        for kind in profile.kinds:
            density = profile.density * KIND_DENSITY_SCALE.get(kind, 1.0)
            if kind is ParticleKind.FOG:
                self._spawn_fog(density, dt)
            else:
                self._spawn_falling(kind, density, profile.fall_speed, profile.drift,
                                    profile.lifetime, dt)

        if self.leaves_active:
            self._spawn_falling(ParticleKind.LEAF, LEAF_DENSITY, LEAF_FALL_SPEED,
                                LEAF_DRIFT, LEAF_LIFETIME, dt)
        if self.chimney is not None:
            self._spawn_smoke(dt)
        if self.fireflies_active:
            self._spawn_firefly(dt)

    def _spawn_smoke(self, dt: float):
        """Puffs leave the chimney and rise, leaning with the wind."""
        if self.rng.random() >= SMOKE_RATE * dt:
            return
        row, col = self.chimney
        if not (0 <= row < self.height and 0 <= col < self.width):
            return
        self._particles.append(Particle(
            row=float(row),
            col=col + self.rng.random() * 0.99,
            vrow=-self.rng.uniform(*SMOKE_RISE),
            vcol=self.drift * WIND_RESPONSE[ParticleKind.SMOKE] + self.rng.uniform(*SMOKE_WANDER),
            life=self.rng.randint(*SMOKE_LIFETIME),
            glyph=self.rng.choice(KIND_CHARS[ParticleKind.SMOKE]),
            style=Colors.SMOKE,
            kind=ParticleKind.SMOKE,
        ))

    def _spawn_firefly(self, dt: float):
        """Fireflies appear anywhere in the band above the ground, a few at a time."""
        limit = max(1, self.width // 10)
        if self.counts().get(ParticleKind.FIREFLY, 0) >= limit:
            return
        if self.rng.random() >= FIREFLY_RATE * dt:
            return
        top = max(0, self.ground_row - FIREFLY_BAND)
        self._particles.append(Particle(
            row=float(self.rng.randint(top, self.ground_row - 1)),
            col=self.rng.random() * (self.width - 0.01),
            vrow=self.rng.uniform(-FIREFLY_SPEED, FIREFLY_SPEED) / 2,
            vcol=self.rng.uniform(-FIREFLY_SPEED, FIREFLY_SPEED),
            life=self.rng.randint(*FIREFLY_LIFETIME),
            glyph='*',
            style=Colors.FIREFLY,
            kind=ParticleKind.FIREFLY,
        ))

    @staticmethod
    def _fade_smoke(particle: Particle):
        if particle.life <= SMOKE_FADE_TICKS:
            particle.glyph = '.'
            particle.style = Colors.SMOKE_FAINT

    @staticmethod
    def _blink(particle: Particle):
        lit = (particle.life // FIREFLY_BLINK) % 2 == 0
        particle.glyph = '*' if lit else '.'
        particle.style = Colors.FIREFLY if lit else Colors.FIREFLY_DIM

    def _spawn_falling(self, kind: ParticleKind, density: float, fall_speed: Tuple[float, float],
                       drift: Tuple[float, float], lifetime: Tuple[int, int], dt: float):
        chance = density * dt
        if chance <= 0:
            return
        wind = self.drift * WIND_RESPONSE.get(kind, 1.0)
        for column in range(self.width):
            if self.rng.random() >= chance:
                continue
            vrow = self.rng.uniform(*fall_speed)
            vcol = self.rng.uniform(*drift) + wind
            life = self.rng.randint(*lifetime)
            if kind.is_precipitation and vrow > 0:
                life = max(life, self.ticks_to_ground(vrow, dt))
            self._particles.append(Particle(
                row=0.0,
                col=column + self.rng.random() * 0.99,
                vrow=vrow,
                vcol=vcol,
                life=life,
                glyph=self._glyph_for(kind, vrow, vcol),
                style=self.rng.choice(KIND_STYLES[kind]),
                kind=kind,
            ))

    def ticks_to_ground(self, vrow: float, dt: float) -> int:
        """Ticks a particle falling at vrow needs to reach the ground row."""
        return int(math.ceil(self.ground_row / (vrow * dt))) + 1

    def _spawn_fog(self, density: float, dt: float):
        """Fog banks enter from the left edge and drift across the lower sky."""
        chance = density * dt
        top = self.ground_row // 3
        for row in range(top, self.ground_row):
            if self.rng.random() >= chance:
                continue
            self._particles.append(Particle(
                row=float(row),
                col=0.0,
                vrow=0.0,
                vcol=self.rng.uniform(*self.profile.drift),
                life=self.rng.randint(*self.profile.lifetime),
                glyph=self.rng.choice(KIND_CHARS[ParticleKind.FOG]),
                style=Colors.FOG,
                kind=ParticleKind.FOG,
            ))

    def _glyph_for(self, kind: ParticleKind, vrow: float, vcol: float) -> str:
        if kind is ParticleKind.RAIN:
            slant = vcol / vrow if vrow else 0.0
            if slant > 0.15:
                return '\\'
            if slant < -0.15:
                return '/'
            return '|'
        return self.rng.choice(KIND_CHARS[kind])

    def counts(self) -> Dict[ParticleKind, int]:
        """Live particles per kind."""
        result: Dict[ParticleKind, int] = {}
        for particle in self._particles:
            result[particle.kind] = result.get(particle.kind, 0) + 1
        return result
