"""
Weather Actors - Lightning and airplanes.

These are driven by the ParticleSystem tick but are not precipitation: a
lightning strike flashes the sky for one or two frames, and airplanes cross
the upper sky with a contrail whatever the weather.
"""

import random
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from .colors import Colors, Style


class LightningBolt:
    """
    A jagged lightning bolt path from the top of the sky downwards.

    Path and glyphs are fixed when the bolt is created so the bolt looks the
    same on every frame of one flash.
    """

    BOLT_CHARS = ['/', '\\', '|']

    def __init__(self, width: int, height: int, rng: random.Random):
        self.width = width
        self.height = height
        self.path: List[Tuple[int, int, str]] = []  # (row, col, glyph)
        self._generate_bolt(rng)

    def _generate_bolt(self, rng: random.Random):
        """Generate a jagged path from top to bottom, with the odd branch."""
        if self.width < 3 or self.height <= 0:
            return

        # Start somewhere in the middle half
        x = rng.randint(self.width // 4, max(self.width // 4, 3 * self.width // 4))
        y = 0

        while y < self.height:
            # Move down 1-3 rows, jag left or right
            step = rng.randint(1, 3)
            direction = rng.choice([-2, -1, -1, 0, 1, 1, 2])
            glyph = '|' if direction == 0 else ('/' if direction < 0 else '\\')
            for i in range(step):
                if y + i < self.height:
                    self.path.append((y + i, x, glyph))
            y += step
            x = max(1, min(self.width - 2, x + direction))

            # Occasionally add a branch
            if rng.random() < 0.15 and len(self.path) > 3:
                branch_x = x + rng.choice([-3, -2, 2, 3])
                branch_y = y
                for _ in range(rng.randint(2, 5)):
                    if 0 <= branch_x < self.width and branch_y < self.height:
                        self.path.append((branch_y, branch_x, rng.choice(self.BOLT_CHARS)))
                    branch_y += 1
                    branch_x += rng.choice([-1, 0, 1])


class LightningFlash:
    """
    Lightning flash state machine.

    A flash lasts 1 or 2 frames and always ends with an explicit revert
    followed by a cooldown, so flashes never chain into a stuck-bright sky.
    """

    MAX_FRAMES = 2

    def __init__(self, rng: random.Random, probability: float = 0.03,
                 cooldown: Tuple[int, int] = (15, 60)):
        self.rng = rng
        self.probability = probability
        self.cooldown_range = cooldown
        self.frames_left = 0
        self.cooldown = 0
        self.bolt: Optional[LightningBolt] = None
        self.flash_count = 0

    @property
    def active(self) -> bool:
        return self.frames_left > 0

    def reset(self):
        """Revert immediately (condition changed or viewport resized)."""
        self.frames_left = 0
        self.bolt = None

    def tick(self, enabled: bool, width: int, height: int) -> bool:
        """Advance one frame. Returns True while the sky should flash."""
        if not enabled:
            self.reset()
            return False

        if self.frames_left > 0:
            self.frames_left -= 1
            if self.frames_left == 0:
                self.bolt = None
                self.cooldown = self.rng.randint(*self.cooldown_range)
        elif self.cooldown > 0:
            self.cooldown -= 1
        elif self.rng.random() < self.probability:
            self.frames_left = self.rng.randint(1, self.MAX_FRAMES)
            self.bolt = LightningBolt(width, height, self.rng)
            self.flash_count += 1

        return self.active


AIRPLANE_ART = [
    "           _",
    "         -=\\`\\",
    "     |\\ ____\\_\\__",
    "   -=\\c`\"\"\"\"\"\"\" \"`)",
    "      `~~~~~/ /~~`",
    "        -==/ /",
    "          '-'",
]

# Contrail row relative to the airplane's top row
CONTRAIL_OFFSET = 3
CONTRAIL_LENGTH = 8


def _plane_style(ch: str) -> Style:
    if ch == '"':
        return Colors.PLANE_WINDOW
    if ch == '\\':
        return Colors.PLANE_WING
    if ch == '_':
        return Colors.PLANE_SHADOW
    if ch == '~':
        return Colors.PLANE_TAIL
    return Colors.PLANE_BODY


def _contrail_cell(index: int) -> Tuple[str, Style]:
    if index <= 1:
        return '.', Colors.CONTRAIL
    if index <= 3:
        return '.', Colors.PLANE_TAIL
    if index <= 5:
        return '.', Colors.CONTRAIL_FADE
    return '·', Colors.CONTRAIL_FADE


@dataclass
class AirplaneActor:
    """One airplane flying right at a fixed row."""
    col: float
    row: int
    speed: float  # columns per second
    trail: List[float] = field(default_factory=list)

    def advance(self, dt: float):
        self.col += self.speed * dt
        self.trail.insert(0, self.col)
        del self.trail[CONTRAIL_LENGTH:]

    def cells(self) -> Iterator[Tuple[int, int, str, Style]]:
        """(row, col, glyph, style) for contrail then body; spaces are transparent."""
        for i, trail_col in enumerate(self.trail):
            glyph, style = _contrail_cell(i)
            yield self.row + CONTRAIL_OFFSET, int(trail_col), glyph, style

        left = int(self.col)
        for dy, line in enumerate(AIRPLANE_ART):
            for dx, ch in enumerate(line):
                if ch != ' ':
                    yield self.row + dy, left + dx, ch, _plane_style(ch)


class AirplaneFleet:
    """
    Spawns airplanes rarely and moves them across the sky.

    At most one spawn per cooldown; planes fly in the top quarter of the sky
    and leave once they pass the right edge.
    """

    SPAWN_RATE = 0.09          # spawns per second once the cooldown is over
    COOLDOWN = (13.0, 20.0)    # seconds
    SPEED = (9.0, 15.0)        # columns per second

    def __init__(self, rng: random.Random):
        self.rng = rng
        self.planes: List[AirplaneActor] = []
        self.cooldown = 0.0

    def update(self, dt: float, width: int, height: int, enabled: bool = True):
        for plane in self.planes:
            plane.advance(dt)
        self.planes = [p for p in self.planes if p.col < width]

        self.cooldown = max(0.0, self.cooldown - dt)
        if enabled and self.cooldown == 0.0 and self.rng.random() < self.SPAWN_RATE * dt:
            self.spawn(height)
            self.cooldown = self.rng.uniform(*self.COOLDOWN)

    def spawn(self, height: int) -> AirplaneActor:
        band = max(1, height // 4)
        plane = AirplaneActor(
            col=0.0,
            row=self.rng.randrange(band),
            speed=self.rng.uniform(*self.SPEED),
        )
        self.planes.append(plane)
        return plane

    def clear(self):
        self.planes.clear()
