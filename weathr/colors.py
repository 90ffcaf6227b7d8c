"""
TUI Color Definitions - Color descriptors and capability detection.

Scene cells carry a Style (foreground/background Color plus bold/dim flags).
The renderer resolves styles to curses attributes according to the color
capability detected once at startup.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

# Standard curses color numbers (same values as curses.COLOR_*)
DEFAULT = -1
BLACK = 0
RED = 1
GREEN = 2
YELLOW = 3
BLUE = 4
MAGENTA = 5
CYAN = 6
WHITE = 7


class ColorCapability(Enum):
    """How much color the terminal can show."""
    NONE = "none"            # Monochrome - every style degrades to NEUTRAL
    BASIC = "basic"          # 8 ANSI colors
    EXTENDED = "extended"    # 256-color palette
    TRUECOLOR = "truecolor"  # 24-bit (rendered through the 256-color cube in curses)

    @property
    def has_color(self) -> bool:
        return self is not ColorCapability.NONE


@dataclass(frozen=True)
class Color:
    """An RGB color with the closest basic ANSI color as fallback."""
    r: int
    g: int
    b: int
    basic: int = DEFAULT

    def lerp(self, other: 'Color', t: float) -> 'Color':
        """Linear blend towards other; t=0 is self, t=1 is other."""
        t = max(0.0, min(1.0, t))
        return Color(
            int(round(self.r + (other.r - self.r) * t)),
            int(round(self.g + (other.g - self.g) * t)),
            int(round(self.b + (other.b - self.b) * t)),
            self.basic if t < 0.5 else other.basic,
        )

    def to_xterm256(self) -> int:
        """Index into the xterm 6x6x6 color cube (16-231)."""
        def level(v: int) -> int:
            if v < 48:
                return 0
            if v < 115:
                return 1
            return min(5, (v - 35) // 40)
        return 16 + 36 * level(self.r) + 6 * level(self.g) + level(self.b)


@dataclass(frozen=True)
class Style:
    """Color descriptor of one scene cell."""
    fg: Optional[Color] = None
    bg: Optional[Color] = None
    bold: bool = False
    dim: bool = False

    def with_bg(self, bg: Optional[Color]) -> 'Style':
        return Style(self.fg, bg, self.bold, self.dim)


NEUTRAL = Style()


class Colors:
    """Named palette for the weather scene."""
    # Sky
    DAY_SKY_TOP = Color(70, 130, 200)
    DAY_SKY_BOTTOM = Color(150, 200, 235)
    NIGHT_SKY_TOP = Color(5, 5, 25)
    NIGHT_SKY_BOTTOM = Color(20, 25, 60)
    TWILIGHT_GLOW = Color(255, 160, 90)
    FLASH = Color(235, 235, 255, WHITE)

    SUN = Style(Color(255, 220, 60, YELLOW), bold=True)
    MOON = Style(Color(230, 230, 210, WHITE), bold=True)
    STAR = Style(Color(200, 200, 230, WHITE))
    STAR_BRIGHT = Style(Color(255, 255, 255, WHITE), bold=True)
    CLOUD = Style(Color(225, 225, 230, WHITE))
    CLOUD_DARK = Style(Color(130, 130, 140, WHITE), dim=True)

    # Precipitation
    RAIN_BRIGHT = Style(Color(120, 170, 255, CYAN), bold=True)
    RAIN_DIM = Style(Color(70, 110, 200, BLUE))
    DRIZZLE = Style(Color(140, 170, 210, CYAN), dim=True)
    SLEET = Style(Color(170, 220, 240, CYAN))
    SPLASH = Style(Color(100, 150, 230, BLUE))
    SNOW_BRIGHT = Style(Color(255, 255, 255, WHITE), bold=True)
    SNOW_DIM = Style(Color(200, 200, 210, WHITE))
    SNOW_SETTLED = Style(Color(235, 235, 245, WHITE))
    HAIL = Style(Color(220, 240, 255, WHITE), bold=True)
    FOG = Style(Color(160, 160, 170, WHITE), dim=True)
    LIGHTNING = Style(Color(255, 255, 170, YELLOW), bold=True)

    # Leaves
    LEAF_ORANGE = Style(Color(230, 120, 30, YELLOW))
    LEAF_RED = Style(Color(200, 50, 30, RED))
    LEAF_YELLOW = Style(Color(230, 200, 40, YELLOW))

    # Chimney smoke and fireflies
    SMOKE = Style(Color(190, 190, 190, WHITE))
    SMOKE_FAINT = Style(Color(130, 130, 135, WHITE), dim=True)
    FIREFLY = Style(Color(230, 255, 110, YELLOW), bold=True)
    FIREFLY_DIM = Style(Color(120, 150, 50, GREEN), dim=True)

    # Actors
    PLANE_BODY = Style(Color(240, 240, 240, WHITE))
    PLANE_WINDOW = Style(Color(80, 200, 220, CYAN))
    PLANE_WING = Style(Color(60, 90, 200, BLUE))
    PLANE_SHADOW = Style(Color(110, 110, 110, WHITE), dim=True)
    PLANE_TAIL = Style(Color(180, 180, 180, WHITE))
    CONTRAIL = Style(Color(220, 220, 220, WHITE))
    CONTRAIL_FADE = Style(Color(120, 120, 120, WHITE), dim=True)

    # Scenery
    HOUSE = Style(Color(230, 200, 80, YELLOW))
    TREE = Style(Color(30, 110, 40, GREEN))
    BUSH = Style(Color(60, 170, 60, GREEN))
    FENCE = Style(Color(230, 230, 230, WHITE))
    MAILBOX = Style(Color(60, 90, 200, BLUE))
    GRASS = Style(Color(60, 170, 60, GREEN))
    GRASS_DARK = Style(Color(30, 110, 40, GREEN))
    SOIL = Style(Color(101, 67, 33, YELLOW), dim=True)
    PATH = Style(Color(180, 160, 120, YELLOW))
    FLOWERS = (
        Style(Color(200, 60, 200, MAGENTA)),
        Style(Color(220, 50, 50, RED)),
        Style(Color(60, 200, 220, CYAN)),
        Style(Color(230, 220, 60, YELLOW)),
    )

    # HUD
    HUD = Style(Color(80, 220, 230, CYAN))
    HUD_WARNING = Style(Color(250, 200, 60, YELLOW), bold=True)


def detect_color_capability(environ: Optional[Mapping[str, str]] = None) -> ColorCapability:
    """
    Detect color support from environment signals.

    Checked in order: explicit disable (NO_COLOR), dumb/missing TERM,
    COLORTERM truecolor advertisement, 256-color TERM names.
    """
    env = os.environ if environ is None else environ

    if env.get('NO_COLOR'):
        return ColorCapability.NONE

    term = env.get('TERM', '')
    if not term or term == 'dumb':
        return ColorCapability.NONE

    if env.get('COLORTERM', '').lower() in ('truecolor', '24bit'):
        return ColorCapability.TRUECOLOR

    if '256color' in term:
        return ColorCapability.EXTENDED

    return ColorCapability.BASIC


def degrade(style: Style, capability: ColorCapability) -> Style:
    """Collapse a style to what the capability can show."""
    if capability is ColorCapability.NONE:
        return NEUTRAL
    return style


class ColorPairCache:
    """
    Allocates curses color pairs on demand for (fg, bg) color numbers.

    Pair 0 is the terminal default and is reused once the terminal runs out
    of pairs.
    """

    def __init__(self, init_pair, max_pairs: int):
        self._init_pair = init_pair
        self._max_pairs = max_pairs
        self._pairs: Dict[Tuple[int, int], int] = {}
        self._next = 1

    def pair_for(self, fg: int, bg: int) -> int:
        if fg == DEFAULT and bg == DEFAULT:
            return 0
        key = (fg, bg)
        pair = self._pairs.get(key)
        if pair is not None:
            return pair
        if self._next >= self._max_pairs:
            return 0
        pair = self._next
        self._init_pair(pair, fg, bg)
        self._pairs[key] = pair
        self._next += 1
        return pair

    def __len__(self) -> int:
        return len(self._pairs)


def color_number(color: Optional[Color], capability: ColorCapability) -> int:
    """curses color number for a Color under the given capability."""
    if color is None or capability is ColorCapability.NONE:
        return DEFAULT
    if capability is ColorCapability.BASIC:
        return color.basic
    return color.to_xterm256()
