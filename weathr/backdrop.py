"""
Sky Backdrop - Sky gradient, stars, sun or moon, clouds and lightning flash.

The backdrop is the bottom layer of every frame. It only paints the rows
above the horizon.
"""

from typing import List, Optional

from .actors import LightningBolt
from .colors import Colors, Style
from .daynight import SkyPalette
from .scene import Scene

SUN_ART = [
    " \\|/ ",
    "-(O)-",
    " /|\\ ",
]

MOON_ART = [
    " @@ ",
    "@@@@",
    " @@ ",
]

CLOUD_SHAPES = [
    [
        "   .--.    ",
        " .(    ).  ",
        "(___.__)__)",
    ],
    [
        "  .-~~-.  ",
        " (      ) ",
        "(__.___.__)",
    ],
]

# Roughly one cloud per this many columns at full cover
CLOUD_SPACING = 22
# Columns per tick the clouds drift right
CLOUD_SPEED = 0.05

# Sun shows only through light cloud; the moon through anything but overcast
SUN_MAX_COVER = 0.5
MOON_MAX_COVER = 0.9
STARS_MAX_COVER = 0.7


def _noise(x: int, y: int) -> int:
    return (((x * 73856093) ^ (y * 19349663)) & 0xFFFFFFFF) % 1000


class SkyBackdrop:
    """Paints the sky layer of a Scene."""

    def draw(self, scene: Scene, palette: SkyPalette, sky_height: int,
             cloud_cover: float = 0.0, flash: bool = False,
             bolt: Optional[LightningBolt] = None, tick: int = 0):
        sky_height = min(sky_height, scene.height)
        self._fill(scene, palette, sky_height, flash)

        if flash:
            if bolt is not None:
                for row, col, glyph in bolt.path:
                    if row < sky_height:
                        scene.put(row, col, glyph, Colors.LIGHTNING)
            return

        if palette.stars_visible and cloud_cover < STARS_MAX_COVER:
            self._draw_stars(scene, sky_height, tick)

        row, col = palette.celestial_pos
        if palette.celestial == "sun" and cloud_cover < SUN_MAX_COVER:
            self._draw_centered(scene, SUN_ART, row, col, Colors.SUN, sky_height)
        elif palette.celestial == "moon" and cloud_cover < MOON_MAX_COVER:
            self._draw_centered(scene, MOON_ART, row, col, Colors.MOON, sky_height)

        if cloud_cover > 0:
            self._draw_clouds(scene, sky_height, cloud_cover, tick)

    def _fill(self, scene: Scene, palette: SkyPalette, sky_height: int, flash: bool):
        for row in range(sky_height):
            bg = Colors.FLASH if flash else palette.color_at(row, sky_height)
            scene.fill_row(row, Style(bg=bg))

    def _draw_stars(self, scene: Scene, sky_height: int, tick: int):
        # Stars stay in the upper two thirds of the sky
        for row in range(0, max(0, sky_height * 2 // 3)):
            for col in range(scene.width):
                n = _noise(col, row)
                if n >= 15:
                    continue
                twinkle = (n + tick // 5) % 9 == 0
                if twinkle:
                    scene.put(row, col, '*', Colors.STAR_BRIGHT)
                else:
                    scene.put(row, col, '.', Colors.STAR)

    def _draw_centered(self, scene: Scene, art: List[str], row: int, col: int,
                       style: Style, sky_height: int):
        top = row - len(art) // 2
        left = col - len(art[0]) // 2
        for dy, line in enumerate(art):
            if top + dy >= sky_height:
                break
            for dx, ch in enumerate(line):
                if ch != ' ':
                    scene.put(top + dy, left + dx, ch, style)

    def _draw_clouds(self, scene: Scene, sky_height: int, cover: float, tick: int):
        width = scene.width
        count = max(1, int(round(cover * width / CLOUD_SPACING)))
        style = Colors.CLOUD_DARK if cover >= 0.8 else Colors.CLOUD
        band = max(1, sky_height // 2 - 2)
        for i in range(count):
            shape = CLOUD_SHAPES[i % len(CLOUD_SHAPES)]
            shape_width = len(shape[-1])
            span = width + shape_width
            base = (i * span) // count + _noise(i, 7) % CLOUD_SPACING
            left = int((base + tick * CLOUD_SPEED) % span) - shape_width
            top = 2 + _noise(i, 3) % band
            for dy, line in enumerate(shape):
                if top + dy >= sky_height:
                    break
                for dx, ch in enumerate(line):
                    if ch != ' ':
                        scene.put(top + dy, left + dx, ch, style)
