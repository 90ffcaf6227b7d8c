"""
Tests for the Scene grid and the static world scenery.
"""

import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from weathr.colors import NEUTRAL, Colors, Style
from weathr.scene import BLANK, CHIMNEY_OFFSET, HOUSE_ART, Cell, Scene, WorldScene

SKY = Style(bg=Colors.DAY_SKY_TOP)


class TestScene:
    def test_blank(self):
        scene = Scene.blank(4, 2)
        assert scene.size == (4, 2)
        assert scene.text(0) == "    "
        assert scene.cell(1, 3) == BLANK

    def test_negative_size_is_empty(self):
        scene = Scene.blank(-3, -1)
        assert scene.size == (0, 0)
        assert list(scene.rows()) == []

    def test_put_and_clip(self):
        scene = Scene.blank(3, 3)
        assert scene.put(1, 1, 'x')
        assert not scene.put(3, 0, 'x')
        assert not scene.put(0, -1, 'x')
        assert scene.text(1) == " x "

    def test_inherits_background(self):
        scene = Scene.blank(5, 1)
        scene.fill_row(0, SKY)
        scene.put(0, 2, '|', Colors.RAIN_BRIGHT)
        cell = scene.cell(0, 2)
        assert cell.style.bg == Colors.DAY_SKY_TOP
        assert cell.style.fg == Colors.RAIN_BRIGHT.fg

    def test_explicit_background_wins(self):
        scene = Scene.blank(2, 1)
        scene.fill_row(0, SKY)
        flash = Style(bg=Colors.FLASH)
        scene.put(0, 0, ' ', flash)
        assert scene.cell(0, 0).style == flash

    def test_put_text_draws_spaces(self):
        scene = Scene.blank(6, 1)
        scene.put_text(0, 0, "abcdef")
        scene.put_text(0, 1, "x y")
        assert scene.text(0) == "ax yef"

    def test_put_text_clips_at_edge(self):
        scene = Scene.blank(4, 1)
        scene.put_text(0, 2, "long text")
        assert scene.text(0) == "  lo"

    def test_put_art_skips_transparent(self):
        scene = Scene.blank(3, 2)
        scene.put_text(0, 0, "...")
        scene.put_text(1, 0, "...")
        scene.put_art(0, 0, ["a a", " b "], NEUTRAL)
        assert scene.text(0) == "a.a"
        assert scene.text(1) == ".b."

    def test_put_art_style_function(self):
        scene = Scene.blank(2, 1)
        scene.put_art(0, 0, ["ab"], lambda ch: Colors.SUN if ch == 'a' else Colors.MOON)
        assert scene.cell(0, 0).style == Colors.SUN
        assert scene.cell(0, 1).style == Colors.MOON

    def test_fill_row_bounds(self):
        scene = Scene.blank(4, 1)
        scene.fill_row(0, SKY, '-', start=1, end=10)
        scene.fill_row(5, SKY)
        assert scene.text(0) == " ---"

    def test_equality(self):
        a, b = Scene.blank(3, 2), Scene.blank(3, 2)
        assert a == b
        b.put(0, 0, 'x')
        assert a != b
        assert Scene.blank(3, 2) != Scene.blank(2, 3)


class TestWorldScene:
    def test_horizon(self):
        assert WorldScene(80, 24).horizon_row == 16
        assert WorldScene(80, 5).horizon_row == 0

    def test_draws_ground_and_path(self):
        world = WorldScene(80, 24)
        scene = Scene.blank(80, 24)
        world.draw(scene)
        ground = scene.text(world.horizon_row)
        assert '=' in ground
        assert '^' in ground

    def test_house_sits_on_horizon(self):
        world = WorldScene(100, 30)
        row, col = world.house_origin
        assert row + len(HOUSE_ART) == world.horizon_row
        scene = Scene.blank(100, 30)
        world.draw(scene)
        base = scene.text(world.horizon_row - 1)
        assert '^^^' in base
        assert '===' in base

    def test_chimney_top_sits_above_chimney(self):
        world = WorldScene(100, 30)
        row, col = world.chimney_top
        house_row, house_col = world.house_origin
        assert (row, col) == (house_row + CHIMNEY_OFFSET[0] - 1, house_col + CHIMNEY_OFFSET[1])
        scene = Scene.blank(100, 30)
        world.draw(scene)
        assert scene.cell(row + 1, col).glyph == '_'
        assert scene.cell(row, col) == BLANK

    def test_no_chimney_when_house_is_cut_off(self):
        assert WorldScene(10, 4).chimney_top is None
        assert WorldScene(80, 10).chimney_top is None

    def test_cells_cached_per_size(self):
        world = WorldScene(80, 24)
        first = world.cells()
        assert world.cells() is first
        world.update_size(80, 24)
        assert world.cells() is first
        world.update_size(60, 20)
        assert world.cells() is not first

    def test_small_viewport(self):
        world = WorldScene(10, 4)
        scene = Scene.blank(10, 4)
        world.draw(scene)
        for r, c, _, _ in world.cells():
            assert scene.contains(r, c)

    def test_empty_viewport(self):
        world = WorldScene(0, 0)
        world.draw(Scene.blank(0, 0))
        assert world.cells() == []

    def test_scenery_is_stable(self):
        a, b = Scene.blank(80, 24), Scene.blank(80, 24)
        WorldScene(80, 24).draw(a)
        WorldScene(80, 24).draw(b)
        assert a == b
        assert isinstance(a.cell(23, 0), Cell)
