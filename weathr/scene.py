"""
Scene Grid and World Art - The character+color grid and the static scenery.

A Scene is one frame: a width x height grid of Cells. Layers are drawn into
it with sparse writes (put, put_text, put_art); anything outside the grid is
clipped, so small terminals just show less of the scene.

WorldScene holds the house, ground, tree, fence, mailbox and bush, laid out
relative to the horizon GROUND_HEIGHT rows above the bottom edge.
"""

from typing import Callable, Iterable, Iterator, List, NamedTuple, Optional, Tuple, Union

from .colors import NEUTRAL, Colors, Style


class Cell(NamedTuple):
    """One grid position: a glyph and its style."""
    glyph: str
    style: Style


BLANK = Cell(' ', NEUTRAL)

StyleSpec = Union[Style, Callable[[str], Style]]


class Scene:
    """
    A frame under construction.

    Writes that leave the background unset keep the background of the cell
    underneath, so a raindrop over the sky still sits on the sky color.
    """

    def __init__(self, width: int, height: int, rows: List[List[Cell]]):
        self.width = width
        self.height = height
        self._rows = rows

    @classmethod
    def blank(cls, width: int, height: int, fill: Cell = BLANK) -> 'Scene':
        width, height = max(0, width), max(0, height)
        return cls(width, height, [[fill] * width for _ in range(height)])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def contains(self, row: int, col: int) -> bool:
        return 0 <= row < self.height and 0 <= col < self.width

    def cell(self, row: int, col: int) -> Cell:
        return self._rows[row][col]

    def row(self, row: int) -> List[Cell]:
        return self._rows[row]

    def rows(self) -> Iterator[List[Cell]]:
        return iter(self._rows)

    def text(self, row: int) -> str:
        """Glyphs of one row as a string."""
        return ''.join(c.glyph for c in self._rows[row])

    def put(self, row: int, col: int, glyph: str, style: Style = NEUTRAL) -> bool:
        """Write one cell; returns False if it was clipped."""
        if not self.contains(row, col):
            return False
        if style.bg is None:
            below = self._rows[row][col].style.bg
            if below is not None:
                style = style.with_bg(below)
        self._rows[row][col] = Cell(glyph, style)
        return True

    def put_text(self, row: int, col: int, text: str, style: Style = NEUTRAL):
        """Write a string; every character, spaces included, is drawn."""
        for i, ch in enumerate(text):
            self.put(row, col + i, ch, style)

    def put_art(self, row: int, col: int, lines: Iterable[str], style: StyleSpec,
                transparent: str = ' '):
        """Write multi-line art; transparent characters are skipped."""
        for dy, line in enumerate(lines):
            for dx, ch in enumerate(line):
                if ch == transparent:
                    continue
                cell_style = style(ch) if callable(style) else style
                self.put(row + dy, col + dx, ch, cell_style)

    def fill_row(self, row: int, style: Style, glyph: str = ' ', start: int = 0,
                 end: Optional[int] = None):
        if not 0 <= row < self.height:
            return
        end = self.width if end is None else min(end, self.width)
        for col in range(max(0, start), end):
            self._rows[row][col] = Cell(glyph, style)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Scene):
            return NotImplemented
        return self.size == other.size and self._rows == other._rows

    def __repr__(self) -> str:
        return f"Scene({self.width}x{self.height})"


HOUSE_ART = [
    "            _   _._          ",
    "           |_|-'_~_`-._      ",
    "        _.-'-_~_-~_-~-_`-._  ",
    "    _.-'_~-_~-_-~-_~_~-_~-_`-._",
    "   ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~",
    "     |  []  []   []   []  [] |",
    "     |           __    ___   |",
    "   ._|  []  []  | .|  [___]  |_._._._._._._._._._._._._._._._._.",
    "   |=|________()|__|()_______|=|=|=|=|=|=|=|=|=|=|=|=|=|=|=|=|=|",
    " ^^^^^^^^^^^^^^^ === ^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^",
]

# Column of the door within HOUSE_ART; the garden path starts here
HOUSE_DOOR_OFFSET = 18

# (row, col) of the chimney opening within HOUSE_ART
CHIMNEY_OFFSET = (0, 12)

TREE_ART = [
    "      ####      ",
    "    ########    ",
    "   ##########   ",
    "    ########    ",
    "      _||_      ",
]

BUSH_ART = ["  ,.,  ", " (,,,,)", "  \"||\" "]

FENCE_ART = ["|--|--|--|--|", "|  |  |  |  |"]

MAILBOX_ART = [" ___ ", "|___|", "  |  "]


def _art_width(lines: List[str]) -> int:
    return max((len(line) for line in lines), default=0)


def _pseudo_rand(x: int, y: int) -> int:
    """Stable per-cell noise in [0, 100) for ground decoration."""
    return (((x ^ 0x5DEECE6) * (y ^ 0xB)) & 0xFFFFFFFF) % 100


class WorldScene:
    """
    The static scenery, laid out for one viewport size.

    The drawn cells are computed once per size and replayed every frame.
    """

    GROUND_HEIGHT = 8

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self._cells: Optional[List[Tuple[int, int, str, Style]]] = None

    def update_size(self, width: int, height: int):
        if (width, height) != (self.width, self.height):
            self.width = width
            self.height = height
            self._cells = None

    @property
    def horizon_row(self) -> int:
        """First ground row; the sky is everything above it."""
        return max(0, self.height - self.GROUND_HEIGHT)

    @property
    def house_origin(self) -> Tuple[int, int]:
        """(row, col) of the house art's top-left corner. Row may be negative."""
        house_width = _art_width(HOUSE_ART)
        col = max(0, self.width // 2 - house_width // 2)
        return self.horizon_row - len(HOUSE_ART), col

    @property
    def path_center(self) -> int:
        return self.house_origin[1] + HOUSE_DOOR_OFFSET

    @property
    def chimney_top(self) -> Optional[Tuple[int, int]]:
        """(row, col) just above the chimney, where smoke starts; None if off-screen."""
        house_row, house_col = self.house_origin
        row = house_row + CHIMNEY_OFFSET[0] - 1
        col = house_col + CHIMNEY_OFFSET[1]
        if row < 0 or col >= self.width:
            return None
        return row, col

    def draw(self, scene: Scene):
        """Draw the scenery into a scene (clipped to the scene's size)."""
        for row, col, glyph, style in self.cells():
            scene.put(row, col, glyph, style)

    def cells(self) -> List[Tuple[int, int, str, Style]]:
        if self._cells is None:
            recorder = Scene.blank(self.width, self.height)
            self._render(recorder)
            self._cells = [
                (r, c, cell.glyph, cell.style)
                for r, row in enumerate(recorder.rows())
                for c, cell in enumerate(row)
                if cell != BLANK
            ]
        return self._cells

    def _render(self, scene: Scene):
        horizon = self.horizon_row
        house_row, house_col = self.house_origin
        house_width = _art_width(HOUSE_ART)
        path_center = self.path_center

        self._render_ground(scene, horizon, path_center)
        scene.put_art(house_row, house_col, HOUSE_ART, Colors.HOUSE)

        # Tree left of the house
        tree_col = house_col - 20
        if tree_col > 0:
            scene.put_art(horizon - len(TREE_ART), tree_col, TREE_ART, Colors.TREE)

        # Fence right of the house, standing on the ground
        fence_col = house_col + house_width + 2
        if fence_col < self.width:
            scene.put_art(horizon - len(FENCE_ART), fence_col, FENCE_ART, Colors.FENCE)

        # Mailbox right of the path, on the grass
        mailbox_col = path_center + 6
        if mailbox_col < self.width:
            scene.put_art(horizon + 1, mailbox_col, MAILBOX_ART, Colors.MAILBOX)

        # Bush left of the path, half sunk into the ground line
        bush_col = path_center - 10
        if bush_col > 0:
            scene.put_art(horizon - len(BUSH_ART) // 2, bush_col, BUSH_ART, Colors.BUSH)

    def _render_ground(self, scene: Scene, horizon: int, path_center: int):
        for y in range(self.GROUND_HEIGHT):
            row = horizon + y
            if row >= self.height:
                break
            # Path widens towards the viewer
            path_width = 4 + y
            path_start = path_center - path_width // 2
            path_end = path_center + path_width // 2

            for x in range(self.width):
                if path_start <= x <= path_end:
                    scene.put(row, x, '=', Colors.PATH)
                    continue
                r = _pseudo_rand(x, y)
                if y == 0:
                    if r < 5:
                        scene.put(row, x, '*', Colors.FLOWERS[(x + y) % len(Colors.FLOWERS)])
                    elif r < 15:
                        scene.put(row, x, ',', Colors.GRASS_DARK)
                    else:
                        scene.put(row, x, '^', Colors.GRASS)
                else:
                    glyph = '~' if r < 20 else '.' if r < 25 else ' '
                    scene.put(row, x, glyph, Colors.SOIL)
