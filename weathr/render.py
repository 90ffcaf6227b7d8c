"""
Renderer - Writes frames to the terminal, touching only the cells that changed.

The Renderer diffs the new Scene against the previous one and hands the
changed cells to a TerminalSurface. The first frame, a size change or an
explicit invalidate() forces a full redraw. When the terminal has no color,
every style collapses to the neutral style before diffing, so frames that
differ only in color produce no output at all.
"""

import logging
import os
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

# Handle curses import for Windows compatibility
try:
    import curses
    CURSES_AVAILABLE = True
except ImportError:
    curses = None
    CURSES_AVAILABLE = False

from .colors import (
    ColorCapability,
    ColorPairCache,
    Style,
    color_number,
    degrade,
)
from .errors import TerminalError
from .scene import Scene

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CellUpdate:
    """One cell to (re)draw."""
    row: int
    col: int
    glyph: str
    style: Style


def diff_scenes(previous: Optional[Scene], current: Scene,
                capability: ColorCapability) -> List[CellUpdate]:
    """
    Cells of current that differ from previous.

    Every cell is returned when there is no previous scene or the sizes
    differ.
    """
    full = previous is None or previous.size != current.size
    updates: List[CellUpdate] = []

    for r, row in enumerate(current.rows()):
        prev_row = None if full else previous.row(r)
        if prev_row is not None and capability.has_color and prev_row == row:
            continue
        for c, cell in enumerate(row):
            style = degrade(cell.style, capability)
            if prev_row is not None:
                before = prev_row[c]
                if before.glyph == cell.glyph and degrade(before.style, capability) == style:
                    continue
            updates.append(CellUpdate(r, c, cell.glyph, style))

    return updates


class TerminalSurface(ABC):
    """The only thing the renderer draws on."""

    @property
    @abstractmethod
    def capability(self) -> ColorCapability:
        """Color capability actually available on this surface."""

    @abstractmethod
    def size(self) -> Tuple[int, int]:
        """(width, height) in cells."""

    @abstractmethod
    def draw(self, updates: List[CellUpdate]):
        """Write cells. Raises TerminalError if the terminal rejects a write."""

    @abstractmethod
    def clear(self):
        """Blank the whole surface before a full redraw."""

    @abstractmethod
    def flush(self):
        """Push pending writes to the terminal."""

    @abstractmethod
    def read_key(self) -> int:
        """Next key code, or -1 if none arrived before the input timeout."""

    def set_input_timeout(self, milliseconds: int):
        """How long read_key() may block."""

    def handle_resize(self):
        """Re-query the terminal size after a resize notification."""


class Renderer:
    """Diffs frames and draws the changes on a surface."""

    def __init__(self, surface: TerminalSurface, capability: Optional[ColorCapability] = None):
        self.surface = surface
        self.capability = capability if capability is not None else surface.capability
        self._force_full = True
        self.frames = 0
        self.cells_written = 0

    def invalidate(self):
        """Force the next frame to be drawn in full."""
        self._force_full = True

    def render(self, previous: Optional[Scene], current: Scene,
               capability: Optional[ColorCapability] = None) -> List[CellUpdate]:
        """Draw current over previous; returns the cell updates emitted."""
        capability = capability or self.capability
        full = self._force_full or previous is None or previous.size != current.size
        updates = diff_scenes(None if full else previous, current, capability)

        if full:
            self.surface.clear()
        if updates:
            self.surface.draw(updates)
        self.surface.flush()

        self._force_full = False
        self.frames += 1
        self.cells_written += len(updates)
        return updates


class CursesSurface(TerminalSurface):
    """TerminalSurface over a curses window."""

    def __init__(self, screen, capability: ColorCapability):
        if not CURSES_AVAILABLE:
            raise TerminalError("curses library not available")
        self.screen = screen
        self._capability = capability
        self._attrs: Dict[Style, int] = {}
        self._pairs: Optional[ColorPairCache] = None
        self._setup()

    def _setup(self):
        try:
            curses.curs_set(0)  # Hide cursor
        except curses.error:
            pass

        if not self._capability.has_color:
            return
        if not curses.has_colors():
            logger.info("Terminal reports no color support")
            self._capability = ColorCapability.NONE
            return

        curses.start_color()
        try:
            curses.use_default_colors()
        except curses.error:
            pass

        if curses.COLORS < 256 and self._capability is not ColorCapability.BASIC:
            logger.info(f"Terminal has {curses.COLORS} colors, using basic palette")
            self._capability = ColorCapability.BASIC

        self._pairs = ColorPairCache(curses.init_pair, curses.COLOR_PAIRS)
        logger.debug(f"Color capability: {self._capability.value}, pairs: {curses.COLOR_PAIRS}")

    @property
    def capability(self) -> ColorCapability:
        return self._capability

    def size(self) -> Tuple[int, int]:
        height, width = self.screen.getmaxyx()
        return width, height

    def _attr(self, style: Style) -> int:
        attr = self._attrs.get(style)
        if attr is not None:
            return attr

        attr = curses.A_NORMAL
        if self._pairs is not None:
            fg = color_number(style.fg, self._capability)
            bg = color_number(style.bg, self._capability)
            try:
                attr = curses.color_pair(self._pairs.pair_for(fg, bg))
            except curses.error as e:
                logger.debug(f"Color pair ({fg}, {bg}) rejected: {e}")
                attr = curses.A_NORMAL
        if style.bold:
            attr |= curses.A_BOLD
        if style.dim:
            attr |= curses.A_DIM

        self._attrs[style] = attr
        return attr

    def draw(self, updates: List[CellUpdate]):
        width, height = self.size()
        last_cell = (height - 1, width - 1)

        # Batch horizontal runs of same-style cells into one addstr
        i = 0
        while i < len(updates):
            first = updates[i]
            text = [first.glyph]
            j = i + 1
            while (j < len(updates) and updates[j].row == first.row and
                   updates[j].col == first.col + (j - i) and updates[j].style == first.style):
                text.append(updates[j].glyph)
                j += 1
            i = j

            if first.row >= height or first.col >= width:
                continue
            run = ''.join(text)[:width - first.col]
            try:
                self.screen.addstr(first.row, first.col, run, self._attr(first.style))
            except curses.error as e:
                # Writing the bottom-right cell moves the cursor off screen
                if (first.row, first.col + len(run) - 1) == last_cell:
                    continue
                raise TerminalError(f"write at ({first.row}, {first.col}) failed: {e}") from e

    def clear(self):
        self.screen.erase()

    def flush(self):
        try:
            self.screen.noutrefresh()
            curses.doupdate()
        except curses.error as e:
            raise TerminalError(f"screen refresh failed: {e}") from e

    def read_key(self) -> int:
        return self.screen.getch()

    def set_input_timeout(self, milliseconds: int):
        self.screen.timeout(milliseconds)

    def handle_resize(self):
        # A Python SIGWINCH handler replaces ncurses' own, so ask the tty
        try:
            columns, lines = os.get_terminal_size(sys.__stdout__.fileno())
        except (OSError, AttributeError, ValueError):
            return
        try:
            if curses.is_term_resized(lines, columns):
                curses.resizeterm(lines, columns)
                logger.debug(f"Terminal resized to {columns}x{lines}")
        except curses.error as e:
            raise TerminalError(f"resize to {columns}x{lines} failed: {e}") from e
