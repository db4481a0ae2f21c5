#!/usr/bin/env python3
# termbridge/terminal/window.py
"""
Terminal window geometry.

The prober asks the terminal how big it is, in cells and in pixels, and
derives the logical viewport the pixel engine should render:

- dpi:         logical pixels per device pixel; a cell holds a 2x4 quadrant
- scale:       logical size of one cell
- cells:       usable cell grid (one row kept for the UI)
- browser:     logical viewport in pixels
- graphics_px: device pixels covered by the cell grid, for Sixel output

Pixel size sources, first usable wins: TIOCGWINSZ pixels, the window pixel
report, the cell geometry report, then an 8x16 cell.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from termbridge.rendering.cell import Size
from termbridge.terminal.query import TerminalQuery, TtyQuery

__all__ = ["Window", "WindowProber", "DEFAULT_CELL_PIXELS"]

log = logging.getLogger(__name__)

DEFAULT_COLUMNS = 80
DEFAULT_LINES = 24
DEFAULT_CELL_PIXELS = Size(8.0, 16.0)
MIN_ZOOM = 0.01


def _round4(x: float) -> float:
    return math.floor(x * 10000.0 + 0.5) / 10000.0


def _env_int(environ: Mapping[str, str], name: str) -> int:
    try:
        return max(0, int(environ.get(name, "")))
    except ValueError:
        return 0


@dataclass
class Window:
    dpi: float = 1.0
    scale: Size = field(default_factory=lambda: Size(0.0, 0.0))
    cells: Size = field(default_factory=lambda: Size(0, 0))
    browser: Size = field(default_factory=lambda: Size(0, 0))
    graphics_px: Size = field(default_factory=lambda: Size(0, 0))
    # Measured device pixels per cell, before aspect normalization
    cell_pixels: Size = field(default_factory=lambda: Size(0.0, 0.0))


class WindowProber:
    def __init__(
        self,
        query: Optional[TerminalQuery] = None,
        zoom: float = 1.0,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.query = query if query is not None else TtyQuery()
        self.zoom = zoom
        self.environ = environ if environ is not None else os.environ

    def read(self) -> Window:
        return self.update(Window())

    def update(self, window: Window) -> Window:
        columns, rows, px_width, px_height = self._terminal_size()

        cell_pixels = Size(0.0, 0.0)
        if px_width > 0 and px_height > 0:
            cell_pixels = Size(px_width / columns, px_height / rows)

        if cell_pixels.is_empty():
            win_px = self.query.get_window_pixels()
            if win_px is not None:
                cell_pixels = Size(win_px.width / columns, win_px.height / rows)

        if cell_pixels.is_empty():
            measured = self.query.get_cell_geometry()
            if measured is None:
                log.info("terminal did not report its cell size, assuming %s", DEFAULT_CELL_PIXELS)
                measured = DEFAULT_CELL_PIXELS
            cell_pixels = measured

        # Normalize the cell to a 1:2 aspect ratio
        cell_width = (cell_pixels.width + cell_pixels.height / 2.0) / 2.0
        zoom = max(self.zoom, MIN_ZOOM)

        window.dpi = _round4(2.0 / cell_width * zoom)
        window.scale = Size(2.0 / window.dpi, 4.0 / window.dpi)
        window.cells = Size(max(columns, 1), max(rows, 2) - 1)
        window.browser = window.cells.scaled(window.scale).ceil()
        window.graphics_px = window.cells.scaled(cell_pixels).round()
        window.cell_pixels = cell_pixels

        log.debug(
            "window: %s cells, cell %s px, dpi %s, browser %s, graphics %s",
            window.cells,
            cell_pixels,
            window.dpi,
            window.browser,
            window.graphics_px,
        )
        return window

    def _terminal_size(self):
        size = self.query.get_terminal_size()
        columns = size.columns if size is not None else 0
        rows = size.rows if size is not None else 0
        px_width = size.px_width if size is not None else 0
        px_height = size.px_height if size is not None else 0

        if columns == 0 or rows == 0:
            cols = _env_int(self.environ, "COLUMNS") or DEFAULT_COLUMNS
            lines = _env_int(self.environ, "LINES") or DEFAULT_LINES
            log.warning(
                "TIOCGWINSZ returned an empty size (%dx%d), defaulting to %dx%d",
                columns,
                rows,
                cols,
                lines,
            )
            columns, rows = cols, lines

        return columns, rows, px_width, px_height
