#!/usr/bin/env python3
# termbridge/rendering/renderer.py
"""
Cell grid producers.

- QuadrantRenderer turns an RGB(A) image into one Cell per terminal position,
  each carrying a 2x2 sample block for quadrant approximation.
- text_cells lays out a line of text as glyph cells, splitting wide characters
  into an owning cell plus continuation cells.

These stand in for the pixel engine in the CLI; the painter only sees Cells.
"""

from __future__ import annotations

from typing import List

import numpy as np
from PIL import Image
from prompt_toolkit.utils import get_cwidth

from termbridge.rendering.cell import Cell, Grapheme, Point
from termbridge.rendering.color import Color
from termbridge.rendering.quadrant_mode import Quadrant

__all__ = ["QuadrantRenderer", "text_cells"]


class QuadrantRenderer:
    name = "quadrant"

    @staticmethod
    def _resize(img: Image.Image, w: int, h: int) -> Image.Image:
        if img.width == w and img.height == h:
            return img
        return img.resize((w, h), Image.LANCZOS)

    def render(
        self,
        img: Image.Image,
        term_w: int,
        term_h: int,
        image: bool = False,
    ) -> List[Cell]:
        """Return cells in screen order (row-major). With image=True every
        cell is marked as covered by a bitmap frame."""
        if term_w <= 0 or term_h <= 0:
            return []

        if img.mode != "RGB":
            img = img.convert("RGB")
        # Each cell represents 2x2 pixels
        arr = np.asarray(self._resize(img, term_w * 2, term_h * 2), dtype=np.uint8)

        cells: List[Cell] = []
        for cy in range(term_h):
            rows = arr[cy * 2 : cy * 2 + 2]
            for cx in range(term_w):
                block = rows[:, cx * 2 : cx * 2 + 2].reshape(4, 3).tolist()
                quadrant = Quadrant(*(Color.from_tuple(px) for px in block))
                cells.append(Cell(cursor=Point(x=cx, y=cy), quadrant=quadrant, image=image))
        return cells


def text_cells(text: str, row: int, color: Color, background: Color, column: int = 0) -> List[Cell]:
    """Lay out text on one row. Zero-width characters are dropped."""
    quadrant = Quadrant.solid(background)
    cells: List[Cell] = []
    x = column
    for ch in text:
        width = get_cwidth(ch)
        if width <= 0:
            continue
        for index in range(width):
            grapheme = Grapheme(char=ch, color=color, width=width, index=index)
            cells.append(Cell(cursor=Point(x=x + index, y=row), quadrant=quadrant, grapheme=grapheme))
        x += width
    return cells
