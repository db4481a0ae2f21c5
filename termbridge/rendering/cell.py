#!/usr/bin/env python3
# termbridge/rendering/cell.py
"""Per-frame paint instructions handed to the painter, one per terminal cell."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

from prompt_toolkit.data_structures import Point

from termbridge.rendering.color import Color
from termbridge.rendering.quadrant_mode import Quadrant

__all__ = ["Size", "Grapheme", "Cell", "Point"]

N = TypeVar("N", int, float)


@dataclass(frozen=True)
class Size(Generic[N]):
    width: N
    height: N

    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def scaled(self, other: "Size[Union[int, float]]") -> "Size[float]":
        return Size(self.width * other.width, self.height * other.height)

    def ceil(self) -> "Size[int]":
        return Size(int(math.ceil(self.width)), int(math.ceil(self.height)))

    def round(self) -> "Size[int]":
        # Half away from zero; Python's round() is banker's rounding
        return Size(int(math.floor(self.width + 0.5)), int(math.floor(self.height + 0.5)))

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class Grapheme:
    """A rendered character. Wide glyphs appear once with index 0; the
    cells they spill into carry index 1, 2, ..."""

    char: str
    color: Color
    width: int = 1
    index: int = 0


@dataclass(frozen=True)
class Cell:
    cursor: Point
    quadrant: Quadrant
    grapheme: Optional[Grapheme] = None
    # Covered by the bitmap frame; nothing to draw unless a glyph overrides it
    image: bool = False
