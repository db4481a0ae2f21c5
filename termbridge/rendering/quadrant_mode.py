#!/usr/bin/env python3
# termbridge/rendering/quadrant_mode.py
"""
Quadrant (2x2 block) approximation.
Uses Unicode block elements ▖ ▗ ▘ ▙ ▚ ▛ ▜ ▝ ▞ ▟ to encode four subpixels per cell
with two colors: the lit sub-blocks take the foreground, the rest the background.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

from termbridge.rendering.color import Color

__all__ = ["Quadrant", "QUAD_GLYPHS"]

# Unicode quadrants (https://en.wikipedia.org/wiki/Block_Elements)
# Bits: TL TR BL BR  (top-left, top-right, bottom-left, bottom-right)
QUAD_GLYPHS = {
    0b0000: " ",
    0b0001: "▗",
    0b0010: "▖",
    0b0011: "▄",
    0b0100: "▝",
    0b0101: "▐",
    0b0110: "▞",
    0b0111: "▟",
    0b1000: "▘",
    0b1001: "▚",
    0b1010: "▌",
    0b1011: "▙",
    0b1100: "▀",
    0b1101: "▜",
    0b1110: "▛",
    0b1111: "█",
}

_BITS = (0b1000, 0b0100, 0b0010, 0b0001)


@dataclass(frozen=True)
class Quadrant:
    top_left: Color
    top_right: Color
    bottom_left: Color
    bottom_right: Color

    @classmethod
    def solid(cls, color: Color) -> "Quadrant":
        return cls(color, color, color, color)

    def __iter__(self) -> Iterator[Color]:
        yield self.top_left
        yield self.top_right
        yield self.bottom_left
        yield self.bottom_right

    def average(self) -> Color:
        return (
            self.top_left.avg_with(self.top_right)
            .avg_with(self.bottom_left)
            .avg_with(self.bottom_right)
        )

    def binarize(self) -> Tuple[str, Color, Color]:
        """Pick the block glyph and (background, foreground) pair that best
        represent the four samples.

        Samples at or above the luminance midpoint are lit (foreground).
        """
        samples = tuple(self)
        lumas = [c.luma() for c in samples]
        lo, hi = min(lumas), max(lumas)

        if hi == lo:
            color = Color.mean(samples)
            return " ", color, color

        pivot = (lo + hi) / 2.0
        bits = 0
        lit, unlit = [], []
        for bit, color, luma in zip(_BITS, samples, lumas):
            if luma >= pivot:
                bits |= bit
                lit.append(color)
            else:
                unlit.append(color)

        return QUAD_GLYPHS[bits], Color.mean(unlit), Color.mean(lit)
