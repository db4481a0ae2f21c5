#!/usr/bin/env python3
# termbridge/rendering/color.py
"""
RGB color value with xterm-256 quantization.

The palette mapping is a closed-form formula, not a nearest-neighbour search:
near-grey colors go to the grey ramp (232..255), everything else to the
6x6x6 cube (16..231).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

__all__ = ["Color", "BLACK", "WHITE"]

# Cube levels are 0, 95, 135, 175, 215, 255: one step every 40 from 55.
_CUBE_SCALE = 5.0 / 200.0
_CUBE_OFFSET = _CUBE_SCALE * -55.0


@dataclass(frozen=True)
class Color:
    r: int
    g: int
    b: int

    @classmethod
    def from_tuple(cls, rgb: Iterable[int]) -> "Color":
        r, g, b = (int(v) for v in rgb)
        return cls(r, g, b)

    @classmethod
    def mean(cls, colors: Iterable["Color"]) -> "Color":
        """Per-channel floor mean of one or more colors."""
        items = list(colors)
        n = len(items)
        if n == 0:
            raise ValueError("mean of an empty color set")
        return cls(
            sum(c.r for c in items) // n,
            sum(c.g for c in items) // n,
            sum(c.b for c in items) // n,
        )

    def as_tuple(self) -> Tuple[int, int, int]:
        return self.r, self.g, self.b

    def avg_with(self, other: "Color") -> "Color":
        return Color(
            (self.r + other.r) // 2,
            (self.g + other.g) // 2,
            (self.b + other.b) // 2,
        )

    def luma(self) -> float:
        # Rec. 601 weights
        return 0.299 * self.r + 0.587 * self.g + 0.114 * self.b

    def to_xterm(self) -> int:
        hi = max(self.r, self.g, self.b)
        lo = min(self.r, self.g, self.b)

        if hi - lo < 8:
            r = self.r
            if r <= 4:
                return 16
            if r <= 8:
                return 232
            if 238 <= r <= 246:
                return 255
            if r >= 247:
                return 231
            return 232 + (r - 8) // 10

        def level(c: int) -> int:
            return int(_round_half_up(max(0.0, c * _CUBE_SCALE + _CUBE_OFFSET)))

        return 16 + 36 * level(self.r) + 6 * level(self.g) + level(self.b)

    def to_hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"


def _round_half_up(x: float) -> float:
    return float(int(x + 0.5))


BLACK = Color(0, 0, 0)
WHITE = Color(255, 255, 255)
