#!/usr/bin/env python3
# termbridge/rendering/sixel.py
"""
Sixel encoder for RGBA viewports.

Pipeline: RGBA bytes -> Pillow image -> optional bicubic resample -> palette
quantization (<= 256 colors, selectable dithering) -> six-row bands, one
run-length encoded row per color per band.

Protocol: https://vt100.net/docs/vt3xx-gp/chapter14.html
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Union

import numpy as np
from PIL import Image

from termbridge.rendering.cell import Size

__all__ = [
    "DitherMethod",
    "Frame",
    "SixelError",
    "InvalidSizeError",
    "EncodeError",
    "encode",
]

MAX_COLORS = 256

# DCS: P1=0 (2:1 aspect default), P2=1 (zero bits leave pixels untouched), P3=0
SIXEL_START = b"\x1bP0;1;0q"
SIXEL_END = b"\x1b\\"

# 4x4 Bayer threshold map
_BAYER_4 = np.array(
    [
        [0, 8, 2, 10],
        [12, 4, 14, 6],
        [3, 11, 1, 9],
        [15, 7, 13, 5],
    ],
    dtype=np.float32,
)
_BAYER_SPREAD = 32.0


class DitherMethod(str, Enum):
    AUTO = "auto"
    NONE = "none"
    FLOYD_STEINBERG = "floyd-steinberg"
    BAYER = "bayer"


class SixelError(Exception):
    """Base class for encoder failures."""


class InvalidSizeError(SixelError):
    def __init__(self, size: Size):
        super().__init__(f"invalid viewport size {size}")
        self.size = size


class EncodeError(SixelError):
    """The palette or band encoder failed; the cause is chained."""


@dataclass(frozen=True)
class Frame:
    data: bytes
    size: Size

    @classmethod
    def from_viewport(
        cls,
        pixels: Union[bytes, bytearray, memoryview],
        size: Size,
        dither: DitherMethod = DitherMethod.AUTO,
    ) -> "Frame":
        return encode(pixels, size, size, dither)

    def __len__(self) -> int:
        return len(self.data)


def encode(
    pixels: Union[bytes, bytearray, memoryview],
    source_size: Size,
    target_size: Size,
    dither: DitherMethod = DitherMethod.AUTO,
) -> Frame:
    """Encode an RGBA buffer of source_size into a Sixel frame of target_size.

    Raises InvalidSizeError for empty sizes, short buffers or a failed
    resample, and EncodeError when quantization or band encoding fails.
    """
    for size in (source_size, target_size):
        if size.width <= 0 or size.height <= 0:
            raise InvalidSizeError(size)

    img = _viewport_image(pixels, source_size)

    if source_size != target_size:
        try:
            # Pillow's bicubic kernel is Catmull-Rom (a = -0.5)
            img = img.resize((int(target_size.width), int(target_size.height)), Image.BICUBIC)
        except (ValueError, OSError, MemoryError) as exc:
            raise InvalidSizeError(target_size) from exc

    try:
        indexed = _quantize(img, DitherMethod(dither))
        data = _encode_indexed(indexed)
    except (ValueError, OSError, MemoryError) as exc:
        raise EncodeError(f"sixel encoding failed: {exc}") from exc

    return Frame(data=data, size=target_size)


def _viewport_image(pixels: Union[bytes, bytearray, memoryview], size: Size) -> Image.Image:
    w, h = int(size.width), int(size.height)
    expected = w * h * 4
    if len(pixels) < expected:
        raise InvalidSizeError(size)
    try:
        rgba = Image.frombytes("RGBA", (w, h), bytes(pixels[:expected]))
    except ValueError as exc:
        raise InvalidSizeError(size) from exc
    return rgba.convert("RGB")


def _ordered_dither(img: Image.Image) -> Image.Image:
    arr = np.asarray(img, dtype=np.float32)
    h, w = arr.shape[:2]
    tiles = np.tile(_BAYER_4, (h // 4 + 1, w // 4 + 1))[:h, :w]
    offset = (tiles / 16.0 - 0.5) * _BAYER_SPREAD
    out = np.clip(arr + offset[..., np.newaxis], 0, 255).astype(np.uint8)
    return Image.fromarray(out, "RGB")


def _quantize(img: Image.Image, dither: DitherMethod) -> Image.Image:
    # quantize() ignores dither while building a palette, so build the palette
    # first and dither against it in a second pass.
    palette = img.quantize(colors=MAX_COLORS, method=Image.Quantize.MEDIANCUT, dither=Image.Dither.NONE)

    if dither is DitherMethod.NONE:
        return palette
    if dither is DitherMethod.BAYER:
        return _ordered_dither(img).quantize(palette=palette, dither=Image.Dither.NONE)
    return img.quantize(palette=palette, dither=Image.Dither.FLOYDSTEINBERG)


def _percent(v: int) -> int:
    return (v * 100 + 127) // 255


def _rle(values: Sequence[int]) -> str:
    """Run-length encode one color row of a band. Trailing empty columns are
    dropped; the next '$' or '-' discards them anyway."""
    arr = np.asarray(values)
    nonzero = np.flatnonzero(arr)
    if nonzero.size == 0:
        return ""
    arr = arr[: nonzero[-1] + 1]

    change = np.flatnonzero(np.diff(arr)) + 1
    starts = np.concatenate(([0], change)).tolist()
    ends = np.concatenate((change, [arr.size])).tolist()

    parts: List[str] = []
    for start, end in zip(starts, ends):
        char = chr(63 + int(arr[start]))
        count = end - start
        parts.append(f"!{count}{char}" if count >= 3 else char * count)
    return "".join(parts)


def _encode_indexed(indexed: Image.Image) -> bytes:
    w, h = indexed.size
    idx = np.asarray(indexed, dtype=np.uint8)
    flat_palette = indexed.getpalette() or []

    parts: List[str] = [f'"1;1;{w};{h}']

    for color in np.unique(idx).tolist():
        r, g, b = (flat_palette[color * 3 : color * 3 + 3] + [0, 0, 0])[:3]
        parts.append(f"#{color};2;{_percent(r)};{_percent(g)};{_percent(b)}")

    bands: List[str] = []
    for top in range(0, h, 6):
        band = idx[top : top + 6]
        weights = (1 << np.arange(band.shape[0], dtype=np.int32))[:, np.newaxis]
        rows: List[str] = []
        for color in np.unique(band).tolist():
            bits = ((band == color) * weights).sum(axis=0)
            rows.append(f"#{color}{_rle(bits)}$")
        bands.append("".join(rows))
    parts.append("-".join(bands))

    return SIXEL_START + "".join(parts).encode("ascii") + SIXEL_END
