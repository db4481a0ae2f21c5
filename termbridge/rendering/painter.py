#!/usr/bin/env python3
# termbridge/rendering/painter.py
"""
Frame painter: turns a stream of Cells into the smallest ANSI byte stream that
reproduces them, given what was written before.

Per frame:  begin() -> paint(cell) * N -> end(cursor)

Diff state (cursor, background/foreground color and palette code) lives on the
Painter. Colors survive across frames; the cursor is forgotten at every end()
because anything else may have moved it in between.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import BinaryIO, Optional, Union

from termbridge.rendering.cell import Cell, Point, Size
from termbridge.rendering.color import Color
from termbridge.rendering.sixel import DitherMethod, Frame, InvalidSizeError, SixelError, encode

__all__ = ["Painter", "SixelState", "detect_true_color", "sixel_scroll_from_env"]

log = logging.getLogger(__name__)

HIDE_CURSOR = b"\x1b[?25l\x1b[?12l"
SHOW_CURSOR = b"\x1b[?25h\x1b[?12h"
CURSOR_HOME = b"\x1b[H"
SIXEL_SCROLL_ON = b"\x1b[?80h"
SIXEL_SCROLL_OFF = b"\x1b[?80l"

SIXEL_SCROLL_ENV = "TERMBRIDGE_SIXEL_SCROLL"

_TRUE = ("1", "true", "on", "yes")
_FALSE = ("0", "false", "off", "no")


def detect_true_color(environ=None) -> bool:
    env = os.environ if environ is None else environ
    return env.get("COLORTERM", "") in ("truecolor", "24bit")


def sixel_scroll_from_env(environ=None) -> bool:
    env = os.environ if environ is None else environ
    value = env.get(SIXEL_SCROLL_ENV)
    if value is None:
        return True
    s = value.strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    return True


@dataclass
class SixelState:
    geometry: Size
    scrolling: bool = True
    configured: bool = False
    pending: Optional[Frame] = None

    def take(self) -> Optional[Frame]:
        frame, self.pending = self.pending, None
        return frame


def _position(cursor: Point) -> bytes:
    return b"\x1b[%d;%dH" % (cursor.y + 1, cursor.x + 1)


class Painter:
    def __init__(self, output: Optional[BinaryIO] = None, true_color: Optional[bool] = None):
        self.output = output if output is not None else sys.stdout.buffer
        self.buffer = bytearray()
        self.cursor: Optional[Point] = None
        self.true_color = detect_true_color() if true_color is None else true_color
        self.background: Optional[Color] = None
        self.foreground: Optional[Color] = None
        self.background_code: Optional[int] = None
        self.foreground_code: Optional[int] = None
        self.sixel: Optional[SixelState] = None
        self.dither = DitherMethod.AUTO

    # ------------- capability -------------

    def set_true_color(self, true_color: bool) -> None:
        self.true_color = true_color

    @property
    def sixel_enabled(self) -> bool:
        return self.sixel is not None

    def enable_sixel(self, geometry: Size, scrolling: Optional[bool] = None) -> SixelState:
        """Switch to bitmap mode. Only the first call configures the state."""
        if self.sixel is None:
            self.sixel = SixelState(
                geometry=geometry,
                scrolling=sixel_scroll_from_env() if scrolling is None else scrolling,
            )
            log.debug("sixel enabled, geometry %s, scrolling %s", geometry, self.sixel.scrolling)
        return self.sixel

    def queue_sixel_background(self, pixels: Union[bytes, bytearray, memoryview], size: Size) -> bool:
        """Encode a viewport and hold it for the next begin().

        Any failure is logged, drops whatever was pending, and returns False.
        """
        state = self.sixel
        if state is None:
            return False

        geometry = state.geometry
        exceeds_width = geometry.width != 0 and size.width > geometry.width
        exceeds_height = geometry.height != 0 and size.height > geometry.height
        if exceeds_width or exceeds_height:
            log.error(
                "failed to encode sixel frame: viewport %s exceeds terminal graphics geometry %s",
                size,
                geometry,
            )
            state.pending = None
            return False

        expected = int(size.width) * int(size.height) * 4
        if len(pixels) < expected:
            log.error(
                "failed to encode sixel frame: unexpected buffer size (expected %d, actual %d)",
                expected,
                len(pixels),
            )
            state.pending = None
            return False

        try:
            state.pending = encode(pixels, size, size, self.dither)
        except InvalidSizeError as exc:
            log.error("failed to encode sixel frame: viewport %s is invalid", exc.size)
            state.pending = None
            return False
        except SixelError as exc:
            log.error("failed to encode sixel frame: %s", exc)
            state.pending = None
            return False

        return True

    # ------------- frame -------------

    def begin(self) -> None:
        self.buffer += HIDE_CURSOR

        state = self.sixel
        if state is None:
            return

        if not state.configured:
            self.buffer += SIXEL_SCROLL_ON if state.scrolling else SIXEL_SCROLL_OFF
            state.configured = True

        frame = state.take()
        if frame is not None:
            self.buffer += CURSOR_HOME
            self.buffer += frame.data
            self.buffer += CURSOR_HOME

    def paint(self, cell: Cell) -> None:
        grapheme = cell.grapheme

        if grapheme is None and cell.image and self.sixel_enabled:
            return

        if grapheme is not None:
            if grapheme.index > 0:
                return
            char = grapheme.char
            background = cell.quadrant.average()
            foreground = grapheme.color
            width = grapheme.width
        else:
            char, background, foreground = cell.quadrant.binarize()
            width = 1

        cursor = cell.cursor
        if self.cursor != cursor:
            self.buffer += _position(cursor)
        self.cursor = Point(x=cursor.x + width, y=cursor.y)

        if self.background != background:
            self.background = background
            if self.true_color:
                self.buffer += b"\x1b[48;2;%d;%d;%dm" % background.as_tuple()
            else:
                code = background.to_xterm()
                if self.background_code != code:
                    self.background_code = code
                    self.buffer += b"\x1b[48;5;%dm" % code

        if self.foreground != foreground:
            self.foreground = foreground
            if self.true_color:
                self.buffer += b"\x1b[38;2;%d;%d;%dm" % foreground.as_tuple()
            else:
                code = foreground.to_xterm()
                if self.foreground_code != code:
                    self.foreground_code = code
                    self.buffer += b"\x1b[38;5;%dm" % code

        self.buffer += char.encode("utf-8")

    def end(self, cursor: Optional[Point] = None) -> None:
        """Flush the frame in one write. OSError from the output propagates."""
        if cursor is not None:
            self.buffer += _position(cursor)
            self.buffer += SHOW_CURSOR

        self.output.write(bytes(self.buffer))
        self.output.flush()
        self.buffer.clear()
        self.cursor = None
