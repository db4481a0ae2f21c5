#!/usr/bin/env python3
# termbridge/terminal/query.py
"""
Terminal measurements.

TerminalQuery is what the window prober needs from the platform; TtyQuery is
the POSIX implementation:

- get_terminal_size():  TIOCGWINSZ on stdout (cells and, maybe, pixels)
- get_window_pixels():  ESC [ 14 t  ->  ESC [ 4 ; <height> ; <width> t
- get_cell_geometry():  ESC [ 16 t  ->  ESC [ 6 ; <height> ; <width> t
- get_graphics_support(): XTSMGRAPHICS round trip, see terminal/graphics.py

Round trips run on /dev/tty in raw mode with a short deadline. Every probe
answers None instead of raising when the terminal stays silent or replies
with garbage.
"""

from __future__ import annotations

import fcntl
import logging
import os
import select
import struct
import sys
import termios
import time
from dataclasses import dataclass
from typing import Optional, Protocol

from prompt_toolkit.input.vt100 import raw_mode

from termbridge.rendering.cell import Size
from termbridge.terminal.graphics import GRAPHICS_QUERY, CapabilityReader, GraphicsSupported

__all__ = [
    "TerminalSize",
    "TerminalQuery",
    "TtyQuery",
    "parse_report",
    "WINDOW_PIXELS_QUERY",
    "CELL_GEOMETRY_QUERY",
]

log = logging.getLogger(__name__)

WINDOW_PIXELS_QUERY = b"\x1b[14t"
WINDOW_PIXELS_REPLY = b"\x1b[4;"
CELL_GEOMETRY_QUERY = b"\x1b[16t"
CELL_GEOMETRY_REPLY = b"\x1b[6;"

DEFAULT_TIMEOUT_S = 0.1
READ_LIMIT = 128


@dataclass(frozen=True)
class TerminalSize:
    columns: int
    rows: int
    px_width: int = 0
    px_height: int = 0


class TerminalQuery(Protocol):
    def get_terminal_size(self) -> Optional[TerminalSize]: ...

    def get_window_pixels(self) -> Optional[Size]: ...

    def get_cell_geometry(self) -> Optional[Size]: ...


def parse_report(response: bytes, prefix: bytes, terminator: bytes = b"t") -> Optional[Size]:
    """Parse the last `prefix <height> ; <width> t` reply found in response."""
    start = response.rfind(prefix)
    if start < 0:
        return None
    rest = response[start + len(prefix) :]
    end = rest.find(terminator)
    if end < 0:
        return None

    try:
        fields = rest[:end].decode("ascii").split(";")
        if len(fields) < 2:
            return None
        height = float(fields[0])
        width = float(fields[1])
    except ValueError:
        return None

    if not (width > 0 and height > 0):
        return None
    return Size(width, height)


class TtyQuery:
    def __init__(
        self,
        fd: Optional[int] = None,
        tty_path: str = "/dev/tty",
        timeout: float = DEFAULT_TIMEOUT_S,
    ):
        self.fd = fd
        self.tty_path = tty_path
        self.timeout = timeout

    # ------------- ioctl -------------

    def get_terminal_size(self) -> Optional[TerminalSize]:
        try:
            # io.UnsupportedOperation when stdout has no descriptor
            fd = sys.stdout.fileno() if self.fd is None else self.fd
            packed = fcntl.ioctl(fd, termios.TIOCGWINSZ, struct.pack("HHHH", 0, 0, 0, 0))
        except (OSError, ValueError):
            return None
        rows, cols, xpixel, ypixel = struct.unpack("HHHH", packed)
        return TerminalSize(columns=cols, rows=rows, px_width=xpixel, px_height=ypixel)

    # ------------- escape sequence round trips -------------

    def get_window_pixels(self) -> Optional[Size]:
        return parse_report(self.round_trip(WINDOW_PIXELS_QUERY), WINDOW_PIXELS_REPLY)

    def get_cell_geometry(self) -> Optional[Size]:
        return parse_report(self.round_trip(CELL_GEOMETRY_QUERY), CELL_GEOMETRY_REPLY)

    def get_graphics_support(self) -> Optional[GraphicsSupported]:
        events = CapabilityReader().feed(self.round_trip(GRAPHICS_QUERY, terminator=b"S"))
        return events[0] if events else None

    def round_trip(self, query: bytes, terminator: bytes = b"t") -> bytes:
        """Write query to the tty and collect the reply until terminator,
        READ_LIMIT bytes, or the deadline. Returns b"" if the tty is unusable."""
        try:
            fd = os.open(self.tty_path, os.O_RDWR | os.O_NOCTTY)
        except OSError as exc:
            log.debug("cannot open %s: %s", self.tty_path, exc)
            return b""

        try:
            if not os.isatty(fd):
                return b""
            # raw_mode puts the saved attributes back on exit
            with raw_mode(fd):
                return self._exchange(fd, query, terminator)
        except (OSError, termios.error) as exc:
            log.debug("terminal query %r failed: %s", query, exc)
            return b""
        finally:
            os.close(fd)

    def _exchange(self, fd: int, query: bytes, terminator: bytes) -> bytes:
        os.write(fd, query)

        buf = b""
        deadline = time.monotonic() + self.timeout
        while len(buf) < READ_LIMIT:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            ready, _, _ = select.select([fd], [], [], remaining)
            if not ready:
                break
            chunk = os.read(fd, READ_LIMIT - len(buf))
            if not chunk:
                break
            buf += chunk
            if terminator in buf:
                break
        return buf
