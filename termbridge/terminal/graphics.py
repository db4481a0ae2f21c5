#!/usr/bin/env python3
# termbridge/terminal/graphics.py
"""
Graphics capability reports (XTSMGRAPHICS).

Query:  ESC [ ? 2 ; 1 ; 0 S           read the Sixel geometry
Reply:  ESC [ ? 2 ; 0 ; <w> ; <h> S   item 2 (Sixel), status 0 (ok)

GraphicsParser consumes the reply body after the "ESC [ ?" introducer, one
byte at a time. CapabilityReader finds the introducer in raw input chunks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

__all__ = [
    "GRAPHICS_QUERY",
    "GraphicsSupported",
    "ParseState",
    "ParseResult",
    "GraphicsParser",
    "CapabilityReader",
]

GRAPHICS_QUERY = b"\x1b[?2;1;0S"
REPORT_INTRODUCER = b"\x1b[?"

_SIXEL_ITEM = 2
_STATUS_OK = 0
_U32_MAX = 0xFFFFFFFF


@dataclass(frozen=True)
class GraphicsSupported:
    """Sixel graphics confirmed; 0 means no bound in that dimension."""

    width: int = 0
    height: int = 0


class ParseState(Enum):
    CONTINUE = "continue"
    DONE = "done"


@dataclass(frozen=True)
class ParseResult:
    state: ParseState
    event: Optional[GraphicsSupported] = None

    @property
    def done(self) -> bool:
        return self.state is ParseState.DONE


_CONTINUE = ParseResult(ParseState.CONTINUE)
_ABORT = ParseResult(ParseState.DONE)


@dataclass
class GraphicsParser:
    params: List[int] = field(default_factory=list)
    buffer: bytearray = field(default_factory=bytearray)

    def parse(self, key: int) -> ParseResult:
        if 0x30 <= key <= 0x39:
            self.buffer.append(key)
            return _CONTINUE
        if key == 0x3B:  # ;
            self._push_param()
            return _CONTINUE
        if key == 0x53:  # S
            self._push_param()
            return ParseResult(ParseState.DONE, self._event())
        self.reset()
        return _ABORT

    def reset(self) -> None:
        self.params.clear()
        self.buffer.clear()

    def _push_param(self) -> None:
        if not self.buffer:
            self.params.append(0)
            return
        value = int(self.buffer.decode("ascii"))
        # Parameters are u32; anything wider is dropped, not wrapped
        if value <= _U32_MAX:
            self.params.append(value)
        self.buffer.clear()

    def _event(self) -> Optional[GraphicsSupported]:
        params = list(self.params)
        self.reset()

        if len(params) < 2:
            return None
        item, status = params[0], params[1]
        if item != _SIXEL_ITEM or status != _STATUS_OK:
            return None

        width = params[2] if len(params) > 2 else 0
        height = params[3] if len(params) > 3 else 0
        return GraphicsSupported(width=width, height=height)


class CapabilityReader:
    """Pull graphics reports out of an arbitrary input stream.

    Bytes outside a report are ignored. State carries over between feed()
    calls, so a report split across reads still decodes.
    """

    def __init__(self) -> None:
        self.parser = GraphicsParser()
        self._prefix = 0
        self._in_report = False

    def feed(self, data: bytes) -> List[GraphicsSupported]:
        events: List[GraphicsSupported] = []
        for key in data:
            if self._in_report:
                result = self.parser.parse(key)
                if result.done:
                    self._in_report = False
                    # An ESC that cut the report short may open the next one
                    self._prefix = 1 if key == REPORT_INTRODUCER[0] else 0
                    if result.event is not None:
                        events.append(result.event)
                continue

            if key == REPORT_INTRODUCER[self._prefix]:
                self._prefix += 1
                if self._prefix == len(REPORT_INTRODUCER):
                    self._prefix = 0
                    self._in_report = True
            else:
                self._prefix = 1 if key == REPORT_INTRODUCER[0] else 0
        return events
