import io
import logging

import pytest

from termbridge.rendering.cell import Cell, Grapheme, Point, Size
from termbridge.rendering.color import BLACK, WHITE, Color
from termbridge.rendering.painter import (
    CURSOR_HOME,
    HIDE_CURSOR,
    SHOW_CURSOR,
    SIXEL_SCROLL_OFF,
    SIXEL_SCROLL_ON,
    Painter,
    detect_true_color,
    sixel_scroll_from_env,
)
from termbridge.rendering.quadrant_mode import Quadrant
from termbridge.rendering.sixel import SIXEL_START

RED = Color(255, 0, 0)


def block(x, y, color=RED, image=False):
    return Cell(cursor=Point(x=x, y=y), quadrant=Quadrant.solid(color), image=image)


def glyph(x, y, char="A", color=WHITE, width=1, index=0, background=BLACK):
    return Cell(
        cursor=Point(x=x, y=y),
        quadrant=Quadrant.solid(background),
        grapheme=Grapheme(char=char, color=color, width=width, index=index),
    )


def rgba(w, h, color=(10, 20, 30, 255)):
    return bytes(color) * (w * h)


def make_painter(true_color=True):
    out = io.BytesIO()
    return Painter(output=out, true_color=true_color), out


def test_first_paint_writes_position_colors_and_glyph():
    painter, _ = make_painter()
    painter.paint(block(0, 0))
    assert bytes(painter.buffer) == b"\x1b[1;1H\x1b[48;2;255;0;0m\x1b[38;2;255;0;0m "


def test_same_colors_written_once_across_cells():
    painter, _ = make_painter()
    for x in range(5):
        painter.paint(block(x, 0))
    data = bytes(painter.buffer)
    assert data.count(b"\x1b[48;2;") == 1
    assert data.count(b"\x1b[38;2;") == 1


def test_adjacent_cells_do_not_repeat_position():
    painter, _ = make_painter()
    painter.paint(block(3, 2))
    painter.paint(block(4, 2))
    data = bytes(painter.buffer)
    assert data.count(b"\x1b[3;4H") == 1
    assert b"\x1b[3;5H" not in data


def test_repaint_at_same_cursor_does_not_repeat_position():
    painter, _ = make_painter()
    painter.paint(block(0, 0))
    painter.cursor = Point(x=0, y=0)
    painter.paint(block(0, 0))
    assert bytes(painter.buffer).count(b"\x1b[1;1H") == 1


def test_gap_writes_position():
    painter, _ = make_painter()
    painter.paint(block(0, 0))
    painter.paint(block(5, 1))
    assert b"\x1b[2;6H" in bytes(painter.buffer)


def test_continuation_cell_is_a_no_op():
    painter, _ = make_painter()
    painter.paint(glyph(0, 0, char="日", width=2, index=0))
    before = bytes(painter.buffer)
    cursor = painter.cursor

    painter.paint(glyph(1, 0, char="日", width=2, index=1))
    assert bytes(painter.buffer) == before
    assert painter.cursor == cursor == Point(x=2, y=0)

    # Cursor already advanced past the wide glyph
    painter.paint(glyph(2, 0, char="x"))
    assert b"\x1b[1;3H" not in bytes(painter.buffer)
    assert bytes(painter.buffer).endswith("日x".encode("utf-8"))


def test_glyph_cell_uses_quadrant_average_and_glyph_color():
    painter, _ = make_painter()
    painter.paint(glyph(0, 0, char="Z", color=Color(1, 2, 3), background=Color(40, 50, 60)))
    data = bytes(painter.buffer)
    assert b"\x1b[48;2;40;50;60m" in data
    assert b"\x1b[38;2;1;2;3m" in data
    assert data.endswith(b"Z")


def test_indexed_mode_dedupes_palette_codes():
    painter, _ = make_painter(true_color=False)
    painter.paint(block(0, 0, RED))
    painter.paint(block(1, 0, Color(250, 0, 0)))
    data = bytes(painter.buffer)
    # Both reds resolve to 196: only one escape per plane
    assert data.count(b"\x1b[48;5;") == 1
    assert data.count(b"\x1b[38;5;") == 1
    assert b"\x1b[48;5;196m" in data
    assert painter.background == Color(250, 0, 0)


def test_indexed_mode_writes_changed_code():
    painter, _ = make_painter(true_color=False)
    painter.paint(block(0, 0, RED))
    painter.paint(block(1, 0, Color(0, 0, 255)))
    assert b"\x1b[48;5;21m" in bytes(painter.buffer)


def test_set_true_color_switches_encoding():
    painter, _ = make_painter(true_color=False)
    painter.set_true_color(True)
    painter.paint(block(0, 0))
    assert b"\x1b[48;2;255;0;0m" in bytes(painter.buffer)


def test_image_cell_skipped_only_with_sixel():
    painter, _ = make_painter()
    painter.paint(block(0, 0, image=True))
    assert painter.buffer

    painter, _ = make_painter()
    painter.enable_sixel(Size(0, 0), scrolling=True)
    painter.paint(block(0, 0, image=True))
    assert not painter.buffer
    assert painter.cursor is None


def test_glyph_over_image_cell_still_painted():
    painter, _ = make_painter()
    painter.enable_sixel(Size(0, 0), scrolling=True)
    cell = glyph(0, 0, char="!")
    painter.paint(Cell(cursor=cell.cursor, quadrant=cell.quadrant, grapheme=cell.grapheme, image=True))
    assert bytes(painter.buffer).endswith(b"!")


def test_begin_hides_cursor():
    painter, _ = make_painter()
    painter.begin()
    assert bytes(painter.buffer) == HIDE_CURSOR


def test_sixel_scroll_mode_configured_once():
    painter, _ = make_painter()
    painter.enable_sixel(Size(0, 0), scrolling=True)
    painter.begin()
    painter.begin()
    assert bytes(painter.buffer) == HIDE_CURSOR + SIXEL_SCROLL_ON + HIDE_CURSOR


def test_sixel_scroll_off():
    painter, _ = make_painter()
    painter.enable_sixel(Size(0, 0), scrolling=False)
    painter.begin()
    assert bytes(painter.buffer) == HIDE_CURSOR + SIXEL_SCROLL_OFF


def test_enable_sixel_first_call_wins():
    painter, _ = make_painter()
    first = painter.enable_sixel(Size(50, 50), scrolling=False)
    second = painter.enable_sixel(Size(800, 600), scrolling=True)
    assert first is second
    assert second.geometry == Size(50, 50)
    assert second.scrolling is False


def test_enable_sixel_reads_scroll_env(monkeypatch):
    monkeypatch.setenv("TERMBRIDGE_SIXEL_SCROLL", "off")
    painter, _ = make_painter()
    assert painter.enable_sixel(Size(0, 0)).scrolling is False


def test_queue_without_sixel_fails():
    painter, _ = make_painter()
    assert painter.queue_sixel_background(rgba(2, 2), Size(2, 2)) is False


def test_pending_frame_written_once():
    painter, _ = make_painter()
    painter.enable_sixel(Size(0, 0), scrolling=True)
    assert painter.queue_sixel_background(rgba(4, 6), Size(4, 6)) is True
    frame = painter.sixel.pending

    painter.begin()
    assert bytes(painter.buffer) == HIDE_CURSOR + SIXEL_SCROLL_ON + CURSOR_HOME + frame.data + CURSOR_HOME
    assert painter.sixel.pending is None

    painter.buffer.clear()
    painter.begin()
    assert SIXEL_START not in bytes(painter.buffer)


def test_oversized_viewport_clears_pending(caplog):
    painter, _ = make_painter()
    painter.enable_sixel(Size(50, 50), scrolling=True)
    assert painter.queue_sixel_background(rgba(10, 10), Size(10, 10)) is True

    with caplog.at_level(logging.ERROR):
        assert painter.queue_sixel_background(rgba(100, 100), Size(100, 100)) is False
    assert painter.sixel.pending is None
    assert "exceeds" in caplog.text

    painter.begin()
    assert SIXEL_START not in bytes(painter.buffer)


def test_short_buffer_rejected(caplog):
    painter, _ = make_painter()
    painter.enable_sixel(Size(0, 0), scrolling=True)
    with caplog.at_level(logging.ERROR):
        assert painter.queue_sixel_background(b"\x00" * 15, Size(2, 2)) is False
    assert "expected 16, actual 15" in caplog.text
    assert painter.sixel.pending is None


def test_zero_viewport_rejected():
    painter, _ = make_painter()
    painter.enable_sixel(Size(0, 0), scrolling=True)
    assert painter.queue_sixel_background(b"", Size(0, 4)) is False
    assert painter.sixel.pending is None


def test_end_flushes_once_and_forgets_cursor():
    painter, out = make_painter()
    painter.begin()
    painter.paint(block(0, 0))
    painter.end(Point(x=2, y=5))

    data = out.getvalue()
    assert data.startswith(HIDE_CURSOR)
    assert data.endswith(b"\x1b[6;3H" + SHOW_CURSOR)
    assert not painter.buffer
    assert painter.cursor is None


def test_end_without_cursor_keeps_it_hidden():
    painter, out = make_painter()
    painter.paint(block(0, 0))
    painter.end()
    assert SHOW_CURSOR not in out.getvalue()


def test_colors_persist_across_frames():
    painter, out = make_painter()
    painter.paint(block(0, 0))
    painter.end()
    painter.paint(block(0, 0))
    painter.end()
    data = out.getvalue()
    assert data.count(b"\x1b[48;2;") == 1
    # Cursor is forgotten, so the position is written again
    assert data.count(b"\x1b[1;1H") == 2


class BrokenOutput:
    def write(self, data):
        raise OSError("broken pipe")

    def flush(self):
        pass


def test_end_propagates_output_errors():
    painter = Painter(output=BrokenOutput(), true_color=True)
    painter.paint(block(0, 0))
    with pytest.raises(OSError):
        painter.end()


def test_detect_true_color():
    assert detect_true_color({"COLORTERM": "truecolor"})
    assert detect_true_color({"COLORTERM": "24bit"})
    assert not detect_true_color({"COLORTERM": "yes"})
    assert not detect_true_color({})


def test_painter_reads_colorterm(monkeypatch):
    monkeypatch.setenv("COLORTERM", "24bit")
    assert Painter(output=io.BytesIO()).true_color is True
    monkeypatch.delenv("COLORTERM")
    assert Painter(output=io.BytesIO()).true_color is False


def test_sixel_scroll_from_env():
    assert sixel_scroll_from_env({}) is True
    assert sixel_scroll_from_env({"TERMBRIDGE_SIXEL_SCROLL": "0"}) is False
    assert sixel_scroll_from_env({"TERMBRIDGE_SIXEL_SCROLL": "Yes"}) is True
    assert sixel_scroll_from_env({"TERMBRIDGE_SIXEL_SCROLL": "maybe"}) is True
