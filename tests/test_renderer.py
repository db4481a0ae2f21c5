from PIL import Image

from termbridge.rendering.cell import Point
from termbridge.rendering.color import BLACK, WHITE, Color
from termbridge.rendering.quadrant_mode import Quadrant
from termbridge.rendering.renderer import QuadrantRenderer, text_cells


def halves(w, h):
    img = Image.new("RGB", (w, h), (0, 0, 0))
    img.paste((255, 255, 255), (0, 0, w // 2, h))
    return img


def test_one_cell_per_position_row_major():
    cells = QuadrantRenderer().render(Image.new("RGB", (4, 4)), 2, 2)
    assert [c.cursor for c in cells] == [Point(0, 0), Point(1, 0), Point(0, 1), Point(1, 1)]
    assert all(c.grapheme is None for c in cells)


def test_samples_taken_from_2x2_blocks():
    cells = QuadrantRenderer().render(halves(4, 2), 2, 1)
    assert cells[0].quadrant == Quadrant.solid(WHITE)
    assert cells[1].quadrant == Quadrant.solid(BLACK)


def test_split_block_binarizes():
    img = Image.new("RGB", (2, 2), (0, 0, 0))
    img.putpixel((0, 0), (255, 255, 255))
    (cell,) = QuadrantRenderer().render(img, 1, 1)
    assert cell.quadrant.binarize()[0] == "▘"


def test_rgba_input_and_image_flag():
    img = Image.new("RGBA", (8, 8), (10, 20, 30, 0))
    cells = QuadrantRenderer().render(img, 3, 2, image=True)
    assert len(cells) == 6
    assert all(c.image for c in cells)


def test_empty_grid():
    assert QuadrantRenderer().render(Image.new("RGB", (4, 4)), 0, 3) == []


def test_text_cells_ascii():
    cells = text_cells("ab", row=3, color=WHITE, background=BLACK, column=2)
    assert [c.cursor for c in cells] == [Point(2, 3), Point(3, 3)]
    assert [c.grapheme.char for c in cells] == ["a", "b"]
    assert all(c.quadrant == Quadrant.solid(BLACK) for c in cells)


def test_text_cells_wide_glyph_continuation():
    red = Color(255, 0, 0)
    cells = text_cells("日x", row=0, color=red, background=BLACK)
    assert [(c.cursor.x, c.grapheme.index, c.grapheme.width) for c in cells] == [
        (0, 0, 2),
        (1, 1, 2),
        (2, 0, 1),
    ]
    assert cells[0].grapheme.color == red


def test_text_cells_drop_zero_width():
    cells = text_cells("e\u0301", row=0, color=WHITE, background=BLACK)
    assert len(cells) == 1
    assert cells[0].grapheme.char == "e"
