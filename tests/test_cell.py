from termbridge.rendering.cell import Size


def test_round_is_half_away_from_zero():
    assert Size(2.5, 3.5).round() == Size(3, 4)
    assert Size(2.4, 0.5).round() == Size(2, 1)


def test_ceil_and_scaled():
    assert Size(80, 23).scaled(Size(8.0, 16.0)) == Size(640.0, 368.0)
    assert Size(3, 3).scaled(Size(2.1, 0.5)).ceil() == Size(7, 2)


def test_is_empty_and_str():
    assert Size(0, 5).is_empty()
    assert Size(5, 0).is_empty()
    assert not Size(1, 1).is_empty()
    assert str(Size(80, 24)) == "80x24"
