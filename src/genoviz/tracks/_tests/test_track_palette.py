from __future__ import annotations

import pytest

from genoviz.tracks import AUTO_COLOR, DEFAULT_PALETTE, normalize_color, palette_color, resolve_color


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, AUTO_COLOR),
        ("AUTO", AUTO_COLOR),
        ("#ABC", "#abc"),
        ("#1F77B4", "#1f77b4"),
        ("rgb(10, 20, 30)", "rgb(10,20,30)"),
        ("rgba(10,20,30,0.5)", "rgba(10,20,30,0.5)"),
        ("SteelBlue", "steelblue"),
    ],
)
def test_normalize_color_accepts(raw, expected) -> None:
    assert normalize_color(raw) == expected


@pytest.mark.parametrize("raw", ["#12", "#GGGGGG", "rgb(1,2)", "light blue", 42, ""])
def test_normalize_color_rejects(raw) -> None:
    assert normalize_color(raw) is None


def test_palette_cycles() -> None:
    assert palette_color(0) == DEFAULT_PALETTE[0]
    assert palette_color(len(DEFAULT_PALETTE)) == DEFAULT_PALETTE[0]
    assert palette_color(1, ("red", "blue")) == "blue"
    with pytest.raises(ValueError):
        palette_color(-1)
    with pytest.raises(ValueError):
        palette_color(0, ())


def test_resolve_color() -> None:
    assert resolve_color(AUTO_COLOR, 2) == DEFAULT_PALETTE[2]
    assert resolve_color("#000000", 2) == "#000000"
