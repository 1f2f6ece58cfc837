"""Colour handling: explicit colour validation and auto-colour cycling."""

from __future__ import annotations

import re
from typing import Optional, Sequence

from genoviz.tracks.types import AUTO_COLOR

# d3 category10; auto-coloured tracks walk this list in display order
DEFAULT_PALETTE: tuple[str, ...] = (
    "#1f77b4",
    "#ff7f0e",
    "#2ca02c",
    "#d62728",
    "#9467bd",
    "#8c564b",
    "#e377c2",
    "#7f7f7f",
    "#bcbd22",
    "#17becf",
)

_HEX_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_RGB_RE = re.compile(r"^rgba?\(\s*\d{1,3}\s*,\s*\d{1,3}\s*,\s*\d{1,3}\s*(?:,\s*(?:0|1|0?\.\d+)\s*)?\)$")
_NAME_RE = re.compile(r"^[a-zA-Z]+$")


def normalize_color(value: Optional[str]) -> Optional[str]:
    """Return the canonical colour string, or None when ``value`` is not a colour.

    ``None`` and ``"auto"`` (any case) map to :data:`AUTO_COLOR`.
    """

    if value is None:
        return AUTO_COLOR
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.lower() == AUTO_COLOR:
        return AUTO_COLOR
    if _HEX_RE.match(text):
        return text.lower()
    if _RGB_RE.match(text):
        return re.sub(r"\s+", "", text)
    if _NAME_RE.match(text):
        return text.lower()
    return None


def palette_color(index: int, palette: Sequence[str] = DEFAULT_PALETTE) -> str:
    if not palette:
        raise ValueError("palette must contain at least one colour")
    if index < 0:
        raise ValueError("auto-colour index must be non-negative")
    return palette[index % len(palette)]


def resolve_color(color: str, auto_index: int, palette: Sequence[str] = DEFAULT_PALETTE) -> str:
    if color == AUTO_COLOR:
        return palette_color(auto_index, palette)
    return color


__all__ = ["DEFAULT_PALETTE", "normalize_color", "palette_color", "resolve_color"]
