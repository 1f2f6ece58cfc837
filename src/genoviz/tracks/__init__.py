"""Track data model: variant-aware validation and wire serialization."""

from .model import build_track, serialize_track
from .palette import DEFAULT_PALETTE, normalize_color, palette_color, resolve_color
from .types import (
    ALWAYS_VISIBLE_WINDOW,
    AUTO_COLOR,
    AlignmentRow,
    AnnotationRow,
    DisplayMode,
    QuantitativeRow,
    SequenceRow,
    Track,
    TrackKind,
    TrackRow,
    VariantRow,
)

__all__ = [
    "ALWAYS_VISIBLE_WINDOW",
    "AUTO_COLOR",
    "AlignmentRow",
    "AnnotationRow",
    "DEFAULT_PALETTE",
    "DisplayMode",
    "QuantitativeRow",
    "SequenceRow",
    "Track",
    "TrackKind",
    "TrackRow",
    "VariantRow",
    "build_track",
    "normalize_color",
    "palette_color",
    "resolve_color",
    "serialize_track",
]
