"""Track variants and their validated row shapes."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple, Union

AUTO_COLOR = "auto"
ALWAYS_VISIBLE_WINDOW = 2_147_483_647


class TrackKind(str, enum.Enum):
    SEQUENCE = "sequence"
    ANNOTATION = "annotation"
    QUANTITATIVE = "quantitative"
    ALIGNMENT = "alignment"
    VARIANT = "variant"

    @classmethod
    def coerce(cls, value: Union["TrackKind", str]) -> "TrackKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(kind.value for kind in cls)
            raise ValueError(f"unknown track kind {value!r}; expected one of {choices}") from None


class DisplayMode(str, enum.Enum):
    COLLAPSED = "COLLAPSED"
    EXPANDED = "EXPANDED"
    SQUISHED = "SQUISHED"


@dataclass(frozen=True, slots=True)
class SequenceRow:
    chromosome: str
    start: int
    end: int
    sequence: str


@dataclass(frozen=True, slots=True)
class AnnotationRow:
    chromosome: str
    start: int
    end: int
    label: str


@dataclass(frozen=True, slots=True)
class QuantitativeRow:
    chromosome: str
    start: int
    end: int
    value: float


@dataclass(frozen=True, slots=True)
class AlignmentRow:
    chromosome: str
    start: int
    end: int
    strand: str
    read_name: str
    # CIGAR string, or ((start, end), ...) aligned blocks
    cigar_or_blocks: Union[str, Tuple[Tuple[int, int], ...]]


@dataclass(frozen=True, slots=True)
class VariantRow:
    chromosome: str
    position: int
    ref: str
    alt: str
    sample_fields: Mapping[str, Any] = field(default_factory=dict)


TrackRow = Union[SequenceRow, AnnotationRow, QuantitativeRow, AlignmentRow, VariantRow]


@dataclass(frozen=True)
class Track:
    """A validated track ready for serialization.

    ``color`` is either an explicit colour string or :data:`AUTO_COLOR`; the
    concrete auto colour is chosen when the track is displayed.
    """

    kind: TrackKind
    name: str
    rows: Tuple[TrackRow, ...]
    color: str = AUTO_COLOR
    height: int = 50
    visibility_window: int = ALWAYS_VISIBLE_WINDOW
    display_mode: Optional[DisplayMode] = None
    autoscale: bool = True
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def uses_auto_color(self) -> bool:
        return self.color == AUTO_COLOR

    def __len__(self) -> int:
        return len(self.rows)


__all__ = [
    "ALWAYS_VISIBLE_WINDOW",
    "AUTO_COLOR",
    "AlignmentRow",
    "AnnotationRow",
    "DisplayMode",
    "QuantitativeRow",
    "SequenceRow",
    "Track",
    "TrackKind",
    "TrackRow",
    "VariantRow",
]
