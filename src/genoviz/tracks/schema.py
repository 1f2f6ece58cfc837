"""Per-variant column schemas and tabular input normalization.

Input rows may be a ``pandas.DataFrame`` or any sequence of mappings. Column
names are resolved through a small alias table so BED-style (``chr``,
``name``) and descriptive (``chromosome``, ``label``) headers both work.
"""

from __future__ import annotations

import numbers
from collections.abc import Iterable, Mapping
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from genoviz.tracks.types import DisplayMode, TrackKind

COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "chromosome": ("chromosome", "chrom", "chr"),
    "start": ("start", "chromStart"),
    "end": ("end", "chromEnd"),
    "label": ("label", "name"),
    "value": ("value", "score"),
    "sequence": ("sequence", "seq"),
    "strand": ("strand",),
    "read_name": ("read_name", "readName", "qname"),
    "cigar_or_blocks": ("cigar_or_blocks", "cigarOrBlocks", "cigar", "blocks"),
    "position": ("position", "pos"),
    "ref": ("ref",),
    "alt": ("alt",),
    "sample_fields": ("sample_fields", "sampleFields", "samples"),
}

REQUIRED_COLUMNS: Dict[TrackKind, Tuple[str, ...]] = {
    TrackKind.SEQUENCE: ("chromosome", "start", "end", "sequence"),
    TrackKind.ANNOTATION: ("chromosome", "start", "end", "label"),
    TrackKind.QUANTITATIVE: ("chromosome", "start", "end", "value"),
    TrackKind.ALIGNMENT: ("chromosome", "start", "end", "strand", "read_name", "cigar_or_blocks"),
    TrackKind.VARIANT: ("chromosome", "position", "ref", "alt"),
}

OPTIONAL_COLUMNS: Dict[TrackKind, Tuple[str, ...]] = {
    TrackKind.VARIANT: ("sample_fields",),
}

DEFAULT_HEIGHTS: Dict[TrackKind, int] = {
    TrackKind.SEQUENCE: 25,
    TrackKind.ANNOTATION: 50,
    TrackKind.QUANTITATIVE: 50,
    TrackKind.ALIGNMENT: 300,
    TrackKind.VARIANT: 40,
}

COMMON_OPTIONS = frozenset({"color", "height", "visibility_window", "display_mode"})
QUANTITATIVE_OPTIONS = frozenset({"autoscale", "min", "max"})

_OPTION_ALIASES = {
    "visibilityWindow": "visibility_window",
    "displayMode": "display_mode",
    "autoScale": "autoscale",
}


def allowed_options(kind: TrackKind) -> frozenset[str]:
    if kind is TrackKind.QUANTITATIVE:
        return COMMON_OPTIONS | QUANTITATIVE_OPTIONS
    return COMMON_OPTIONS


def canonical_option_name(name: str) -> str:
    return _OPTION_ALIASES.get(name, name)


def coerce_display_mode(value: Any) -> DisplayMode:
    if isinstance(value, DisplayMode):
        return value
    return DisplayMode(str(value).strip().upper())


# ---- tabular input ------------------------------------------------------------


def records_from_input(rows: Any) -> Tuple[List[Mapping[str, Any]], Sequence[str]]:
    """Return ``(records, columns)`` for a DataFrame or a sequence of mappings."""

    if isinstance(rows, pd.DataFrame):
        columns = [str(col) for col in rows.columns]
        frame = rows.copy()
        frame.columns = columns
        return frame.to_dict(orient="records"), columns
    if rows is None or isinstance(rows, (str, bytes, Mapping)) or not isinstance(rows, Iterable):
        raise TypeError("rows must be a pandas DataFrame or a sequence of mappings")
    records = list(rows)
    for idx, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise TypeError(f"row {idx} is {type(record).__name__}, expected a mapping")
    if not records:
        return [], []
    columns: List[str] = []
    seen = set()
    for record in records:
        for key in record.keys():
            name = str(key)
            if name not in seen:
                seen.add(name)
                columns.append(name)
    return records, columns


def resolve_columns(kind: TrackKind, columns: Sequence[str]) -> Tuple[Dict[str, str], List[str]]:
    """Map canonical field -> source column; also return missing required fields."""

    present = set(columns)
    mapping: Dict[str, str] = {}
    missing: List[str] = []
    for canonical in REQUIRED_COLUMNS[kind] + OPTIONAL_COLUMNS.get(kind, ()):
        source = next((alias for alias in COLUMN_ALIASES[canonical] if alias in present), None)
        if source is not None:
            mapping[canonical] = source
        elif canonical in REQUIRED_COLUMNS[kind]:
            missing.append(canonical)
    return mapping, missing


# ---- scalar coercion ----------------------------------------------------------


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, tuple, dict, np.ndarray)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def as_int(value: Any) -> int:
    """Coerce integral numbers (incl. numpy scalars and integral floats)."""

    if isinstance(value, (bool, np.bool_)):
        raise TypeError("booleans are not coordinates")
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real) and np.isfinite(value) and float(value).is_integer():
        return int(value)
    raise TypeError(f"expected an integer, got {value!r}")


def as_float(value: Any) -> float:
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, numbers.Real):
        raise TypeError(f"expected a number, got {value!r}")
    result = float(value)
    if not np.isfinite(result):
        raise TypeError(f"expected a finite number, got {value!r}")
    return result


def as_text(value: Any) -> str:
    if isinstance(value, (bool, np.bool_)):
        raise TypeError("booleans are not text")
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    if isinstance(value, (str, numbers.Number)):
        return str(value)
    raise TypeError(f"expected text, got {type(value).__name__}")


def plain(value: Any) -> Any:
    """Convert numpy scalars/containers into JSON-serializable builtins."""

    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return [plain(v) for v in value.tolist()]
    if isinstance(value, Mapping):
        return {str(k): plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [plain(v) for v in value]
    return value


__all__ = [
    "COLUMN_ALIASES",
    "COMMON_OPTIONS",
    "DEFAULT_HEIGHTS",
    "OPTIONAL_COLUMNS",
    "QUANTITATIVE_OPTIONS",
    "REQUIRED_COLUMNS",
    "allowed_options",
    "as_float",
    "as_int",
    "as_text",
    "canonical_option_name",
    "coerce_display_mode",
    "is_missing",
    "plain",
    "records_from_input",
    "resolve_columns",
]
