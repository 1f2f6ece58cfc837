"""Build validated tracks from tabular data and serialize them for the browser.

Validation and serialization are looked up by :class:`TrackKind` in two
tables; there is exactly one row validator and one row serializer per kind.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Dict, Optional

import numpy as np

from genoviz.errors import TrackValidationError
from genoviz.tracks import schema
from genoviz.tracks.palette import DEFAULT_PALETTE, normalize_color, resolve_color
from genoviz.tracks.types import (
    ALWAYS_VISIBLE_WINDOW,
    AUTO_COLOR,
    AlignmentRow,
    AnnotationRow,
    QuantitativeRow,
    SequenceRow,
    Track,
    TrackKind,
    TrackRow,
    VariantRow,
)

logger = logging.getLogger(__name__)

_CIGAR_RE = re.compile(r"^(?:\d+[MIDNSHP=X])+$")
_STRANDS = ("+", "-")

_WIRE_FORMATS: Dict[TrackKind, tuple[str, str]] = {
    TrackKind.SEQUENCE: ("sequence", "fasta"),
    TrackKind.ANNOTATION: ("annotation", "bed"),
    TrackKind.QUANTITATIVE: ("wig", "bedgraph"),
    TrackKind.ALIGNMENT: ("alignment", "sam"),
    TrackKind.VARIANT: ("variant", "vcf"),
}


class _RowError(ValueError):
    pass


# ---- row validators -----------------------------------------------------------


def _field(record: Mapping[str, Any], columns: Mapping[str, str], name: str) -> Any:
    value = record.get(columns[name])
    if schema.is_missing(value):
        raise _RowError(f"missing value for '{name}'")
    return value


def _coerce(fn: Callable[[Any], Any], value: Any, name: str) -> Any:
    try:
        return fn(value)
    except (TypeError, ValueError) as exc:
        raise _RowError(f"'{name}': {exc}") from None


def _ranged(record: Mapping[str, Any], columns: Mapping[str, str]) -> tuple[str, int, int]:
    chromosome = _coerce(schema.as_text, _field(record, columns, "chromosome"), "chromosome").strip()
    if not chromosome:
        raise _RowError("'chromosome' must be non-empty")
    start = _coerce(schema.as_int, _field(record, columns, "start"), "start")
    end = _coerce(schema.as_int, _field(record, columns, "end"), "end")
    if start < 0:
        raise _RowError(f"'start' must be >= 0, got {start}")
    if end <= start:
        raise _RowError(f"'end' ({end}) must be greater than 'start' ({start})")
    return chromosome, start, end


def _sequence_row(record: Mapping[str, Any], columns: Mapping[str, str]) -> SequenceRow:
    chromosome, start, end = _ranged(record, columns)
    sequence = _coerce(schema.as_text, _field(record, columns, "sequence"), "sequence")
    if len(sequence) != end - start:
        raise _RowError(f"sequence length {len(sequence)} does not match span {end - start}")
    return SequenceRow(chromosome=chromosome, start=start, end=end, sequence=sequence)


def _annotation_row(record: Mapping[str, Any], columns: Mapping[str, str]) -> AnnotationRow:
    chromosome, start, end = _ranged(record, columns)
    # labels pass through verbatim, including external-reference prefixes
    label = _coerce(schema.as_text, _field(record, columns, "label"), "label")
    return AnnotationRow(chromosome=chromosome, start=start, end=end, label=label)


def _quantitative_row(record: Mapping[str, Any], columns: Mapping[str, str]) -> QuantitativeRow:
    chromosome, start, end = _ranged(record, columns)
    value = _coerce(schema.as_float, _field(record, columns, "value"), "value")
    return QuantitativeRow(chromosome=chromosome, start=start, end=end, value=value)


def _blocks(value: Any, start: int, end: int) -> tuple[tuple[int, int], ...]:
    if isinstance(value, np.ndarray):
        value = value.tolist()
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise _RowError("'cigar_or_blocks' must be a CIGAR string or a sequence of (start, end) blocks")
    blocks: list[tuple[int, int]] = []
    last_end = start
    for item in value:
        if isinstance(item, str) or not isinstance(item, Sequence) or len(item) != 2:
            raise _RowError(f"alignment block {item!r} is not a (start, end) pair")
        b_start = _coerce(schema.as_int, item[0], "block start")
        b_end = _coerce(schema.as_int, item[1], "block end")
        if b_end <= b_start:
            raise _RowError(f"alignment block {item!r} has end <= start")
        if b_start < last_end or b_end > end:
            raise _RowError(f"alignment block {item!r} overlaps or leaves the read span {start}-{end}")
        blocks.append((b_start, b_end))
        last_end = b_end
    if not blocks:
        raise _RowError("alignment blocks must not be empty")
    return tuple(blocks)


def _alignment_row(record: Mapping[str, Any], columns: Mapping[str, str]) -> AlignmentRow:
    chromosome, start, end = _ranged(record, columns)
    strand = _coerce(schema.as_text, _field(record, columns, "strand"), "strand").strip()
    if strand not in _STRANDS:
        raise _RowError(f"'strand' must be '+' or '-', got {strand!r}")
    read_name = _coerce(schema.as_text, _field(record, columns, "read_name"), "read_name").strip()
    if not read_name:
        raise _RowError("'read_name' must be non-empty")
    raw = _field(record, columns, "cigar_or_blocks")
    if isinstance(raw, str):
        cigar = raw.strip()
        if not _CIGAR_RE.match(cigar):
            raise _RowError(f"malformed CIGAR string {raw!r}")
        cigar_or_blocks: Any = cigar
    else:
        cigar_or_blocks = _blocks(raw, start, end)
    return AlignmentRow(
        chromosome=chromosome,
        start=start,
        end=end,
        strand=strand,
        read_name=read_name,
        cigar_or_blocks=cigar_or_blocks,
    )


def _variant_row(record: Mapping[str, Any], columns: Mapping[str, str]) -> VariantRow:
    chromosome = _coerce(schema.as_text, _field(record, columns, "chromosome"), "chromosome").strip()
    if not chromosome:
        raise _RowError("'chromosome' must be non-empty")
    position = _coerce(schema.as_int, _field(record, columns, "position"), "position")
    if position < 1:
        raise _RowError(f"'position' must be >= 1, got {position}")
    ref = _coerce(schema.as_text, _field(record, columns, "ref"), "ref").strip()
    alt = _coerce(schema.as_text, _field(record, columns, "alt"), "alt").strip()
    if not ref or not alt:
        raise _RowError("'ref' and 'alt' must be non-empty")
    samples: Any = {}
    if "sample_fields" in columns:
        raw = record.get(columns["sample_fields"])
        if not schema.is_missing(raw):
            if not isinstance(raw, Mapping):
                raise _RowError("'sample_fields' must be a mapping")
            samples = {str(k): schema.plain(v) for k, v in raw.items()}
    return VariantRow(chromosome=chromosome, position=position, ref=ref, alt=alt, sample_fields=samples)


_ROW_BUILDERS: Dict[TrackKind, Callable[[Mapping[str, Any], Mapping[str, str]], TrackRow]] = {
    TrackKind.SEQUENCE: _sequence_row,
    TrackKind.ANNOTATION: _annotation_row,
    TrackKind.QUANTITATIVE: _quantitative_row,
    TrackKind.ALIGNMENT: _alignment_row,
    TrackKind.VARIANT: _variant_row,
}


# ---- options ------------------------------------------------------------------


def _resolve_options(kind: TrackKind, name: str, options: Mapping[str, Any]) -> Dict[str, Any]:
    resolved: Dict[str, Any] = {}
    allowed = schema.allowed_options(kind)
    unknown = []
    for key, value in options.items():
        canonical = schema.canonical_option_name(str(key))
        if canonical not in allowed:
            unknown.append(str(key))
            continue
        resolved[canonical] = value
    if unknown:
        raise TrackValidationError(
            f"unrecognized option(s) for {kind.value} track: {', '.join(sorted(unknown))}",
            track=name,
            details={"allowed": sorted(allowed)},
        )

    out: Dict[str, Any] = {}
    color = normalize_color(resolved.get("color"))
    if color is None:
        raise TrackValidationError(f"invalid color {resolved.get('color')!r}", track=name)
    out["color"] = color

    height = resolved.get("height", schema.DEFAULT_HEIGHTS[kind])
    try:
        out["height"] = schema.as_int(height)
    except TypeError:
        raise TrackValidationError(f"height must be an integer, got {height!r}", track=name) from None
    if out["height"] <= 0:
        raise TrackValidationError(f"height must be positive, got {height!r}", track=name)

    window = resolved.get("visibility_window", ALWAYS_VISIBLE_WINDOW)
    try:
        out["visibility_window"] = schema.as_int(window)
    except TypeError:
        raise TrackValidationError(f"visibility_window must be an integer, got {window!r}", track=name) from None
    if out["visibility_window"] <= 0:
        raise TrackValidationError(f"visibility_window must be positive, got {window!r}", track=name)

    mode = resolved.get("display_mode")
    if mode is not None:
        try:
            out["display_mode"] = schema.coerce_display_mode(mode)
        except ValueError:
            raise TrackValidationError(f"invalid display_mode {mode!r}", track=name) from None

    if kind is TrackKind.QUANTITATIVE:
        autoscale = resolved.get("autoscale", True)
        if not isinstance(autoscale, bool):
            raise TrackValidationError(f"autoscale must be a boolean, got {autoscale!r}", track=name)
        out["autoscale"] = autoscale
        for bound in ("min", "max"):
            raw = resolved.get(bound)
            if raw is None:
                continue
            try:
                out[bound] = schema.as_float(raw)
            except TypeError:
                raise TrackValidationError(f"{bound} must be a finite number, got {raw!r}", track=name) from None
        if "min" in out and "max" in out and out["min"] >= out["max"]:
            raise TrackValidationError(f"min ({out['min']}) must be below max ({out['max']})", track=name)
    return out


# ---- public API ---------------------------------------------------------------


def build_track(
    kind: TrackKind | str,
    name: str,
    rows: Any,
    options: Optional[Mapping[str, Any]] = None,
    **extra_options: Any,
) -> Track:
    """Validate ``rows`` for ``kind`` and return an immutable :class:`Track`.

    ``options`` and keyword options are merged (keywords win). Unknown
    options are rejected rather than ignored.
    """

    try:
        kind = TrackKind.coerce(kind)
    except ValueError as exc:
        raise TrackValidationError(str(exc), track=name if isinstance(name, str) else None) from None
    if not isinstance(name, str) or not name.strip():
        raise TrackValidationError("track name must be a non-empty string")
    name = name.strip()

    merged: Dict[str, Any] = dict(options or {})
    merged.update(extra_options)
    resolved = _resolve_options(kind, name, merged)

    try:
        records, columns = schema.records_from_input(rows)
    except TypeError as exc:
        raise TrackValidationError(str(exc), track=name) from None
    if not records:
        raise TrackValidationError("no rows supplied", track=name)

    column_map, missing = schema.resolve_columns(kind, columns)
    if missing:
        raise TrackValidationError(
            f"missing required column(s) for {kind.value} track: {', '.join(missing)}",
            track=name,
            details={"columns": list(columns), "missing": missing},
        )

    builder = _ROW_BUILDERS[kind]
    validated: list[TrackRow] = []
    for idx, record in enumerate(records):
        try:
            validated.append(builder(record, column_map))
        except _RowError as exc:
            raise TrackValidationError(str(exc), track=name, row=idx) from None

    if kind is TrackKind.QUANTITATIVE and not resolved["autoscale"]:
        values = [row.value for row in validated]  # type: ignore[union-attr]
        lo = resolved.setdefault("min", min(values))
        hi = resolved.setdefault("max", max(values))
        if lo >= hi:
            raise TrackValidationError(
                f"fixed scale needs min < max, got {lo}..{hi}; pass explicit min/max",
                track=name,
            )

    return Track(kind=kind, name=name, rows=tuple(validated), **resolved)


# ---- serialization ------------------------------------------------------------


def _serialize_sequence(row: SequenceRow) -> Dict[str, Any]:
    return {"chr": row.chromosome, "start": row.start, "end": row.end, "sequence": row.sequence}


def _serialize_annotation(row: AnnotationRow) -> Dict[str, Any]:
    return {"chr": row.chromosome, "start": row.start, "end": row.end, "name": row.label}


def _serialize_quantitative(row: QuantitativeRow) -> Dict[str, Any]:
    return {"chr": row.chromosome, "start": row.start, "end": row.end, "value": row.value}


def _serialize_alignment(row: AlignmentRow) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "chr": row.chromosome,
        "start": row.start,
        "end": row.end,
        "strand": row.strand,
        "readName": row.read_name,
    }
    if isinstance(row.cigar_or_blocks, str):
        record["cigar"] = row.cigar_or_blocks
    else:
        record["blocks"] = [{"start": s, "end": e} for s, e in row.cigar_or_blocks]
    return record


def _serialize_variant(row: VariantRow) -> Dict[str, Any]:
    return {
        "chr": row.chromosome,
        "pos": row.position,
        "ref": row.ref,
        "alt": row.alt,
        "samples": dict(row.sample_fields),
    }


_ROW_SERIALIZERS: Dict[TrackKind, Callable[[Any], Dict[str, Any]]] = {
    TrackKind.SEQUENCE: _serialize_sequence,
    TrackKind.ANNOTATION: _serialize_annotation,
    TrackKind.QUANTITATIVE: _serialize_quantitative,
    TrackKind.ALIGNMENT: _serialize_alignment,
    TrackKind.VARIANT: _serialize_variant,
}


def serialize_track(
    track: Track,
    *,
    auto_index: int = 0,
    palette: Sequence[str] = DEFAULT_PALETTE,
    log_tracks: bool = False,
) -> Dict[str, Any]:
    """Map ``track`` to the wire record the browser engine consumes.

    ``auto_index`` is the number of auto-coloured tracks the session has
    already displayed; it only matters when ``track.color`` is ``"auto"``.
    """

    track_type, track_format = _WIRE_FORMATS[track.kind]
    record: Dict[str, Any] = {
        "name": track.name,
        "type": track_type,
        "format": track_format,
        "color": resolve_color(track.color, auto_index, palette),
        "height": track.height,
        "visibilityWindow": track.visibility_window,
    }
    if track.display_mode is not None:
        record["displayMode"] = track.display_mode.value
    if track.kind is TrackKind.QUANTITATIVE:
        record["autoscale"] = track.autoscale
        record["min"] = track.min
        record["max"] = track.max
    serializer = _ROW_SERIALIZERS[track.kind]
    record["features"] = [serializer(row) for row in track.rows]
    if log_tracks:
        logger.info(
            "serialized %s track %r rows=%d color=%s",
            track.kind.value,
            track.name,
            len(track.rows),
            record["color"],
        )
    return record


__all__ = ["AUTO_COLOR", "build_track", "serialize_track"]
