"""Session operations.

Every action takes the :class:`Session` context as its first argument, holds
``session.lock`` for its full duration, validates before contacting the
browser, and mutates session state only after the engine acknowledged the
command. A failed RPC therefore leaves the session exactly as it was.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, List, Union

from genoviz.errors import (
    InvalidSessionStateError,
    RegionParseError,
    SessionError,
    UnsupportedGenomeError,
)
from genoviz.protocol import (
    CMD_DISPLAY_TRACK,
    CMD_ENABLE_MOTIF_LOGO_POPUPS,
    CMD_GET_GENOMIC_REGION,
    CMD_GET_TRACK_NAMES,
    CMD_PING,
    CMD_REMOVE_TRACKS_BY_NAME,
    CMD_SET_GENOME,
    CMD_SET_WINDOW_TITLE,
    CMD_SHOW_GENOMIC_REGION,
)
from genoviz.tracks import Track, serialize_track

from .region import GenomicRegion, coerce_region, parse_region, region_from_mapping
from .state import SUPPORTED_GENOMES, Session, SessionPhase

logger = logging.getLogger(__name__)

RegionSpec = Union[GenomicRegion, str, Mapping[str, Any]]


def get_supported_genomes() -> tuple[str, ...]:
    return SUPPORTED_GENOMES


def ping(session: Session) -> Any:
    with session.lock:
        return session.broker.call(CMD_PING)


def set_genome(session: Session, name: str) -> None:
    if not isinstance(name, str) or name not in SUPPORTED_GENOMES:
        raise UnsupportedGenomeError(name, SUPPORTED_GENOMES)
    with session.lock:
        session.broker.call(CMD_SET_GENOME, {"name": name})
        previous = session.genome
        session.genome = name
        session.phase = SessionPhase.GENOME_SET
        session.viewport = None
        session.displayed_tracks.clear()
        logger.info("genome set: %s (was %s)", name, previous)


def show_genomic_region(session: Session, target: RegionSpec) -> GenomicRegion:
    region = coerce_region(target)
    with session.lock:
        session.broker.call(CMD_SHOW_GENOMIC_REGION, region.to_dict())
        session.viewport = region
        if session.phase is SessionPhase.GENOME_SET:
            session.phase = SessionPhase.ACTIVE
        logger.debug("viewport -> %s", region.to_locus())
        return region


def get_genomic_region(session: Session) -> GenomicRegion:
    """Ask the browser for its current region; the cache is only refreshed."""

    with session.lock:
        result = session.broker.call(CMD_GET_GENOMIC_REGION)
        region = _region_from_result(result)
        session.viewport = region
        return region


def display_track(session: Session, track: Track) -> dict[str, Any]:
    """Serialize and display ``track``; return the record that was sent."""

    if not isinstance(track, Track):
        raise TypeError(f"display_track expects a Track, got {type(track).__name__}")
    with session.lock:
        if session.phase < SessionPhase.GENOME_SET:
            raise InvalidSessionStateError("display_track", session.phase.name)
        record = serialize_track(
            track,
            auto_index=session.auto_color_count,
            log_tracks=session.log_tracks,
        )
        session.broker.call(CMD_DISPLAY_TRACK, record)
        if track.name in session.displayed_tracks:
            session.displayed_tracks.remove(track.name)
        session.displayed_tracks.append(track.name)
        if track.uses_auto_color:
            session.auto_color_count += 1
        session.phase = SessionPhase.ACTIVE
        return record


def enable_motif_logo_popups(session: Session, enabled: bool = True) -> None:
    enabled = bool(enabled)
    with session.lock:
        if session.motif_logo_popups == enabled:
            return
        session.broker.call(CMD_ENABLE_MOTIF_LOGO_POPUPS, {"enabled": enabled})
        session.motif_logo_popups = enabled


def get_track_names(session: Session) -> List[str]:
    with session.lock:
        result = session.broker.call(CMD_GET_TRACK_NAMES)
    if result is None:
        return []
    if isinstance(result, str):
        return [result]
    if isinstance(result, Iterable) and not isinstance(result, Mapping):
        return [str(item) for item in result]
    raise SessionError(f"unexpected getTrackNames result {result!r}")


def remove_tracks_by_name(session: Session, names: Union[str, Iterable[str]]) -> None:
    if isinstance(names, str):
        names = [names]
    wanted = [str(name) for name in names]
    if not wanted:
        return
    with session.lock:
        session.broker.call(CMD_REMOVE_TRACKS_BY_NAME, {"names": wanted})
        session.displayed_tracks[:] = [n for n in session.displayed_tracks if n not in wanted]


def set_window_title(session: Session, title: str) -> None:
    with session.lock:
        session.broker.call(CMD_SET_WINDOW_TITLE, {"title": str(title)})


def _region_from_result(result: Any) -> GenomicRegion:
    if isinstance(result, GenomicRegion):
        return result
    if isinstance(result, str):
        return parse_region(result)
    if isinstance(result, Mapping):
        if "locus" in result and isinstance(result["locus"], str):
            return parse_region(result["locus"])
        return region_from_mapping(result)
    raise RegionParseError(f"unexpected getGenomicRegion result {result!r}")


__all__ = [
    "display_track",
    "enable_motif_logo_popups",
    "get_genomic_region",
    "get_supported_genomes",
    "get_track_names",
    "ping",
    "remove_tracks_by_name",
    "set_genome",
    "set_window_title",
    "show_genomic_region",
]
