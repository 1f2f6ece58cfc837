"""Per-session context object threaded through every session action."""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from genoviz.rpc import RequestResponseBroker
from genoviz.session.region import GenomicRegion

SUPPORTED_GENOMES: tuple[str, ...] = ("hg38", "hg19", "mm10", "tair10")


class SessionPhase(enum.IntEnum):
    UNINITIALIZED = 0
    GENOME_SET = 1
    ACTIVE = 2


@dataclass
class Session:
    """Mutable session state; only :mod:`genoviz.session.actions` writes to it."""

    broker: RequestResponseBroker
    phase: SessionPhase = SessionPhase.UNINITIALIZED
    genome: Optional[str] = None
    viewport: Optional[GenomicRegion] = None
    displayed_tracks: List[str] = field(default_factory=list)
    auto_color_count: int = 0
    motif_logo_popups: bool = False
    log_tracks: bool = False
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    @property
    def closed(self) -> bool:
        return self.broker.closed


__all__ = ["SUPPORTED_GENOMES", "Session", "SessionPhase"]
