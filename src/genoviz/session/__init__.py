"""Session lifecycle: genome, viewport, displayed tracks."""

from .controller import SessionController, start_session
from .region import GenomicRegion, coerce_region, parse_region
from .state import SUPPORTED_GENOMES, Session, SessionPhase

__all__ = [
    "GenomicRegion",
    "SUPPORTED_GENOMES",
    "Session",
    "SessionController",
    "SessionPhase",
    "coerce_region",
    "parse_region",
    "start_session",
]
