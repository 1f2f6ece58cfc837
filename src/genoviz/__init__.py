"""Host-side control channel for an in-browser genome viewer."""

from genoviz.config import SessionConfig, load_session_config
from genoviz.errors import GenovizError
from genoviz.session import GenomicRegion, SessionController, SessionPhase, start_session
from genoviz.tracks import Track, TrackKind, build_track

__version__ = "0.1.0"

__all__ = [
    "GenomicRegion",
    "GenovizError",
    "SessionConfig",
    "SessionController",
    "SessionPhase",
    "Track",
    "TrackKind",
    "build_track",
    "load_session_config",
    "start_session",
    "__version__",
]
