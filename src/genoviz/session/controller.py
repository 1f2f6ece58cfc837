"""User-facing session facade over the broker and the session actions."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Union

from genoviz.config import SessionConfig, load_session_config, maybe_enable_debug_logger
from genoviz.rpc import EventSink, RequestResponseBroker
from genoviz.transport import open_channel
from genoviz.tracks import Track

from . import actions
from .actions import RegionSpec
from .region import GenomicRegion
from .state import Session, SessionPhase

logger = logging.getLogger(__name__)


class SessionController:
    """One browser session: genome, viewport and the tracks shown in it.

    Operations block until the browser acknowledges them. The controller is
    safe to share between threads; each operation runs under the session lock.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    # ---- state --------------------------------------------------------------

    @property
    def session(self) -> Session:
        return self._session

    @property
    def phase(self) -> SessionPhase:
        return self._session.phase

    @property
    def genome(self) -> Optional[str]:
        return self._session.genome

    @property
    def viewport(self) -> Optional[GenomicRegion]:
        return self._session.viewport

    @property
    def displayed_tracks(self) -> tuple[str, ...]:
        with self._session.lock:
            return tuple(self._session.displayed_tracks)

    @property
    def closed(self) -> bool:
        return self._session.closed

    # ---- operations ---------------------------------------------------------

    def ping(self) -> Any:
        return actions.ping(self._session)

    @staticmethod
    def get_supported_genomes() -> tuple[str, ...]:
        return actions.get_supported_genomes()

    def set_genome(self, name: str) -> None:
        actions.set_genome(self._session, name)

    def show_genomic_region(self, target: RegionSpec) -> GenomicRegion:
        return actions.show_genomic_region(self._session, target)

    def get_genomic_region(self) -> GenomicRegion:
        return actions.get_genomic_region(self._session)

    def display_track(self, track: Track) -> dict[str, Any]:
        return actions.display_track(self._session, track)

    def enable_motif_logo_popups(self, enabled: bool = True) -> None:
        actions.enable_motif_logo_popups(self._session, enabled)

    def get_track_names(self) -> list[str]:
        return actions.get_track_names(self._session)

    def remove_tracks_by_name(self, names: Union[str, Iterable[str]]) -> None:
        actions.remove_tracks_by_name(self._session, names)

    def set_window_title(self, title: str) -> None:
        actions.set_window_title(self._session, title)

    def on_event(self, handler: Optional[EventSink]) -> None:
        """Route unsolicited browser messages to ``handler`` (None to drop them)."""

        self._session.broker.set_event_sink(handler)

    # ---- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        # the broker may already be closed by transport loss; the channel still needs releasing
        if not self._session.broker.closed:
            logger.info("closing session (genome=%s)", self._session.genome)
        self._session.broker.close()

    def __enter__(self) -> "SessionController":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def start_session(
    config: Optional[SessionConfig] = None,
    *,
    event_sink: Optional[EventSink] = None,
) -> SessionController:
    """Open the channel, wait for the browser, and start the broker."""

    cfg = config or load_session_config()
    maybe_enable_debug_logger()
    toggles = cfg.debug_policy.logging
    channel = open_channel(cfg.channel, log_wire=toggles.log_wire)
    broker = RequestResponseBroker(
        channel,
        config=cfg.broker,
        event_sink=event_sink,
        log_events=toggles.log_events,
    ).start()
    session = Session(broker=broker, log_tracks=toggles.log_tracks)
    return SessionController(session)


__all__ = ["SessionController", "start_session"]
