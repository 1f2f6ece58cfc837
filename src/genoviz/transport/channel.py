"""Single-peer WebSocket channel between the host process and the browser.

The host listens; the browser page connects. The websockets server runs on a
private asyncio loop in a daemon thread so that callers on ordinary threads
can ``send`` and ``receive`` without owning an event loop. Inbound frames are
pushed onto a thread-safe inbox in arrival order; outbound frames are
marshalled onto the loop with ``run_coroutine_threadsafe``.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import queue
import threading
from typing import Any, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from genoviz.config import ChannelConfig
from genoviz.errors import ConnectTimeoutError, TransportClosedError
from genoviz.transport.websocket import CLOSE_SESSION_BUSY, decode_frame, safe_close

logger = logging.getLogger(__name__)

_CLOSED = object()
_LISTEN_TIMEOUT_S = 10.0
_SEND_TIMEOUT_S = 30.0
_SHUTDOWN_TIMEOUT_S = 5.0


class TransportChannel:
    """Duplex, message-framed connection to exactly one browser."""

    def __init__(self, config: Optional[ChannelConfig] = None, *, log_wire: bool = False) -> None:
        self._cfg = config or ChannelConfig()
        self._log_wire = bool(log_wire)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._server: Any = None
        self._ws: Any = None
        self._port: Optional[int] = None
        self._peer_address: Any = None
        self._listen_error: BaseException | None = None
        self._inbox: queue.Queue[object] = queue.Queue()
        self._peer_connected = threading.Event()
        self._peer_gone = threading.Event()
        self._closed = threading.Event()
        self._lifecycle_lock = threading.Lock()

    # ---- properties -------------------------------------------------------

    @property
    def config(self) -> ChannelConfig:
        return self._cfg

    @property
    def port(self) -> Optional[int]:
        return self._port

    @property
    def peer_address(self) -> Any:
        return self._peer_address

    @property
    def connected(self) -> bool:
        return self._peer_connected.is_set() and not self._peer_gone.is_set() and not self._closed.is_set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    # ---- lifecycle ----------------------------------------------------------

    def listen(self) -> int:
        """Bind the listening socket and return the bound port."""

        with self._lifecycle_lock:
            if self._closed.is_set():
                raise TransportClosedError("channel already closed")
            if self._port is not None:
                return self._port
            ready = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(ready,),
                name="genoviz-transport",
                daemon=True,
            )
            self._thread = thread
            thread.start()
            if not ready.wait(_LISTEN_TIMEOUT_S):
                raise TransportClosedError("transport loop failed to start")
            if self._listen_error is not None:
                raise TransportClosedError(
                    f"could not listen on {self._cfg.host}:{self._cfg.port}: {self._listen_error}"
                ) from self._listen_error
            assert self._port is not None
            self._progress("Listening for browser at ws://%s:%d", self._cfg.host, self._port)
            return self._port

    def wait_for_peer(self, timeout: Optional[float] = None) -> None:
        """Block until the browser connects or ``timeout`` expires."""

        if self._port is None:
            self.listen()
        budget = self._cfg.connect_timeout_s if timeout is None else float(timeout)
        self._progress("Waiting up to %.0fs for browser on port %s", budget, self._port)
        if not self._peer_connected.wait(budget):
            raise ConnectTimeoutError(port=self._port, timeout_s=budget)
        if self._closed.is_set():
            raise TransportClosedError("channel closed while waiting for browser")
        self._progress("Browser connected from %s", self._peer_address)

    def close(self) -> None:
        """Release the connection and the listening socket. Idempotent."""

        with self._lifecycle_lock:
            if self._closed.is_set():
                return
            self._closed.set()
            # wake wait_for_peer() and any receive() parked on the inbox
            self._peer_connected.set()
            self._inbox.put(_CLOSED)
            loop = self._loop
            thread = self._thread
        if loop is not None and loop.is_running():
            try:
                future = asyncio.run_coroutine_threadsafe(self._shutdown(), loop)
                future.result(timeout=_SHUTDOWN_TIMEOUT_S)
            except (concurrent.futures.TimeoutError, RuntimeError, OSError):
                logger.debug("transport shutdown did not complete cleanly", exc_info=True)
            try:
                loop.call_soon_threadsafe(loop.stop)
            except RuntimeError:
                logger.debug("transport loop already closed", exc_info=True)
        if thread is not None and thread is not threading.current_thread():
            thread.join(_SHUTDOWN_TIMEOUT_S)
        logger.debug("transport channel closed (port=%s)", self._port)

    def __enter__(self) -> "TransportChannel":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ---- traffic ------------------------------------------------------------

    def send(self, message: str) -> None:
        """Write one text message to the browser."""

        if not isinstance(message, str):
            raise TypeError(f"message must be str, got {type(message).__name__}")
        ws = self._ws
        loop = self._loop
        if self._closed.is_set() or self._peer_gone.is_set() or ws is None or loop is None:
            raise TransportClosedError("browser is not connected")
        if self._log_wire:
            logger.info("wire -> %s", message)
        try:
            future = asyncio.run_coroutine_threadsafe(ws.send(message), loop)
        except RuntimeError as exc:
            raise TransportClosedError("transport loop is not running") from exc
        try:
            future.result(timeout=_SEND_TIMEOUT_S)
        except ConnectionClosed as exc:
            raise TransportClosedError(f"browser disconnected: {exc}") from exc
        except concurrent.futures.TimeoutError as exc:
            future.cancel()
            raise TransportClosedError("send stalled; browser unresponsive") from exc
        except concurrent.futures.CancelledError as exc:
            raise TransportClosedError("send cancelled by channel shutdown") from exc

    def receive(self, timeout: Optional[float] = None) -> str:
        """Return the next inbound message in arrival order.

        Raises :class:`TransportClosedError` once the browser has gone and every
        message received before the disconnect has been handed out. A
        ``timeout`` raises the builtin :class:`TimeoutError`.
        """

        try:
            item = self._inbox.get(timeout=timeout)
        except queue.Empty as exc:
            raise TimeoutError(f"no message within {timeout}s") from exc
        if item is _CLOSED:
            # keep the marker so every later receive() fails the same way
            self._inbox.put(_CLOSED)
            raise TransportClosedError("browser disconnected" if self._peer_gone.is_set() else "channel closed")
        assert isinstance(item, str)
        if self._log_wire:
            logger.info("wire <- %s", item)
        return item

    # ---- loop thread --------------------------------------------------------

    def _run_loop(self, ready: threading.Event) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            try:
                loop.run_until_complete(self._start_server())
            except OSError as exc:
                self._listen_error = exc
                return
            finally:
                ready.set()
            loop.run_forever()
        finally:
            pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.close()
            self._loop = None

    async def _start_server(self) -> None:
        server = await websockets.serve(
            self._handle_peer,
            self._cfg.host,
            self._cfg.bind_port,
            compression=None,
            max_size=None,
        )
        self._server = server
        sockets = list(server.sockets or ())
        self._port = int(sockets[0].getsockname()[1]) if sockets else self._cfg.bind_port

    async def _shutdown(self) -> None:
        ws = self._ws
        if ws is not None:
            await safe_close(ws, reason="session closed")
        server = self._server
        if server is not None:
            server.close()
            await server.wait_closed()

    async def _handle_peer(self, ws: Any, *_: Any) -> None:
        remote = getattr(ws, "remote_address", None)
        if self._ws is not None or self._closed.is_set():
            logger.warning("Rejecting extra browser connection from %s; session already attached", remote)
            await safe_close(ws, code=CLOSE_SESSION_BUSY, reason="session already attached")
            return
        self._ws = ws
        self._peer_address = remote
        self._peer_connected.set()
        try:
            async for frame in ws:
                try:
                    text = decode_frame(frame)
                except UnicodeDecodeError:
                    logger.warning("Skipping binary frame that is not UTF-8: %.200r", bytes(frame))
                    continue
                self._inbox.put(text)
        except ConnectionClosed as exc:
            logger.info("Browser connection dropped: %s", exc)
        finally:
            self._peer_gone.set()
            self._inbox.put(_CLOSED)
            if not self._closed.is_set():
                logger.info("Browser at %s disconnected", remote)

    def _progress(self, msg: str, *args: Any) -> None:
        level = logging.DEBUG if self._cfg.quiet else logging.INFO
        logger.log(level, msg, *args)


def open_channel(config: Optional[ChannelConfig] = None, *, log_wire: bool = False) -> TransportChannel:
    """Listen, then block until a browser connects; closes the channel on failure."""

    channel = TransportChannel(config, log_wire=log_wire)
    try:
        channel.listen()
        channel.wait_for_peer()
    except BaseException:
        channel.close()
        raise
    return channel


__all__ = ["TransportChannel", "open_channel"]
