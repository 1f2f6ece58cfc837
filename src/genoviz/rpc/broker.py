"""Synchronous request/response calls over the asynchronous control channel.

Each :meth:`RequestResponseBroker.call` registers a ``concurrent.futures.Future``
under a fresh correlation id, sends the request, then parks on the future in
short bounded waits. A single dispatch thread owns ``channel.receive()``:
replies resolve their pending future; every other frame is an engine
notification handed to the event sink on a separate event thread so a slow
sink cannot delay reply matching.
"""

from __future__ import annotations

import collections
import concurrent.futures
import logging
import queue
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from genoviz.config import BrokerConfig
from genoviz.errors import (
    RpcRemoteError,
    RpcTimeoutError,
    RpcTransportError,
    TransportClosedError,
)
from genoviz.protocol import InboundMessage, MessageParser, RpcRequest

logger = logging.getLogger(__name__)

EventSink = Callable[[InboundMessage], None]

_PARSER = MessageParser()
_STOP = object()
_JOIN_TIMEOUT_S = 2.0


class MessageChannel(Protocol):
    def send(self, message: str) -> None: ...

    def receive(self) -> str: ...

    def close(self) -> None: ...


@dataclass
class _PendingCall:
    command: str
    future: concurrent.futures.Future
    sent_at: float


def _new_correlation_id() -> str:
    return uuid.uuid4().hex


class RequestResponseBroker:
    """Pending-call table plus the dispatch loop that resolves it."""

    def __init__(
        self,
        channel: MessageChannel,
        *,
        config: Optional[BrokerConfig] = None,
        event_sink: Optional[EventSink] = None,
        id_factory: Callable[[], str] = _new_correlation_id,
        log_events: bool = False,
    ) -> None:
        self._channel = channel
        self._cfg = config or BrokerConfig()
        self._event_sink = event_sink
        self._id_factory = id_factory
        self._log_events = bool(log_events)
        self._pending: Dict[str, _PendingCall] = {}
        self._expired: collections.OrderedDict[str, str] = collections.OrderedDict()
        self._lock = threading.Lock()
        self._events: queue.Queue[object] = queue.Queue()
        self._dispatch_thread: threading.Thread | None = None
        self._event_thread: threading.Thread | None = None
        self._closed = threading.Event()
        self._close_reason: str | None = None

    # ---- lifecycle ----------------------------------------------------------

    def start(self) -> "RequestResponseBroker":
        if self._dispatch_thread is not None:
            return self
        self._event_thread = threading.Thread(
            target=self._event_loop,
            name="genoviz-events",
            daemon=True,
        )
        self._dispatch_thread = threading.Thread(
            target=self._dispatch_loop,
            name="genoviz-dispatch",
            daemon=True,
        )
        self._event_thread.start()
        self._dispatch_thread.start()
        return self

    def close(self) -> None:
        """Close the channel and fail every outstanding call. Idempotent."""

        self._mark_closed("broker closed")
        self._channel.close()
        for thread in (self._dispatch_thread, self._event_thread):
            if thread is not None and thread is not threading.current_thread():
                thread.join(_JOIN_TIMEOUT_S)

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def config(self) -> BrokerConfig:
        return self._cfg

    def set_event_sink(self, sink: Optional[EventSink]) -> None:
        self._event_sink = sink

    # ---- calls --------------------------------------------------------------

    def call(self, command: str, payload: Any = None, timeout_s: Optional[float] = None) -> Any:
        """Send ``command`` and block until its reply, a timeout, or transport loss."""

        if self._closed.is_set():
            raise RpcTransportError(
                f"{command} not sent: {self._close_reason or 'session closed'}",
                command=command,
            )
        timeout = self._cfg.rpc_timeout_s if timeout_s is None else float(timeout_s)
        correlation_id = self._id_factory()
        request = RpcRequest(command=command, correlation_id=correlation_id, payload=payload)
        future: concurrent.futures.Future = concurrent.futures.Future()
        with self._lock:
            if self._closed.is_set():
                raise RpcTransportError(
                    f"{command} not sent: {self._close_reason or 'session closed'}",
                    command=command,
                )
            if correlation_id in self._pending:
                raise RuntimeError(f"correlation id {correlation_id!r} already outstanding")
            self._pending[correlation_id] = _PendingCall(
                command=command,
                future=future,
                sent_at=time.monotonic(),
            )
        try:
            self._channel.send(request.to_json())
        except TransportClosedError as exc:
            self._pop_pending(correlation_id)
            self._mark_closed(str(exc))
            raise RpcTransportError(
                f"{command} not sent: {exc}",
                command=command,
                correlation_id=correlation_id,
            ) from exc
        logger.debug("call %s sent id=%s", command, correlation_id)
        return self._await_reply(command, correlation_id, future, timeout)

    def _await_reply(
        self,
        command: str,
        correlation_id: str,
        future: concurrent.futures.Future,
        timeout: float,
    ) -> Any:
        deadline = time.monotonic() + timeout
        poll = self._cfg.poll_interval_s
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                reply: InboundMessage = future.result(timeout=min(poll, remaining))
            except concurrent.futures.TimeoutError:
                continue
            return self._settle(command, correlation_id, reply)
        if self._pop_pending(correlation_id) is None:
            # the dispatcher or a transport failure claimed the slot at the deadline
            return self._settle(command, correlation_id, future.result(timeout=_JOIN_TIMEOUT_S))
        self._remember_expired(correlation_id, command)
        logger.warning("call %s timed out after %.2fs id=%s", command, timeout, correlation_id)
        raise RpcTimeoutError(command=command, correlation_id=correlation_id, timeout_s=timeout)

    @staticmethod
    def _settle(command: str, correlation_id: str, reply: InboundMessage) -> Any:
        if reply.ok:
            return reply.result
        raise RpcRemoteError(
            command=command,
            correlation_id=correlation_id,
            remote_message=reply.result,
        )

    # ---- dispatch -----------------------------------------------------------

    def _dispatch_loop(self) -> None:
        reason = "dispatch loop stopped"
        try:
            while True:
                try:
                    raw = self._channel.receive()
                except TransportClosedError as exc:
                    reason = str(exc)
                    break
                self._dispatch_raw(raw)
        except Exception as exc:
            reason = f"dispatch failed: {exc!r}"
            logger.exception("dispatch loop crashed; failing pending calls")
            self._channel.close()
        finally:
            self._mark_closed(reason)
            self._events.put(_STOP)
        logger.debug("dispatch loop stopped: %s", self._close_reason)

    def _dispatch_raw(self, raw: str) -> None:
        try:
            message = _PARSER.parse_inbound_json(raw)
        except (ValueError, RecursionError, TypeError):
            logger.warning("Skipping undecodable inbound frame: %.200s", raw)
            return

        correlation_id = message.correlation_id
        if correlation_id is not None:
            pending = self._pop_pending(correlation_id)
            if pending is not None:
                if not pending.future.done():
                    pending.future.set_result(message)
                logger.debug(
                    "reply for %s id=%s status=%s after %.1fms",
                    pending.command,
                    correlation_id,
                    message.status,
                    (time.monotonic() - pending.sent_at) * 1000.0,
                )
                return
            with self._lock:
                late_command = self._expired.pop(correlation_id, None)
            if late_command is not None:
                logger.debug("discarding late reply for %s id=%s", late_command, correlation_id)
                return
        self._events.put(message)

    def _event_loop(self) -> None:
        while True:
            item = self._events.get()
            if item is _STOP:
                break
            assert isinstance(item, InboundMessage)
            sink = self._event_sink
            if self._log_events:
                logger.info("event <- %s", item.to_json())
            if sink is None:
                logger.debug("no event sink registered; dropping notification %s", item.to_json())
                continue
            try:
                sink(item)
            except Exception:
                logger.exception("event sink failed for notification %s", item.correlation_id)

    # ---- bookkeeping --------------------------------------------------------

    def _pop_pending(self, correlation_id: str) -> Optional[_PendingCall]:
        with self._lock:
            return self._pending.pop(correlation_id, None)

    def _remember_expired(self, correlation_id: str, command: str) -> None:
        with self._lock:
            self._expired[correlation_id] = command
            while len(self._expired) > self._cfg.expired_memory:
                self._expired.popitem(last=False)

    def _mark_closed(self, reason: str) -> None:
        with self._lock:
            if self._closed.is_set():
                pending: list[tuple[str, _PendingCall]] = []
            else:
                self._closed.set()
                self._close_reason = reason
                pending = list(self._pending.items())
                self._pending.clear()
        for correlation_id, call in pending:
            if call.future.done():
                continue
            call.future.set_exception(
                RpcTransportError(
                    f"{call.command} aborted: {reason}",
                    command=call.command,
                    correlation_id=correlation_id,
                )
            )
        if pending:
            logger.warning("transport lost (%s); failed %d pending call(s)", reason, len(pending))


__all__ = ["EventSink", "MessageChannel", "RequestResponseBroker"]
