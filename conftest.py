from __future__ import annotations

import json
import queue
import threading
from typing import Any, Callable, Dict, List, Optional

import pytest

from genoviz.config import BrokerConfig
from genoviz.errors import TransportClosedError
from genoviz.rpc import RequestResponseBroker
from genoviz.session import Session, SessionController

_CLOSED = object()


class FakeEngineChannel:
    """In-memory channel that answers requests the way the browser page would.

    ``results`` maps a command to the result it replies with, ``failures`` to
    an error message, and ``delays`` to seconds to wait before replying.
    Commands listed in ``silent`` are never answered.
    """

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.results: Dict[str, Any] = {}
        self.failures: Dict[str, str] = {}
        self.delays: Dict[str, float] = {}
        self.silent: set[str] = set()
        self.on_request: Optional[Callable[[Dict[str, Any]], None]] = None
        self._inbox: queue.Queue[object] = queue.Queue()
        self._closed = threading.Event()
        self._timers: List[threading.Timer] = []

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def commands(self) -> List[str]:
        return [request["command"] for request in self.sent]

    # ---- channel surface ------------------------------------------------------

    def send(self, message: str) -> None:
        if self._closed.is_set():
            raise TransportClosedError("fake browser disconnected")
        request = json.loads(message)
        self.sent.append(request)
        if self.on_request is not None:
            self.on_request(request)
        command = request["command"]
        if command in self.silent:
            return
        if command in self.failures:
            reply = {"correlationId": request["correlationId"], "status": "error", "result": self.failures[command]}
        else:
            reply = {"correlationId": request["correlationId"], "status": "ok", "result": self.results.get(command)}
        self.push(reply, delay=self.delays.get(command, 0.0))

    def receive(self) -> str:
        item = self._inbox.get()
        if item is _CLOSED:
            self._inbox.put(_CLOSED)
            raise TransportClosedError("fake browser disconnected")
        assert isinstance(item, str)
        return item

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        for timer in self._timers:
            timer.cancel()
        self._inbox.put(_CLOSED)

    # ---- browser side ---------------------------------------------------------

    def push(self, frame: Any, *, delay: float = 0.0) -> None:
        """Deliver ``frame`` (a mapping or raw text) to the host side."""

        raw = frame if isinstance(frame, str) else json.dumps(frame)
        if delay <= 0:
            self._inbox.put(raw)
            return
        timer = threading.Timer(delay, self._inbox.put, args=(raw,))
        timer.daemon = True
        self._timers.append(timer)
        timer.start()

    def disconnect(self) -> None:
        self.close()


@pytest.fixture
def engine_channel() -> FakeEngineChannel:
    channel = FakeEngineChannel()
    yield channel
    channel.close()


@pytest.fixture
def broker_config() -> BrokerConfig:
    return BrokerConfig(rpc_timeout_s=0.5, poll_interval_s=0.01)


@pytest.fixture
def broker(engine_channel: FakeEngineChannel, broker_config: BrokerConfig) -> RequestResponseBroker:
    rpc = RequestResponseBroker(engine_channel, config=broker_config).start()
    yield rpc
    rpc.close()


@pytest.fixture
def controller(broker: RequestResponseBroker) -> SessionController:
    ctrl = SessionController(Session(broker=broker))
    yield ctrl
    ctrl.close()
