from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from genoviz.errors import RpcRemoteError, RpcTimeoutError, RpcTransportError
from genoviz.protocol import InboundMessage
from genoviz.rpc import RequestResponseBroker


class _Sink:
    def __init__(self) -> None:
        self.events: list[InboundMessage] = []
        self.arrived = threading.Event()

    def __call__(self, message: InboundMessage) -> None:
        self.events.append(message)
        self.arrived.set()


def test_call_returns_result(engine_channel, broker: RequestResponseBroker) -> None:
    engine_channel.results["getGenomicRegion"] = "chr1:100-200"

    assert broker.call("getGenomicRegion") == "chr1:100-200"
    assert engine_channel.sent[0]["command"] == "getGenomicRegion"
    assert broker.pending_count == 0


def test_reply_within_timeout_succeeds(engine_channel, broker: RequestResponseBroker) -> None:
    engine_channel.delays["ping"] = 0.1
    engine_channel.results["ping"] = "pong"

    assert broker.call("ping", timeout_s=0.5) == "pong"


def test_slow_reply_times_out_and_channel_stays_usable(engine_channel, broker: RequestResponseBroker) -> None:
    sink = _Sink()
    broker.set_event_sink(sink)
    engine_channel.delays["setGenome"] = 1.0

    with pytest.raises(RpcTimeoutError) as excinfo:
        broker.call("setGenome", {"name": "hg38"}, timeout_s=0.5)
    assert excinfo.value.command == "setGenome"
    assert excinfo.value.correlation_id == engine_channel.sent[0]["correlationId"]
    assert broker.pending_count == 0

    # the late reply lands after the deadline and is dropped
    time.sleep(0.8)
    assert sink.events == []
    assert not broker.closed

    engine_channel.results["ping"] = "pong"
    assert broker.call("ping") == "pong"


def test_error_status_raises_remote_error(engine_channel, broker: RequestResponseBroker) -> None:
    engine_channel.failures["setGenome"] = "genome not available"

    with pytest.raises(RpcRemoteError) as excinfo:
        broker.call("setGenome", {"name": "hg38"})

    assert excinfo.value.remote_message == "genome not available"
    assert excinfo.value.command == "setGenome"
    assert not broker.closed


def test_unsolicited_message_reaches_sink_once(engine_channel, broker: RequestResponseBroker) -> None:
    sink = _Sink()
    broker.set_event_sink(sink)

    engine_channel.push({"command": "trackClicked", "result": {"name": "peaks", "locus": "chr2:10-20"}})

    assert sink.arrived.wait(2.0)
    time.sleep(0.1)
    assert len(sink.events) == 1
    event = sink.events[0]
    assert event.correlation_id is None
    assert event.command == "trackClicked"
    assert event.result == {"name": "peaks", "locus": "chr2:10-20"}


def test_unknown_correlation_id_is_treated_as_event(engine_channel, broker: RequestResponseBroker) -> None:
    sink = _Sink()
    broker.set_event_sink(sink)

    engine_channel.push({"correlationId": "never-issued", "status": "ok", "result": 1})

    assert sink.arrived.wait(2.0)
    assert sink.events[0].correlation_id == "never-issued"


def test_undecodable_frames_are_skipped(engine_channel, broker: RequestResponseBroker) -> None:
    sink = _Sink()
    broker.set_event_sink(sink)

    engine_channel.push("{definitely not json")
    engine_channel.push("[1, 2, 3]")
    engine_channel.push({"correlationId": None, "status": "sideways"})
    engine_channel.push({"command": "ready"})

    assert sink.arrived.wait(2.0)
    time.sleep(0.1)
    assert [event.command for event in sink.events] == ["ready"]

    engine_channel.results["ping"] = "pong"
    assert broker.call("ping") == "pong"


def test_failing_sink_does_not_stop_delivery(engine_channel, broker: RequestResponseBroker) -> None:
    seen: list[str] = []
    done = threading.Event()

    def sink(message: InboundMessage) -> None:
        seen.append(message.command or "")
        if message.command == "first":
            raise RuntimeError("handler bug")
        done.set()

    broker.set_event_sink(sink)
    engine_channel.push({"command": "first"})
    engine_channel.push({"command": "second"})

    assert done.wait(2.0)
    assert seen == ["first", "second"]


def test_transport_loss_fails_pending_call(engine_channel, broker: RequestResponseBroker) -> None:
    engine_channel.silent.add("displayTrack")
    engine_channel.on_request = lambda request: engine_channel.disconnect()

    started = time.monotonic()
    with pytest.raises(RpcTransportError) as excinfo:
        broker.call("displayTrack", {"name": "t"}, timeout_s=5.0)

    assert time.monotonic() - started < 2.0
    assert excinfo.value.command == "displayTrack"
    assert broker.closed
    assert broker.pending_count == 0

    with pytest.raises(RpcTransportError):
        broker.call("ping")


def test_call_after_close_is_rejected(engine_channel, broker: RequestResponseBroker) -> None:
    broker.close()
    broker.close()

    assert engine_channel.closed
    with pytest.raises(RpcTransportError):
        broker.call("ping")
    assert engine_channel.sent == []


def test_concurrent_calls_match_out_of_order_replies(engine_channel, broker: RequestResponseBroker) -> None:
    engine_channel.results.update({"slow": "S", "fast": "F"})
    engine_channel.delays.update({"slow": 0.3, "fast": 0.05})

    with ThreadPoolExecutor(max_workers=2) as pool:
        slow = pool.submit(broker.call, "slow")
        time.sleep(0.02)
        fast = pool.submit(broker.call, "fast")
        assert fast.result(timeout=2.0) == "F"
        assert slow.result(timeout=2.0) == "S"

    ids = [request["correlationId"] for request in engine_channel.sent]
    assert len(set(ids)) == len(ids) == 2


def test_deeply_nested_frame_is_skipped(engine_channel, broker: RequestResponseBroker) -> None:
    engine_channel.push("[" * 200_000)
    engine_channel.results["ping"] = "pong"

    assert broker.call("ping", timeout_s=2.0) == "pong"
    assert not broker.closed


def test_dispatch_crash_fails_pending_calls(engine_channel, broker: RequestResponseBroker, monkeypatch) -> None:
    class _BrokenParser:
        def parse_inbound_json(self, raw):
            raise RuntimeError("parser bug")

    monkeypatch.setattr("genoviz.rpc.broker._PARSER", _BrokenParser())
    engine_channel.silent.add("displayTrack")

    with ThreadPoolExecutor(max_workers=1) as pool:
        pending = pool.submit(broker.call, "displayTrack", {"name": "t"}, 5.0)
        deadline = time.monotonic() + 2.0
        while broker.pending_count == 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        engine_channel.push({"command": "anything"})

        started = time.monotonic()
        with pytest.raises(RpcTransportError):
            pending.result(timeout=3.0)
        assert time.monotonic() - started < 2.0

    assert broker.closed
    assert engine_channel.closed
    with pytest.raises(RpcTransportError):
        broker.call("ping")


def test_notifications_do_not_disturb_outstanding_call(engine_channel, broker: RequestResponseBroker) -> None:
    sink = _Sink()
    broker.set_event_sink(sink)
    engine_channel.delays["getGenomicRegion"] = 0.3
    engine_channel.results["getGenomicRegion"] = "chr5:10-20"

    with ThreadPoolExecutor(max_workers=1) as pool:
        pending = pool.submit(broker.call, "getGenomicRegion")
        deadline = time.monotonic() + 2.0
        while broker.pending_count == 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert broker.pending_count == 1

        engine_channel.push({"command": "trackClicked", "result": {"name": "peaks"}})
        engine_channel.push({"correlationId": "never-issued", "status": "ok", "result": "stray"})

        assert pending.result(timeout=2.0) == "chr5:10-20"

    time.sleep(0.1)
    assert [(e.command, e.correlation_id) for e in sink.events] == [("trackClicked", None), (None, "never-issued")]
    assert broker.pending_count == 0


def test_close_during_call_setup_is_not_orphaned(engine_channel, broker_config) -> None:
    holder: dict[str, RequestResponseBroker] = {}

    def closing_id_factory() -> str:
        # simulates transport loss landing between the closed check and registration
        holder["broker"].close()
        return "cid-1"

    rpc = RequestResponseBroker(engine_channel, config=broker_config, id_factory=closing_id_factory).start()
    holder["broker"] = rpc
    try:
        started = time.monotonic()
        with pytest.raises(RpcTransportError):
            rpc.call("ping")
        assert time.monotonic() - started < broker_config.rpc_timeout_s
        assert rpc.pending_count == 0
        assert engine_channel.sent == []
    finally:
        rpc.close()
