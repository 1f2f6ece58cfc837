from __future__ import annotations

import json

import pytest

from genoviz.protocol import (
    CMD_SET_GENOME,
    STATUS_ERROR,
    MessageParser,
    RpcRequest,
    build_error_reply,
    build_reply,
)


def test_request_wire_shape() -> None:
    request = RpcRequest(command=CMD_SET_GENOME, correlation_id="abc123", payload={"name": "hg38"})

    decoded = json.loads(request.to_json())

    assert decoded == {"command": "setGenome", "correlationId": "abc123", "payload": {"name": "hg38"}}


def test_request_requires_command_and_id() -> None:
    with pytest.raises(ValueError):
        RpcRequest(command="", correlation_id="x")
    with pytest.raises(ValueError):
        RpcRequest(command="ping", correlation_id="")


def test_parse_request_json() -> None:
    parser = MessageParser()
    request = parser.parse_request_json('{"command":"ping","correlationId":"c1"}')
    assert request.command == "ping"
    assert request.correlation_id == "c1"
    assert request.payload is None


def test_inbound_reply_roundtrip_fields() -> None:
    parser = MessageParser()
    message = parser.parse_inbound_json('{"correlationId":"c9","status":"ok","result":"chr1:1-100"}')

    assert message.ok
    assert message.correlation_id == "c9"
    assert message.result == "chr1:1-100"


def test_inbound_notification_has_no_correlation_id() -> None:
    parser = MessageParser()
    message = parser.parse_inbound({"command": "trackClicked", "correlationId": "", "result": {"name": "peaks"}})

    assert message.correlation_id is None
    assert message.status == "ok"
    assert message.command == "trackClicked"
    assert message.raw["result"] == {"name": "peaks"}


def test_inbound_rejects_unknown_status() -> None:
    with pytest.raises(ValueError):
        MessageParser().parse_inbound({"correlationId": "c1", "status": "maybe"})


@pytest.mark.parametrize("raw", ["[1, 2, 3]", '"text"', "42"])
def test_non_object_frames_rejected(raw: str) -> None:
    with pytest.raises(ValueError):
        MessageParser().parse_inbound_json(raw)


def test_malformed_json_raises_decode_error() -> None:
    with pytest.raises(json.JSONDecodeError):
        MessageParser().parse_inbound_json("{not json")


def test_reply_builders() -> None:
    ok = build_reply("c1", {"a": 1})
    err = build_error_reply("c2", "no such genome")

    assert ok.ok and ok.result == {"a": 1}
    assert not err.ok
    assert err.status == STATUS_ERROR
    assert json.loads(err.to_json()) == {"correlationId": "c2", "status": "error", "result": "no such genome"}
