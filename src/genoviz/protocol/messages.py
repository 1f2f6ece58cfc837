"""Control-channel message shapes.

Outbound requests carry ``{command, correlationId, payload}``; inbound frames
carry ``{correlationId, status, result}``. Frames without a pending
correlation id are engine-originated notifications and share the inbound
shape.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

CMD_PING = "ping"
CMD_SET_GENOME = "setGenome"
CMD_SHOW_GENOMIC_REGION = "showGenomicRegion"
CMD_GET_GENOMIC_REGION = "getGenomicRegion"
CMD_DISPLAY_TRACK = "displayTrack"
CMD_ENABLE_MOTIF_LOGO_POPUPS = "enableMotifLogoPopups"
CMD_GET_TRACK_NAMES = "getTrackNames"
CMD_REMOVE_TRACKS_BY_NAME = "removeTracksByName"
CMD_SET_WINDOW_TITLE = "setWindowTitle"

STATUS_OK = "ok"
STATUS_ERROR = "error"
_STATUSES = (STATUS_OK, STATUS_ERROR)


def _dumps(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"))


@dataclass(frozen=True, slots=True)
class RpcRequest:
    command: str
    correlation_id: str
    payload: Any = None

    def __post_init__(self) -> None:
        if not self.command:
            raise ValueError("request command must be a non-empty string")
        if not self.correlation_id:
            raise ValueError("request correlation id must be a non-empty string")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command": self.command,
            "correlationId": self.correlation_id,
            "payload": self.payload,
        }

    def to_json(self) -> str:
        return _dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RpcRequest":
        return cls(
            command=str(data.get("command") or ""),
            correlation_id=str(data.get("correlationId") or ""),
            payload=data.get("payload"),
        )


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """A decoded inbound frame; ``raw`` keeps the full mapping for event sinks."""

    correlation_id: Optional[str]
    status: str
    result: Any
    raw: Mapping[str, Any]

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    @property
    def command(self) -> Optional[str]:
        value = self.raw.get("command")
        return str(value) if value is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correlationId": self.correlation_id,
            "status": self.status,
            "result": self.result,
        }

    def to_json(self) -> str:
        return _dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InboundMessage":
        status = str(data.get("status") or STATUS_OK).lower()
        if status not in _STATUSES:
            raise ValueError(f"inbound status must be one of {_STATUSES}, got {status!r}")
        raw_id = data.get("correlationId")
        return cls(
            correlation_id=str(raw_id) if raw_id not in (None, "") else None,
            status=status,
            result=data.get("result"),
            raw=dict(data),
        )


def build_reply(correlation_id: str, result: Any = None) -> InboundMessage:
    payload = {"correlationId": correlation_id, "status": STATUS_OK, "result": result}
    return InboundMessage.from_dict(payload)


def build_error_reply(correlation_id: str, message: str) -> InboundMessage:
    payload = {"correlationId": correlation_id, "status": STATUS_ERROR, "result": message}
    return InboundMessage.from_dict(payload)


__all__ = [
    "CMD_DISPLAY_TRACK",
    "CMD_ENABLE_MOTIF_LOGO_POPUPS",
    "CMD_GET_GENOMIC_REGION",
    "CMD_GET_TRACK_NAMES",
    "CMD_PING",
    "CMD_REMOVE_TRACKS_BY_NAME",
    "CMD_SET_GENOME",
    "CMD_SET_WINDOW_TITLE",
    "CMD_SHOW_GENOMIC_REGION",
    "InboundMessage",
    "RpcRequest",
    "STATUS_ERROR",
    "STATUS_OK",
    "build_error_reply",
    "build_reply",
]
