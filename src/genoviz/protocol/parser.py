"""Parser helpers for control-channel frames."""

from __future__ import annotations

import json
from typing import Any, Mapping, MutableMapping

from .messages import InboundMessage, RpcRequest


class MessageParser:
    """Parse JSON/mapping payloads into typed messages."""

    def parse_inbound(self, data: Mapping[str, Any]) -> InboundMessage:
        if not isinstance(data, Mapping):
            raise ValueError("inbound frame must be a JSON object")
        return InboundMessage.from_dict(data)

    def parse_inbound_json(self, raw: str | bytes | bytearray) -> InboundMessage:
        return self.parse_inbound(self._decode(raw))

    def parse_request(self, data: Mapping[str, Any]) -> RpcRequest:
        if not isinstance(data, Mapping):
            raise ValueError("request frame must be a JSON object")
        return RpcRequest.from_dict(data)

    def parse_request_json(self, raw: str | bytes | bytearray) -> RpcRequest:
        return self.parse_request(self._decode(raw))

    @staticmethod
    def _decode(raw: str | bytes | bytearray) -> Mapping[str, Any]:
        mapping = json.loads(raw)
        if not isinstance(mapping, MutableMapping):
            raise ValueError("decoded frame must be a JSON object")
        return mapping


__all__ = ["MessageParser"]
