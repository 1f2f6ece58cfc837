"""Shared helpers for resilient WebSocket teardown."""

from __future__ import annotations

import logging
from typing import Any

from websockets.exceptions import ConnectionClosed

logger = logging.getLogger(__name__)

# RFC 6455 "try again later"; sent to connections beyond the first.
CLOSE_SESSION_BUSY = 1013
CLOSE_GOING_AWAY = 1001


def decode_frame(data: Any) -> str:
    """Return ``data`` as text; binary frames must be valid UTF-8.

    Invalid UTF-8 raises :class:`UnicodeDecodeError`; nothing is replaced.
    """

    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data).decode("utf-8")
    return str(data)


async def safe_close(ws: Any, *, code: int = CLOSE_GOING_AWAY, reason: str = "") -> bool:
    """Close ``ws`` and report whether the close handshake went through.

    A peer that already vanished is not an error here; the failure is logged
    and False is returned.
    """

    try:
        await ws.close(code=code, reason=reason)
        return True
    except ConnectionClosed:
        logger.debug("WebSocket already closed", exc_info=True)
    except OSError:
        logger.debug("WebSocket close failed", exc_info=True)
    return False


__all__ = ["CLOSE_GOING_AWAY", "CLOSE_SESSION_BUSY", "decode_frame", "safe_close"]
