"""Exception taxonomy shared by the transport, rpc, track and session layers."""

from __future__ import annotations

from typing import Any, Mapping, Optional


class GenovizError(RuntimeError):
    """Base class for every error raised by genoviz."""


# ---- transport ----------------------------------------------------------------


class TransportError(GenovizError):
    pass


class ConnectTimeoutError(TransportError):
    def __init__(self, *, port: Optional[int], timeout_s: float) -> None:
        super().__init__(f"no browser connected on port {port} within {timeout_s:.1f}s")
        self.port = port
        self.timeout_s = float(timeout_s)


class TransportClosedError(TransportError):
    pass


# ---- rpc ----------------------------------------------------------------------


class RpcError(GenovizError):
    def __init__(self, message: str, *, command: str, correlation_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.command = str(command)
        self.correlation_id = correlation_id


class RpcTimeoutError(RpcError):
    def __init__(self, *, command: str, correlation_id: str, timeout_s: float) -> None:
        super().__init__(
            f"{command} timed out after {timeout_s:.2f}s",
            command=command,
            correlation_id=correlation_id,
        )
        self.timeout_s = float(timeout_s)


class RpcRemoteError(RpcError):
    def __init__(self, *, command: str, correlation_id: str, remote_message: Any) -> None:
        super().__init__(
            f"{command} failed in browser: {remote_message}",
            command=command,
            correlation_id=correlation_id,
        )
        self.remote_message = remote_message


class RpcTransportError(RpcError):
    pass


# ---- track model --------------------------------------------------------------


class TrackValidationError(GenovizError, ValueError):
    def __init__(
        self,
        message: str,
        *,
        track: Optional[str] = None,
        row: Optional[int] = None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        prefix = f"track {track!r}: " if track else ""
        suffix = f" (row {row})" if row is not None else ""
        super().__init__(f"{prefix}{message}{suffix}")
        self.track = track
        self.row = row
        self.details = dict(details) if details else None


# ---- session ------------------------------------------------------------------


class SessionError(GenovizError):
    pass


class UnsupportedGenomeError(SessionError, ValueError):
    def __init__(self, name: Any, supported: tuple[str, ...]) -> None:
        super().__init__(f"unsupported genome {name!r}; expected one of {', '.join(supported)}")
        self.name = name
        self.supported = supported


class RegionParseError(SessionError, ValueError):
    pass


class InvalidSessionStateError(SessionError):
    def __init__(self, operation: str, phase: Any) -> None:
        super().__init__(f"{operation} not allowed while session is {phase}")
        self.operation = operation
        self.phase = phase


__all__ = [
    "ConnectTimeoutError",
    "GenovizError",
    "InvalidSessionStateError",
    "RegionParseError",
    "RpcError",
    "RpcRemoteError",
    "RpcTimeoutError",
    "RpcTransportError",
    "SessionError",
    "TrackValidationError",
    "TransportClosedError",
    "TransportError",
    "UnsupportedGenomeError",
]
