"""WebSocket transport between the host process and the browser page."""

from .channel import TransportChannel, open_channel

__all__ = ["TransportChannel", "open_channel"]
