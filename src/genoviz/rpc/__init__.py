"""Request/response layer over the browser control channel."""

from .broker import EventSink, MessageChannel, RequestResponseBroker

__all__ = ["EventSink", "MessageChannel", "RequestResponseBroker"]
