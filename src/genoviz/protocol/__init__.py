"""Protocol definitions for host/browser control-channel traffic."""

from __future__ import annotations

from .messages import *  # noqa: F401,F403
from .parser import MessageParser

__all__ = [name for name in globals().keys() if not name.startswith("_")]
