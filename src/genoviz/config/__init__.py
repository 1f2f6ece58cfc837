"""Shared configuration dataclasses for genoviz."""

from .logging_policy import DebugPolicy, LoggingToggles, load_debug_policy, maybe_enable_debug_logger
from .models import (
    BrokerConfig,
    ChannelConfig,
    PortSpec,
    SessionConfig,
    load_session_config,
)

__all__ = [
    "BrokerConfig",
    "ChannelConfig",
    "DebugPolicy",
    "LoggingToggles",
    "PortSpec",
    "SessionConfig",
    "load_debug_policy",
    "load_session_config",
    "maybe_enable_debug_logger",
]
