"""Configuration dataclasses and the environment loader."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Literal, Mapping, Optional, Union

from genoviz.config.logging_policy import DebugPolicy, load_debug_policy

logger = logging.getLogger(__name__)

PortSpec = Union[int, Literal["auto"]]


@dataclass(frozen=True)
class ChannelConfig:
    """Where the control channel listens and how long it waits for a browser."""

    host: str = "127.0.0.1"
    port: PortSpec = "auto"
    connect_timeout_s: float = 30.0
    quiet: bool = False

    def __post_init__(self) -> None:
        if self.port != "auto":
            if isinstance(self.port, bool) or not isinstance(self.port, int):
                raise ValueError(f"port must be an integer or 'auto', got {self.port!r}")
            if not 0 <= self.port <= 65535:
                raise ValueError(f"port out of range: {self.port}")
        if self.connect_timeout_s <= 0:
            raise ValueError("connect_timeout_s must be positive")

    @property
    def bind_port(self) -> int:
        return 0 if self.port == "auto" else int(self.port)


@dataclass(frozen=True)
class BrokerConfig:
    """Request/response timing."""

    rpc_timeout_s: float = 10.0
    poll_interval_s: float = 0.05
    expired_memory: int = 256

    def __post_init__(self) -> None:
        if self.rpc_timeout_s <= 0:
            raise ValueError("rpc_timeout_s must be positive")
        if self.poll_interval_s <= 0:
            raise ValueError("poll_interval_s must be positive")


@dataclass(frozen=True)
class SessionConfig:
    """Top-level configuration for one browser session."""

    channel: ChannelConfig = field(default_factory=ChannelConfig)
    broker: BrokerConfig = field(default_factory=BrokerConfig)
    debug_policy: DebugPolicy = field(default_factory=DebugPolicy)


# ---- Helpers -----------------------------------------------------------------

def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    v = env.get(name)
    if v is None:
        return bool(default)
    v = v.strip().lower()
    return v not in ("0", "", "false", "no", "off")


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    v = env.get(name)
    if v is None:
        return float(default)
    try:
        value = float(v)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r", name, v)
        return float(default)
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r", name, v)
        return float(default)
    return value


def _env_str(env: Mapping[str, str], name: str, default: Optional[str] = None) -> Optional[str]:
    v = env.get(name)
    if v is None:
        return default
    v = v.strip()
    return v if v != "" else default


def _env_port(env: Mapping[str, str], name: str, default: PortSpec) -> PortSpec:
    v = _env_str(env, name)
    if v is None:
        return default
    if v.lower() == "auto":
        return "auto"
    try:
        port = int(v)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r", name, v)
        return default
    if not 0 <= port <= 65535:
        logger.warning("Ignoring out-of-range %s=%r", name, v)
        return default
    return port


def load_session_config(env: Optional[Mapping[str, str]] = None) -> SessionConfig:
    """Resolve a :class:`SessionConfig` from ``env`` (defaults to ``os.environ``)."""

    env = os.environ if env is None else env
    channel_defaults = ChannelConfig()
    broker_defaults = BrokerConfig()

    channel = ChannelConfig(
        host=_env_str(env, "GENOVIZ_HOST", channel_defaults.host) or channel_defaults.host,
        port=_env_port(env, "GENOVIZ_PORT", channel_defaults.port),
        connect_timeout_s=_env_float(env, "GENOVIZ_CONNECT_TIMEOUT", channel_defaults.connect_timeout_s),
        quiet=_env_bool(env, "GENOVIZ_QUIET", channel_defaults.quiet),
    )
    broker = BrokerConfig(
        rpc_timeout_s=_env_float(env, "GENOVIZ_RPC_TIMEOUT", broker_defaults.rpc_timeout_s),
        poll_interval_s=_env_float(env, "GENOVIZ_POLL_INTERVAL", broker_defaults.poll_interval_s),
    )
    cfg = SessionConfig(channel=channel, broker=broker, debug_policy=load_debug_policy(env))
    logger.debug("resolved session config: %s", cfg)
    return cfg


__all__ = [
    "BrokerConfig",
    "ChannelConfig",
    "PortSpec",
    "SessionConfig",
    "load_session_config",
]
