"""Debug/logging policy plumbing for genoviz.

``GENOVIZ_DEBUG`` accepts a truthy word, a comma separated flag list, or a JSON
object such as ``{"enabled": true, "flags": ["wire", "events"]}``.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

_PACKAGE_LOGGER = "genoviz"


@dataclass(frozen=True)
class LoggingToggles:
    log_wire: bool = False
    log_events: bool = False
    log_tracks: bool = False


@dataclass(frozen=True)
class DebugPolicy:
    enabled: bool = False
    logging: LoggingToggles = LoggingToggles()


_LOG_FLAG_MAP: dict[str, Iterable[str]] = {
    "wire": ("log_wire",),
    "events": ("log_events",),
    "tracks": ("log_tracks",),
    "all": ("log_wire", "log_events", "log_tracks"),
}

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _coerce_bool(value: object, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        val = value.strip().lower()
        if val in _TRUTHY:
            return True
        if val in _FALSY:
            return False
    return default


def _split_flags(raw: object) -> set[str]:
    result: set[str] = set()
    items: Iterable[object]
    if raw is None:
        return result
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, Iterable):
        items = raw
    else:
        return result
    for item in items:
        token = str(item).strip().lower()
        if token:
            result.add(token)
    return result


def _load_debug_config(env: Mapping[str, str]) -> tuple[bool, dict[str, object]]:
    raw = env.get("GENOVIZ_DEBUG")
    if raw is None:
        return False, {}
    raw_str = raw.strip()
    if raw_str.lower() in _FALSY:
        return False, {}
    if raw_str.lower() in _TRUTHY:
        return True, {"flags": ["all"]}
    try:
        parsed = json.loads(raw_str)
        if isinstance(parsed, dict):
            enabled = _coerce_bool(parsed.get("enabled", True), True)
            return enabled, parsed
        if isinstance(parsed, (list, tuple)):
            return True, {"flags": parsed}
    except json.JSONDecodeError:
        logger.debug("Failed to parse GENOVIZ_DEBUG JSON; treating as flag list", exc_info=True)
    return True, {"flags": raw_str}


def load_debug_policy(env: Optional[Mapping[str, str]] = None) -> DebugPolicy:
    env = os.environ if env is None else env
    enabled, cfg = _load_debug_config(env)
    if not enabled:
        return DebugPolicy()

    flags = _split_flags(cfg.get("flags"))
    log_kwargs = {name: False for name in LoggingToggles.__annotations__.keys()}
    for flag, attrs in _LOG_FLAG_MAP.items():
        if flag in flags:
            for attr in attrs:
                log_kwargs[attr] = True
    return DebugPolicy(enabled=True, logging=LoggingToggles(**log_kwargs))


def maybe_enable_debug_logger(env: Optional[Mapping[str, str]] = None) -> bool:
    """Attach a local DEBUG handler to the package logger when requested."""

    env = os.environ if env is None else env
    flag = (env.get("GENOVIZ_CLIENT_DEBUG") or "").strip().lower()
    if flag not in ("1", "true", "yes", "on", "dbg", "debug"):
        return False
    pkg_logger = logging.getLogger(_PACKAGE_LOGGER)
    has_local = any(getattr(h, "_genoviz_local", False) for h in pkg_logger.handlers)
    if not has_local:
        handler = logging.StreamHandler()
        fmt = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
        handler.setFormatter(logging.Formatter(fmt))
        handler.setLevel(logging.DEBUG)
        setattr(handler, "_genoviz_local", True)
        pkg_logger.addHandler(handler)
    pkg_logger.setLevel(logging.DEBUG)
    return True


__all__ = [
    "DebugPolicy",
    "LoggingToggles",
    "load_debug_policy",
    "maybe_enable_debug_logger",
]
