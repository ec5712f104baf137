"""Timeout configuration for backend I/O.

Centralizes the timeout values used when the proxy opens a streaming request
to a backend and while it waits for further bytes. Values are parsed from the
environment on first use and cached; the cache is refreshed when the relevant
environment variables change, which keeps tests deterministic.

Supported environment variables (all optional, positive floats):
    TOOLBRIDGE_TIMEOUT_CONNECT_SECONDS
    TOOLBRIDGE_TIMEOUT_STREAM_SECONDS
    TOOLBRIDGE_TIMEOUT_HTTP_SECONDS

Failure modes: invalid or non-positive values fall back to the defaults.
"""
from __future__ import annotations

import os
from dataclasses import dataclass

import httpx

_ENV_NAMES = (
    "TOOLBRIDGE_TIMEOUT_CONNECT_SECONDS",
    "TOOLBRIDGE_TIMEOUT_STREAM_SECONDS",
    "TOOLBRIDGE_TIMEOUT_HTTP_SECONDS",
)


@dataclass(frozen=True)
class TimeoutConfig:
    """Container for normalized timeout values (seconds).

    Attributes:
        connect_timeout_seconds: Timeout for establishing the backend connection.
        stream_timeout_seconds: Idle timeout while waiting for the next chunk.
        http_timeout_seconds: Baseline timeout for writes and pool acquisition.
    """

    connect_timeout_seconds: float = 30.0
    stream_timeout_seconds: float = 120.0
    http_timeout_seconds: float = 30.0

    def as_httpx(self) -> httpx.Timeout:
        """Return the equivalent ``httpx.Timeout``."""
        return httpx.Timeout(
            connect=self.connect_timeout_seconds,
            read=self.stream_timeout_seconds,
            write=self.http_timeout_seconds,
            pool=self.http_timeout_seconds,
        )


_CACHED: TimeoutConfig | None = None
_ENV_GUARD: str | None = None


def _parse_env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        val = float(raw)
    except ValueError:
        return default
    return val if val > 0 else default


def get_timeout_config() -> TimeoutConfig:
    """Return the process-cached :class:`TimeoutConfig`."""
    global _CACHED, _ENV_GUARD  # noqa: PLW0603 - module cache
    guard = "/".join(os.getenv(name, "") for name in _ENV_NAMES)
    if _CACHED is not None and _ENV_GUARD == guard:
        return _CACHED
    defaults = TimeoutConfig()
    _CACHED = TimeoutConfig(
        connect_timeout_seconds=_parse_env_float(_ENV_NAMES[0], defaults.connect_timeout_seconds),
        stream_timeout_seconds=_parse_env_float(_ENV_NAMES[1], defaults.stream_timeout_seconds),
        http_timeout_seconds=_parse_env_float(_ENV_NAMES[2], defaults.http_timeout_seconds),
    )
    _ENV_GUARD = guard
    return _CACHED


__all__ = ["TimeoutConfig", "get_timeout_config"]
