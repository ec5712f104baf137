"""Unified configuration layer for the bridge and the proxy service.

Goals
-----
* Centralize defaults (buffer limits, backend location, serving address).
* Merge sources in a predictable order (later wins):
    1. Built-in defaults (:mod:`toolbridge.config.defaults`)
    2. Optional external config file (JSON or YAML) pointed to by
       ``TOOLBRIDGE_CONFIG_FILE``
    3. Environment variables (``TOOLBRIDGE_*``, after loading ``.env`` once)
    4. In-code overrides passed to the helper
* Provide a single call site: ``get_bridge_config()``, and a typed view of it,
  :class:`BridgeSettings`.

External Config File (Optional)
-------------------------------
JSON is tried first, then YAML. Keys are the field names of
:class:`BridgeSettings`; an optional top-level ``toolbridge`` section is used
when present:

```
toolbridge:
  backend_format: ollama
  backend_base_url: http://localhost:11434
  max_tool_call_buffer_size: 16384
```

Public API
----------
* get_bridge_config(overrides: dict | None = None) -> dict
* BridgeSettings.from_config(overrides: dict | None = None) -> BridgeSettings
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .defaults import (
    BACKEND_DEFAULT_BASE_URL,
    BACKEND_DEFAULT_CHAT_PATHS,
    BACKEND_DEFAULT_FORMAT,
    BRIDGE_DEFAULT_MAX_STREAM_BUFFER_SIZE,
    BRIDGE_DEFAULT_MAX_TOOL_CALL_BUFFER_SIZE,
    BRIDGE_DEFAULT_QUEUE_MAXSIZE,
    BRIDGE_DEFAULT_SINK_MAXSIZE,
    PROMPT_DEFAULT_ENABLE_REINJECTION,
    PROMPT_DEFAULT_REINJECTION_MESSAGE_COUNT,
    PROMPT_DEFAULT_REINJECTION_ROLE,
    PROMPT_DEFAULT_REINJECTION_TOKEN_COUNT,
    SERVICE_DEFAULT_CORS_ORIGINS,
    SERVICE_DEFAULT_HOST,
    SERVICE_DEFAULT_PORT,
)
from .env import ENV_FIELD_MAP, is_placeholder, read_env_field

CONFIG_FILE_ENV = "TOOLBRIDGE_CONFIG_FILE"
DOTENV_FILE_ENV = "DOTENV_FILE"

# -------------------- Defaults --------------------

DEFAULTS: Dict[str, Any] = {
    "backend_format": BACKEND_DEFAULT_FORMAT,
    "backend_base_url": BACKEND_DEFAULT_BASE_URL,
    "backend_chat_path": None,
    "backend_api_key": None,
    "max_tool_call_buffer_size": BRIDGE_DEFAULT_MAX_TOOL_CALL_BUFFER_SIZE,
    "max_stream_buffer_size": BRIDGE_DEFAULT_MAX_STREAM_BUFFER_SIZE,
    "queue_maxsize": BRIDGE_DEFAULT_QUEUE_MAXSIZE,
    "sink_maxsize": BRIDGE_DEFAULT_SINK_MAXSIZE,
    "host": SERVICE_DEFAULT_HOST,
    "port": SERVICE_DEFAULT_PORT,
    "cors_origins": SERVICE_DEFAULT_CORS_ORIGINS,
    "enable_reinjection": PROMPT_DEFAULT_ENABLE_REINJECTION,
    "reinjection_message_count": PROMPT_DEFAULT_REINJECTION_MESSAGE_COUNT,
    "reinjection_token_count": PROMPT_DEFAULT_REINJECTION_TOKEN_COUNT,
    "reinjection_role": PROMPT_DEFAULT_REINJECTION_ROLE,
}

_FILE_CACHE: Optional[Dict[str, Any]] = None
_DOTENV_LOADED = False


def _load_dotenv_once() -> None:
    """Lightweight .env loader (no external dependency).

    Parses KEY=VALUE lines, ignoring comments and blank lines. Safe to call
    multiple times. Overrides existing environment variables only if their
    current values appear to be placeholders.
    """
    global _DOTENV_LOADED
    if _DOTENV_LOADED:
        return
    path = os.getenv(DOTENV_FILE_ENV, ".env")
    if not os.path.isfile(path):
        _DOTENV_LOADED = True
        return
    try:
        with open(path, "r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                k, v = line.split("=", 1)
                k = k.strip()
                if k.startswith("export "):
                    k = k[len("export "):].strip()
                v = v.strip().strip('"').strip("'")
                if k and (k not in os.environ or is_placeholder(os.environ.get(k))):
                    os.environ[k] = v
    finally:
        _DOTENV_LOADED = True


def _load_external_config() -> Dict[str, Any]:
    global _FILE_CACHE
    if _FILE_CACHE is not None:
        return _FILE_CACHE
    path = os.getenv(CONFIG_FILE_ENV)
    if not path or not Path(path).is_file():
        _FILE_CACHE = {}
        return _FILE_CACHE
    text = Path(path).read_text(encoding="utf-8")
    data: Any
    try:
        data = json.loads(text)
    except ValueError:
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError:
            data = {}
    if isinstance(data, dict) and isinstance(data.get("toolbridge"), dict):
        data = data["toolbridge"]
    if not isinstance(data, dict):
        data = {}
    _FILE_CACHE = {k: v for k, v in data.items() if k in DEFAULTS}
    return _FILE_CACHE


def _env_overrides() -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for field_name in ENV_FIELD_MAP:
        val = read_env_field(field_name)
        if val is not None:
            out[field_name] = val
    return out


def reset_config_cache() -> None:
    """Forget the parsed config file and the ``.env`` load (tests, reloads)."""
    global _FILE_CACHE, _DOTENV_LOADED
    _FILE_CACHE = None
    _DOTENV_LOADED = False


def get_bridge_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Return the merged configuration mapping.

    Merge order (later wins): defaults -> external config -> env vars -> overrides
    """
    _load_dotenv_once()
    cfg: Dict[str, Any] = dict(DEFAULTS)
    cfg |= _load_external_config()
    cfg |= _env_overrides()
    if overrides:
        cfg |= {k: v for k, v in overrides.items() if v is not None}
    return cfg


def _as_int(name: str, value: Any) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc
    if parsed <= 0:
        raise ValueError(f"{name} must be positive, got {parsed}")
    return parsed


_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def _as_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class BridgeSettings:
    """Typed, validated view of :func:`get_bridge_config`."""

    backend_format: str
    backend_base_url: str
    backend_chat_path: str
    backend_api_key: Optional[str]
    max_tool_call_buffer_size: int
    max_stream_buffer_size: int
    queue_maxsize: int
    sink_maxsize: int
    host: str
    port: int
    cors_origins: Tuple[str, ...]
    enable_reinjection: bool
    reinjection_message_count: int
    reinjection_token_count: int
    reinjection_role: str

    @classmethod
    def from_config(cls, overrides: Optional[Dict[str, Any]] = None) -> "BridgeSettings":
        cfg = get_bridge_config(overrides)
        backend_format = str(cfg["backend_format"]).strip().lower()
        if backend_format not in BACKEND_DEFAULT_CHAT_PATHS:
            raise ValueError(f"backend_format must be one of {sorted(BACKEND_DEFAULT_CHAT_PATHS)}, got {backend_format!r}")
        origins = cfg["cors_origins"]
        if isinstance(origins, str):
            origins = [o.strip() for o in origins.split(",")]
        api_key = cfg.get("backend_api_key")
        reinjection_role = str(cfg["reinjection_role"]).strip().lower()
        if reinjection_role not in ("system", "user"):
            raise ValueError(f"reinjection_role must be 'system' or 'user', got {reinjection_role!r}")
        return cls(
            backend_format=backend_format,
            backend_base_url=str(cfg["backend_base_url"]).rstrip("/"),
            backend_chat_path=cfg.get("backend_chat_path") or BACKEND_DEFAULT_CHAT_PATHS[backend_format],
            backend_api_key=None if is_placeholder(api_key) else api_key or None,
            max_tool_call_buffer_size=_as_int("max_tool_call_buffer_size", cfg["max_tool_call_buffer_size"]),
            max_stream_buffer_size=_as_int("max_stream_buffer_size", cfg["max_stream_buffer_size"]),
            queue_maxsize=_as_int("queue_maxsize", cfg["queue_maxsize"]),
            sink_maxsize=_as_int("sink_maxsize", cfg["sink_maxsize"]),
            host=str(cfg["host"]),
            port=_as_int("port", cfg["port"]),
            cors_origins=tuple(o for o in origins if o),
            enable_reinjection=_as_bool("enable_reinjection", cfg["enable_reinjection"]),
            reinjection_message_count=_as_int("reinjection_message_count", cfg["reinjection_message_count"]),
            reinjection_token_count=_as_int("reinjection_token_count", cfg["reinjection_token_count"]),
            reinjection_role=reinjection_role,
        )

    @property
    def backend_url(self) -> str:
        return self.backend_base_url + self.backend_chat_path

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


__all__ = [
    "BridgeSettings",
    "CONFIG_FILE_ENV",
    "DEFAULTS",
    "get_bridge_config",
    "reset_config_cache",
]
