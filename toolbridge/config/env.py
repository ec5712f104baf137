"""toolbridge.config.env
=====================

Environment variable names understood by the configuration layer.

Every configuration field has one canonical ``TOOLBRIDGE_*`` variable. The
backend API key additionally accepts the conventional ``OPENAI_API_KEY`` so a
proxy in front of an OpenAI-compatible server works without extra setup; the
canonical name wins when both are set.

Helpers never raise on unset variables; callers fall back to file values or
defaults.
"""

from __future__ import annotations

import os
from typing import Dict, Optional, Tuple

ENV_PREFIX = "TOOLBRIDGE_"

# Config field -> environment variable suffix
ENV_FIELD_MAP: Dict[str, str] = {
    "backend_format": "BACKEND_FORMAT",
    "backend_base_url": "BACKEND_BASE_URL",
    "backend_chat_path": "BACKEND_CHAT_PATH",
    "backend_api_key": "BACKEND_API_KEY",  # pragma: allowlist secret - env suffix name, not a secret
    "max_tool_call_buffer_size": "MAX_TOOL_CALL_BUFFER_SIZE",
    "max_stream_buffer_size": "MAX_STREAM_BUFFER_SIZE",
    "queue_maxsize": "QUEUE_MAXSIZE",
    "sink_maxsize": "SINK_MAXSIZE",
    "host": "HOST",
    "port": "PORT",
    "cors_origins": "CORS_ORIGINS",
    "enable_reinjection": "ENABLE_REINJECTION",
    "reinjection_message_count": "REINJECTION_MESSAGE_COUNT",
    "reinjection_token_count": "REINJECTION_TOKEN_COUNT",
    "reinjection_role": "REINJECTION_ROLE",
}

# Field -> additional accepted variable names, in precedence order
ENV_ALIASES: Dict[str, Tuple[str, ...]] = {
    "backend_api_key": ("OPENAI_API_KEY",),
}


def is_placeholder(val: Optional[str]) -> bool:
    """Return True if the value looks like a placeholder/test value.

    Heuristics: contains 'placeholder', 'changeme', 'example', or starts with
    'test_' (case-insensitive).
    """
    if val is None:
        return False
    v = str(val).strip().lower()
    return (
        "placeholder" in v
        or "changeme" in v
        or "example" in v
        or v.startswith("test_")
    )


def env_var_names(field: str) -> Tuple[str, ...]:
    """Return the variable names consulted for ``field`` (canonical first)."""
    suffix = ENV_FIELD_MAP.get(field)
    if suffix is None:
        return ()
    return (ENV_PREFIX + suffix,) + ENV_ALIASES.get(field, ())


def read_env_field(field: str) -> Optional[str]:
    """Return the first non-empty value among the names for ``field``."""
    for name in env_var_names(field):
        val = os.getenv(name)
        if val:
            return val
    return None


__all__ = [
    "ENV_PREFIX",
    "ENV_FIELD_MAP",
    "ENV_ALIASES",
    "is_placeholder",
    "env_var_names",
    "read_env_field",
]
