"""toolbridge.config.defaults
==========================

Central place for the small, stable default values used by the bridge and the
proxy service. Every value can be overridden through the configuration file,
``TOOLBRIDGE_*`` environment variables or explicit overrides (see
:func:`toolbridge.config.get_bridge_config`).

Only plain constants live here; this module imports nothing from the package.
"""

from __future__ import annotations

# ---- Stream bridge ----

# Largest candidate tool-call fragment held before it is flushed as text.
BRIDGE_DEFAULT_MAX_TOOL_CALL_BUFFER_SIZE = 10 * 1024
# Largest unterminated backend line/event held by the framing decoders.
BRIDGE_DEFAULT_MAX_STREAM_BUFFER_SIZE = 1024 * 1024
# Work items queued per stream before the backend reader waits.
BRIDGE_DEFAULT_QUEUE_MAXSIZE = 256
# Frames buffered between the bridge and the HTTP response body.
BRIDGE_DEFAULT_SINK_MAXSIZE = 64

# ---- Backend ----

# Wire format spoken by the backend: "openai" or "ollama".
BACKEND_DEFAULT_FORMAT = "openai"
# Ollama serves an OpenAI-compatible API under /v1.
BACKEND_DEFAULT_BASE_URL = "http://localhost:11434/v1"
BACKEND_DEFAULT_CHAT_PATHS = {
    "openai": "/chat/completions",
    "ollama": "/api/chat",
}

# ---- Service / HTTP layer ----

SERVICE_DEFAULT_HOST = "127.0.0.1"
SERVICE_DEFAULT_PORT = 8091
# Comma-separated list of allowed CORS origins.
SERVICE_DEFAULT_CORS_ORIGINS = "*"

# ---- Prompt instructions ----

# Remind the model of its tools once the conversation drifts from the
# system message by this many messages or estimated tokens.
PROMPT_DEFAULT_ENABLE_REINJECTION = True
PROMPT_DEFAULT_REINJECTION_MESSAGE_COUNT = 3
PROMPT_DEFAULT_REINJECTION_TOKEN_COUNT = 1000
# Role of the reminder message: "system" or "user".
PROMPT_DEFAULT_REINJECTION_ROLE = "system"
