"""Request bodies accepted by the proxy and their mapping to backend payloads.

The client's ``tools`` never reach the backend: they are removed and the
equivalent XML instructions are injected into the messages. The remaining
fields are passed through, with sampling options moved between the OpenAI
top-level names and the Ollama ``options`` object when the client and the
backend speak different formats.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from ..base.dto import ToolDefinition
from ..config import BridgeSettings
from ..prompts import ReinjectionPolicy, inject_tool_instructions
from ..streaming.chunk import WireFormat

# Request fields describing native tool calling; replaced by instructions.
TOOL_FIELDS = ("tools", "tool_choice", "parallel_tool_calls", "functions", "function_call")

# OpenAI top-level name -> Ollama option name
_OPENAI_TO_OLLAMA_OPTIONS = {
    "temperature": "temperature",
    "top_p": "top_p",
    "seed": "seed",
    "stop": "stop",
    "max_tokens": "num_predict",
    "max_completion_tokens": "num_predict",
    "frequency_penalty": "frequency_penalty",
    "presence_penalty": "presence_penalty",
}
_OLLAMA_TO_OPENAI_OPTIONS = {
    "temperature": "temperature",
    "top_p": "top_p",
    "seed": "seed",
    "stop": "stop",
    "num_predict": "max_tokens",
    "frequency_penalty": "frequency_penalty",
    "presence_penalty": "presence_penalty",
}
# Fields that only one of the formats understands.
_OPENAI_ONLY = ("n", "user", "logprobs", "top_logprobs", "stream_options", "response_format")
_OLLAMA_ONLY = ("options", "keep_alive", "format", "think")


class ChatBody(BaseModel):
    """Chat request accepted on both client endpoints.

    Unknown fields are kept and forwarded to the backend.
    """

    model_config = ConfigDict(extra="allow")

    model: str
    messages: List[Dict[str, Any]]
    tools: Optional[List[Dict[str, Any]]] = None
    stream: Optional[bool] = None

    def wants_stream(self, client_format: WireFormat) -> bool:
        """OpenAI clients stream only on request; Ollama clients by default."""
        if self.stream is not None:
            return self.stream
        return client_format is WireFormat.OLLAMA


def _openai_to_ollama(payload: Dict[str, Any]) -> Dict[str, Any]:
    options = {}
    for key, option in _OPENAI_TO_OLLAMA_OPTIONS.items():
        if key in payload:
            options[option] = payload.pop(key)
    response_format = payload.get("response_format")
    if isinstance(response_format, dict) and response_format.get("type") == "json_object":
        payload["format"] = "json"
    for key in _OPENAI_ONLY:
        payload.pop(key, None)
    if options:
        payload["options"] = options
    return payload


def _ollama_to_openai(payload: Dict[str, Any]) -> Dict[str, Any]:
    options = payload.get("options") or {}
    for option, key in _OLLAMA_TO_OPENAI_OPTIONS.items():
        if option in options:
            payload[key] = options[option]
    if payload.get("format") == "json":
        payload["response_format"] = {"type": "json_object"}
    for key in _OLLAMA_ONLY:
        payload.pop(key, None)
    return payload


def reinjection_policy(settings: BridgeSettings) -> ReinjectionPolicy:
    return ReinjectionPolicy(
        enabled=settings.enable_reinjection,
        message_count=settings.reinjection_message_count,
        token_count=settings.reinjection_token_count,
        role=settings.reinjection_role,
    )


def build_backend_payload(
    body: Dict[str, Any],
    tools: Sequence[ToolDefinition],
    client_format: WireFormat,
    backend_format: WireFormat,
    reinjection: Optional[ReinjectionPolicy] = None,
) -> Dict[str, Any]:
    """Return the streaming request body sent to the backend.

    ``reinjection`` controls the tool reminder added to long conversations;
    without it no reminder is inserted.
    """
    payload = {k: v for k, v in body.items() if k not in TOOL_FIELDS}
    payload["messages"] = inject_tool_instructions(body.get("messages") or [], tools, reinjection)
    payload["stream"] = True
    if client_format is not backend_format:
        payload = _openai_to_ollama(payload) if backend_format is WireFormat.OLLAMA else _ollama_to_openai(payload)
    return payload


__all__ = ["ChatBody", "TOOL_FIELDS", "build_backend_payload", "reinjection_policy"]
