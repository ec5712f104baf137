"""Default chunk conversion between the OpenAI and Ollama streaming shapes.

The stream bridge delegates ordinary (non tool-call) chunks to a conversion
callable with the signature of :func:`convert_chunk`; callers can inject their
own. Same-format conversion is the identity. Cross-format conversion maps
content, role, natively emitted tool calls and usage; chunks that carry
nothing the target format can express yield ``None`` and are skipped.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from .chunk import WireFormat
from .formatters import NdjsonFormatter, new_tool_call_id

_OLLAMA_TERMINAL_FIELDS = (
    "done_reason",
    "total_duration",
    "load_duration",
    "prompt_eval_count",
    "prompt_eval_duration",
    "eval_count",
    "eval_duration",
    "context",
)


@dataclass
class ConversionContext:
    """Per-stream values a converter may need to build target chunks."""

    model: Optional[str] = None
    request_id: Optional[str] = None
    chunk_id: Optional[str] = None
    created: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)


ConvertResult = Optional[Dict[str, Any]]
ChunkConverter = Callable[
    [Dict[str, Any], WireFormat, WireFormat, ConversionContext],
    Union[ConvertResult, Awaitable[ConvertResult]],
]


def strip_terminal_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Turn a final line-JSON object into an intermediate one."""
    clone = {k: v for k, v in payload.items() if k not in _OLLAMA_TERMINAL_FIELDS}
    clone["done"] = False
    return clone


def _ollama_tool_calls_to_openai(tool_calls: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    converted = []
    for index, call in enumerate(tool_calls):
        function = call.get("function") or {}
        arguments = function.get("arguments", {})
        converted.append(
            {
                "index": index,
                "id": call.get("id") or new_tool_call_id(),
                "type": "function",
                "function": {
                    "name": function.get("name", ""),
                    "arguments": arguments if isinstance(arguments, str) else json.dumps(arguments),
                },
            }
        )
    return converted


def _openai_tool_calls_to_ollama(tool_calls: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    converted = []
    for call in tool_calls:
        function = call.get("function") or {}
        arguments: Any = function.get("arguments") or {}
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments)
            except ValueError:
                pass
        converted.append({"function": {"name": function.get("name", ""), "arguments": arguments}})
    return converted


def _openai_to_ollama(chunk: Mapping[str, Any], context: ConversionContext) -> ConvertResult:
    choices = chunk.get("choices") or []
    if not choices:
        return None
    delta = choices[0].get("delta") or {}
    content = delta.get("content")
    tool_calls = delta.get("tool_calls")
    if content is None and not tool_calls and not delta.get("role"):
        return None
    message: Dict[str, Any] = {"role": delta.get("role") or "assistant", "content": content or ""}
    if tool_calls:
        message["tool_calls"] = _openai_tool_calls_to_ollama(tool_calls)
    return {
        "model": chunk.get("model") or context.model or "unknown",
        "created_at": NdjsonFormatter.created_at(),
        "message": message,
        "done": False,
    }


def _ollama_to_openai(chunk: Mapping[str, Any], context: ConversionContext) -> ConvertResult:
    message = chunk.get("message")
    if isinstance(message, Mapping):
        content = message.get("content")
        role = message.get("role")
        tool_calls = message.get("tool_calls")
    else:
        content = chunk.get("response")
        role = None
        tool_calls = None
    delta: Dict[str, Any] = {}
    if role:
        delta["role"] = role
    if content:
        delta["content"] = content
    if tool_calls:
        delta["tool_calls"] = _ollama_tool_calls_to_openai(tool_calls)
    if not delta:
        return None
    return {
        "id": context.chunk_id or "chatcmpl-toolbridge",
        "object": "chat.completion.chunk",
        "created": context.created or 0,
        "model": chunk.get("model") or context.model or "unknown",
        "choices": [{"index": 0, "delta": delta, "finish_reason": None}],
    }


def convert_chunk(
    chunk: Dict[str, Any],
    source: WireFormat,
    target: WireFormat,
    context: ConversionContext,
) -> ConvertResult:
    """Map one backend chunk to the client's wire format.

    Returns the chunk itself for same-format streams, a new mapping for
    cross-format streams, or ``None`` when there is nothing to forward.
    """
    if source is target:
        return chunk
    if source is WireFormat.OPENAI:
        return _openai_to_ollama(chunk, context)
    return _ollama_to_openai(chunk, context)


__all__ = [
    "ChunkConverter",
    "ConversionContext",
    "ConvertResult",
    "convert_chunk",
    "strip_terminal_fields",
]
