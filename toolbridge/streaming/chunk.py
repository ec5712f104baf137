"""Format-neutral view of one streamed backend chunk.

Two wire formats are supported:

``WireFormat.OPENAI``
    Server-sent events; each ``data:`` line carries a
    ``chat.completion.chunk`` object and the stream ends with
    ``data: [DONE]``.
``WireFormat.OLLAMA``
    Newline-delimited JSON; each line is an object with a ``message`` (chat)
    or ``response`` (generate) field and the last one has ``done: true``.

:func:`normalize_chunk` reads the fields the bridge needs from either shape
into a :class:`StreamChunk`; :func:`with_content` produces a copy of the
original payload carrying different text, used when only part of a delta may
be forwarded.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class WireFormat(str, Enum):
    OPENAI = "openai"
    OLLAMA = "ollama"

    @property
    def media_type(self) -> str:
        return "text/event-stream" if self is WireFormat.OPENAI else "application/x-ndjson"


@dataclass(frozen=True)
class StreamChunk:
    """Fields of one backend chunk relevant to tool-call bridging.

    Attributes:
        content_delta: New assistant text ("" when the chunk carries none).
        role: Role marker, when present.
        finish_reason: Backend finish reason (``done_reason`` for Ollama).
        usage: Token usage in OpenAI naming, when reported.
        model: Model name reported by the backend.
        done: The chunk is the backend's final object.
        has_native_tool_calls: The backend itself emitted structured tool calls.
        raw: The decoded payload, unmodified.
    """

    content_delta: str = ""
    role: Optional[str] = None
    finish_reason: Optional[str] = None
    usage: Optional[Dict[str, int]] = None
    model: Optional[str] = None
    done: bool = False
    has_native_tool_calls: bool = False
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_signal(self) -> bool:
        """Whether the chunk carries a finish reason, usage or native tool calls.

        The role is not a signal: line-JSON repeats it on every chunk.
        """
        return bool(self.finish_reason or self.usage or self.has_native_tool_calls)


def _openai_usage(payload: Mapping[str, Any]) -> Optional[Dict[str, int]]:
    usage = payload.get("usage")
    if not isinstance(usage, Mapping):
        return None
    return {k: int(v) for k, v in usage.items() if isinstance(v, (int, float)) and not isinstance(v, bool)}


def _ollama_usage(payload: Mapping[str, Any]) -> Optional[Dict[str, int]]:
    prompt = payload.get("prompt_eval_count")
    completion = payload.get("eval_count")
    if prompt is None and completion is None:
        return None
    usage = {
        "prompt_tokens": int(prompt or 0),
        "completion_tokens": int(completion or 0),
    }
    usage["total_tokens"] = usage["prompt_tokens"] + usage["completion_tokens"]
    return usage


def normalize_chunk(payload: Mapping[str, Any], fmt: WireFormat) -> StreamChunk:
    """Read a decoded backend payload into a :class:`StreamChunk`."""
    raw = dict(payload)
    if fmt is WireFormat.OPENAI:
        choices = payload.get("choices") or []
        choice = choices[0] if choices and isinstance(choices[0], Mapping) else {}
        delta = choice.get("delta") or {}
        return StreamChunk(
            content_delta=delta.get("content") or "",
            role=delta.get("role"),
            finish_reason=choice.get("finish_reason"),
            usage=_openai_usage(payload),
            model=payload.get("model"),
            done=False,
            has_native_tool_calls=bool(delta.get("tool_calls")),
            raw=raw,
        )
    message = payload.get("message")
    if isinstance(message, Mapping):
        content = message.get("content") or ""
        role = message.get("role")
        native = bool(message.get("tool_calls"))
    else:
        content = payload.get("response") or ""
        role = None
        native = False
    done = bool(payload.get("done"))
    return StreamChunk(
        content_delta=content,
        role=role,
        finish_reason=payload.get("done_reason") if done else None,
        usage=_ollama_usage(payload) if done else None,
        model=payload.get("model"),
        done=done,
        has_native_tool_calls=native,
        raw=raw,
    )


def with_content(payload: Mapping[str, Any], fmt: WireFormat, text: str) -> Dict[str, Any]:
    """Return a deep copy of ``payload`` whose content text is ``text``."""
    clone = copy.deepcopy(dict(payload))
    if fmt is WireFormat.OPENAI:
        choices = clone.get("choices") or [{"index": 0, "delta": {}}]
        clone["choices"] = choices
        delta = choices[0].setdefault("delta", {})
        delta["content"] = text
        return clone
    if isinstance(clone.get("message"), dict):
        clone["message"]["content"] = text
    elif "response" in clone:
        clone["response"] = text
    else:
        clone["message"] = {"role": "assistant", "content": text}
    return clone


__all__ = ["WireFormat", "StreamChunk", "normalize_chunk", "with_content"]
