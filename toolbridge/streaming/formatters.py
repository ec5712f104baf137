"""Frame builders for the client-facing wire formats.

One formatter instance is created per proxied stream; it keeps the stream's
chunk id and creation time so every synthesized frame of that stream agrees.

Event-stream frames are ``data: <json>\\n\\n`` and the stream ends with
``data: [DONE]\\n\\n``. Line-JSON frames are ``<json>\\n`` and the stream ends
with an object carrying ``done: true``; for line-JSON that object is also the
completion marker of a tool-call turn.
"""
from __future__ import annotations

import json
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence

from ..base.dto import ExtractedToolCall
from .chunk import WireFormat

STREAM_ERROR_CODE = "STREAM_ERROR"


def _dumps(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def new_tool_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


class SseFormatter:
    """Builds OpenAI ``chat.completion.chunk`` event-stream frames."""

    wire_format = WireFormat.OPENAI
    media_type = WireFormat.OPENAI.media_type

    def __init__(self, model: Optional[str] = None) -> None:
        self.model = model
        self.stream_id = f"chatcmpl-{uuid.uuid4().hex[:24]}"
        self.created = int(time.time())

    def encode(self, payload: Mapping[str, Any]) -> str:
        return f"data: {_dumps(payload)}\n\n"

    def _chunk(self, delta: Dict[str, Any], finish_reason: Optional[str] = None) -> Dict[str, Any]:
        return {
            "id": self.stream_id,
            "object": "chat.completion.chunk",
            "created": self.created,
            "model": self.model or "unknown",
            "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
        }

    def content(self, text: str) -> str:
        return self.encode(self._chunk({"content": text}))

    def tool_calls(self, calls: Sequence[ExtractedToolCall]) -> str:
        delta = {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {
                    "index": index,
                    "id": new_tool_call_id(),
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments_json()},
                }
                for index, call in enumerate(calls)
            ],
        }
        return self.encode(self._chunk(delta))

    def finish(self, reason: str, usage: Optional[Mapping[str, int]] = None) -> Optional[str]:
        payload = self._chunk({}, finish_reason=reason)
        if usage:
            payload["usage"] = dict(usage)
        return self.encode(payload)

    def error(self, message: str, code: str = STREAM_ERROR_CODE) -> str:
        return self.encode({"error": {"message": message, "code": code}})

    def terminal(
        self,
        reason: Optional[str] = None,
        usage: Optional[Mapping[str, int]] = None,
        error: Optional[str] = None,
    ) -> str:
        prefix = self.error(error) if error is not None else ""
        return prefix + "data: [DONE]\n\n"


class NdjsonFormatter:
    """Builds Ollama ``/api/chat`` line-JSON frames."""

    wire_format = WireFormat.OLLAMA
    media_type = WireFormat.OLLAMA.media_type

    def __init__(self, model: Optional[str] = None) -> None:
        self.model = model

    @staticmethod
    def created_at() -> str:
        return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def encode(self, payload: Mapping[str, Any]) -> str:
        return _dumps(payload) + "\n"

    def _message(self, message: Dict[str, Any], done: bool) -> Dict[str, Any]:
        return {
            "model": self.model or "unknown",
            "created_at": self.created_at(),
            "message": message,
            "done": done,
        }

    def content(self, text: str) -> str:
        return self.encode(self._message({"role": "assistant", "content": text}, done=False))

    def tool_calls(self, calls: Sequence[ExtractedToolCall]) -> str:
        message = {
            "role": "assistant",
            "content": "",
            "tool_calls": [
                {"function": {"name": call.name, "arguments": dict(call.arguments)}}
                for call in calls
            ],
        }
        return self.encode(self._message(message, done=False))

    def finish(self, reason: str, usage: Optional[Mapping[str, int]] = None) -> Optional[str]:
        """Line-JSON has no separate finish frame; the terminal object carries it."""
        return None

    def error(self, message: str, code: str = STREAM_ERROR_CODE, *, done: bool = False) -> str:
        return self.encode({"error": message, "code": code, "done": done})

    def terminal(
        self,
        reason: Optional[str] = None,
        usage: Optional[Mapping[str, int]] = None,
        error: Optional[str] = None,
    ) -> str:
        if error is not None:
            return self.error(error, done=True)
        payload = self._message({"role": "assistant", "content": ""}, done=True)
        payload["done_reason"] = reason or "stop"
        if usage:
            payload["prompt_eval_count"] = int(usage.get("prompt_tokens", 0))
            payload["eval_count"] = int(usage.get("completion_tokens", 0))
        return self.encode(payload)


Formatter = SseFormatter | NdjsonFormatter


def formatter_for(fmt: WireFormat, model: Optional[str] = None) -> Formatter:
    return SseFormatter(model) if fmt is WireFormat.OPENAI else NdjsonFormatter(model)


__all__ = [
    "STREAM_ERROR_CODE",
    "Formatter",
    "SseFormatter",
    "NdjsonFormatter",
    "formatter_for",
    "new_tool_call_id",
]
