"""Unit tests for client frame builders."""

from __future__ import annotations

import json

from toolbridge.base.dto import ExtractedToolCall
from toolbridge.streaming.chunk import WireFormat
from toolbridge.streaming.formatters import (
    NdjsonFormatter,
    SseFormatter,
    formatter_for,
    new_tool_call_id,
)

CALLS = (
    ExtractedToolCall(name="get_weather", arguments={"location": "Paris"}),
    ExtractedToolCall(name="search", arguments={"query": "umbrellas"}),
)


def _sse_payload(frame: str):
    assert frame.startswith("data: ") and frame.endswith("\n\n")  # nosec B101 - asserts are appropriate in unit tests
    return json.loads(frame[len("data: "):])


def test_sse_content_frames_share_stream_identity():
    fmt = SseFormatter()
    first = _sse_payload(fmt.content("Hello"))
    second = _sse_payload(fmt.content(" world"))
    assert first["id"] == second["id"] == fmt.stream_id  # nosec B101
    assert first["id"].startswith("chatcmpl-")  # nosec B101
    assert first["object"] == "chat.completion.chunk"  # nosec B101
    assert first["model"] == "unknown"  # nosec B101
    assert first["choices"] == [{"index": 0, "delta": {"content": "Hello"}, "finish_reason": None}]  # nosec B101


def test_sse_tool_call_frame():
    payload = _sse_payload(SseFormatter("m").tool_calls(CALLS))
    delta = payload["choices"][0]["delta"]
    assert delta["role"] == "assistant" and delta["content"] is None  # nosec B101
    assert [c["index"] for c in delta["tool_calls"]] == [0, 1]  # nosec B101
    first = delta["tool_calls"][0]
    assert first["type"] == "function" and first["id"].startswith("call_")  # nosec B101
    assert first["function"]["name"] == "get_weather"  # nosec B101
    assert json.loads(first["function"]["arguments"]) == {"location": "Paris"}  # nosec B101
    assert payload["choices"][0]["finish_reason"] is None  # nosec B101


def test_sse_finish_and_terminal():
    fmt = SseFormatter("m")
    finish = _sse_payload(fmt.finish("tool_calls", {"prompt_tokens": 1}))
    assert finish["choices"][0] == {"index": 0, "delta": {}, "finish_reason": "tool_calls"}  # nosec B101
    assert finish["usage"] == {"prompt_tokens": 1}  # nosec B101
    assert fmt.terminal() == "data: [DONE]\n\n"  # nosec B101
    failed = fmt.terminal(error="boom")
    error_frame, done = failed.split("\n\n", 1)
    assert json.loads(error_frame[len("data: "):]) == {"error": {"message": "boom", "code": "STREAM_ERROR"}}  # nosec B101
    assert done == "data: [DONE]\n\n"  # nosec B101


def test_ndjson_frames():
    fmt = NdjsonFormatter("llama")
    content = json.loads(fmt.content("Hi"))
    assert content["message"] == {"role": "assistant", "content": "Hi"}  # nosec B101
    assert content["done"] is False and content["model"] == "llama"  # nosec B101
    assert content["created_at"].endswith("Z")  # nosec B101

    calls = json.loads(fmt.tool_calls(CALLS))
    assert calls["message"]["tool_calls"][1] == {  # nosec B101
        "function": {"name": "search", "arguments": {"query": "umbrellas"}}
    }
    assert fmt.finish("tool_calls") is None  # nosec B101


def test_ndjson_terminal_objects():
    fmt = NdjsonFormatter()
    done = json.loads(fmt.terminal("stop", {"prompt_tokens": 7, "completion_tokens": 2}))
    assert done["done"] is True and done["done_reason"] == "stop"  # nosec B101
    assert (done["prompt_eval_count"], done["eval_count"]) == (7, 2)  # nosec B101
    assert json.loads(fmt.terminal())["done_reason"] == "stop"  # nosec B101
    failed = fmt.terminal(error="boom")
    assert failed.endswith("\n") and failed.count("\n") == 1  # nosec B101
    assert json.loads(failed) == {"error": "boom", "code": "STREAM_ERROR", "done": True}  # nosec B101


def test_formatter_for_and_ids():
    assert isinstance(formatter_for(WireFormat.OPENAI), SseFormatter)  # nosec B101
    assert isinstance(formatter_for(WireFormat.OLLAMA, "m"), NdjsonFormatter)  # nosec B101
    assert new_tool_call_id() != new_tool_call_id()  # nosec B101
