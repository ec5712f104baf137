"""Unit tests for the default cross-format chunk converter."""

from __future__ import annotations

import json

from toolbridge.streaming.chunk import WireFormat
from toolbridge.streaming.conversion import ConversionContext, convert_chunk, strip_terminal_fields

OPENAI = WireFormat.OPENAI
OLLAMA = WireFormat.OLLAMA


def test_same_format_is_identity():
    chunk = {"choices": [{"delta": {"content": "x"}}]}
    assert convert_chunk(chunk, OPENAI, OPENAI, ConversionContext()) is chunk  # nosec B101 - asserts are appropriate in unit tests


def test_openai_to_ollama_content_and_role():
    out = convert_chunk(
        {"model": "gpt", "choices": [{"delta": {"role": "assistant", "content": "Hi"}}]},
        OPENAI,
        OLLAMA,
        ConversionContext(),
    )
    assert out["message"] == {"role": "assistant", "content": "Hi"}  # nosec B101
    assert out["model"] == "gpt" and out["done"] is False  # nosec B101


def test_openai_to_ollama_skips_finish_only_chunk():
    chunk = {"choices": [{"delta": {}, "finish_reason": "stop"}]}
    assert convert_chunk(chunk, OPENAI, OLLAMA, ConversionContext()) is None  # nosec B101
    assert convert_chunk({"choices": []}, OPENAI, OLLAMA, ConversionContext()) is None  # nosec B101


def test_openai_native_tool_calls_to_ollama():
    chunk = {
        "choices": [
            {
                "delta": {
                    "tool_calls": [
                        {"index": 0, "function": {"name": "search", "arguments": '{"query": "x"}'}}
                    ]
                }
            }
        ]
    }
    out = convert_chunk(chunk, OPENAI, OLLAMA, ConversionContext(model="m"))
    assert out["model"] == "m"  # nosec B101
    assert out["message"]["tool_calls"] == [{"function": {"name": "search", "arguments": {"query": "x"}}}]  # nosec B101


def test_ollama_to_openai_uses_stream_identity():
    ctx = ConversionContext(model="m", chunk_id="chatcmpl-abc", created=123)
    out = convert_chunk({"message": {"role": "assistant", "content": "Hi"}, "done": False}, OLLAMA, OPENAI, ctx)
    assert out["id"] == "chatcmpl-abc" and out["created"] == 123  # nosec B101
    assert out["choices"] == [  # nosec B101
        {"index": 0, "delta": {"role": "assistant", "content": "Hi"}, "finish_reason": None}
    ]


def test_ollama_to_openai_tool_calls_and_empty():
    out = convert_chunk(
        {"message": {"tool_calls": [{"function": {"name": "search", "arguments": {"query": "x"}}}]}},
        OLLAMA,
        OPENAI,
        ConversionContext(),
    )
    call = out["choices"][0]["delta"]["tool_calls"][0]
    assert call["index"] == 0 and call["type"] == "function"  # nosec B101
    assert json.loads(call["function"]["arguments"]) == {"query": "x"}  # nosec B101
    assert convert_chunk({"message": {"content": ""}, "done": False}, OLLAMA, OPENAI, ConversionContext()) is None  # nosec B101
    generate = convert_chunk({"response": "txt"}, OLLAMA, OPENAI, ConversionContext())
    assert generate["choices"][0]["delta"] == {"content": "txt"}  # nosec B101


def test_strip_terminal_fields():
    final = {"message": {"content": "x"}, "done": True, "done_reason": "stop", "eval_count": 3, "model": "m"}
    assert strip_terminal_fields(final) == {"message": {"content": "x"}, "done": False, "model": "m"}  # nosec B101
