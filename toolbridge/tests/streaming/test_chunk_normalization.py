"""Unit tests for reading backend chunks into the format-neutral view."""

from __future__ import annotations

from toolbridge.streaming.chunk import WireFormat, normalize_chunk, with_content


def test_openai_content_chunk():
    chunk = normalize_chunk(
        {"model": "m1", "choices": [{"index": 0, "delta": {"content": "Hi"}, "finish_reason": None}]},
        WireFormat.OPENAI,
    )
    assert chunk.content_delta == "Hi"  # nosec B101 - asserts are appropriate in unit tests
    assert chunk.model == "m1"  # nosec B101
    assert not chunk.has_signal and not chunk.done  # nosec B101


def test_openai_finish_and_usage():
    chunk = normalize_chunk(
        {
            "choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}],
            "usage": {"prompt_tokens": 3, "completion_tokens": 5, "total_tokens": 8, "details": None},
        },
        WireFormat.OPENAI,
    )
    assert chunk.finish_reason == "stop"  # nosec B101
    assert chunk.usage == {"prompt_tokens": 3, "completion_tokens": 5, "total_tokens": 8}  # nosec B101
    assert chunk.has_signal  # nosec B101


def test_openai_native_tool_calls_and_empty_choices():
    native = normalize_chunk(
        {"choices": [{"delta": {"tool_calls": [{"index": 0}]}}]}, WireFormat.OPENAI
    )
    assert native.has_native_tool_calls  # nosec B101
    empty = normalize_chunk({"choices": []}, WireFormat.OPENAI)
    assert empty.content_delta == "" and not empty.has_signal  # nosec B101


def test_ollama_done_chunk_maps_usage():
    chunk = normalize_chunk(
        {
            "model": "llama",
            "message": {"role": "assistant", "content": ""},
            "done": True,
            "done_reason": "stop",
            "prompt_eval_count": 10,
            "eval_count": 4,
        },
        WireFormat.OLLAMA,
    )
    assert chunk.done and chunk.finish_reason == "stop"  # nosec B101
    assert chunk.usage == {"prompt_tokens": 10, "completion_tokens": 4, "total_tokens": 14}  # nosec B101


def test_ollama_generate_shape():
    chunk = normalize_chunk({"response": "text", "done": False}, WireFormat.OLLAMA)
    assert chunk.content_delta == "text" and chunk.role is None  # nosec B101
    assert chunk.finish_reason is None and chunk.usage is None  # nosec B101


def test_with_content_copies_payload():
    raw = {"choices": [{"index": 0, "delta": {"content": "abc"}}]}
    clone = with_content(raw, WireFormat.OPENAI, "a")
    assert clone["choices"][0]["delta"]["content"] == "a"  # nosec B101
    assert raw["choices"][0]["delta"]["content"] == "abc"  # nosec B101

    assert with_content({"response": "x"}, WireFormat.OLLAMA, "y") == {"response": "y"}  # nosec B101
    assert with_content({"done": False}, WireFormat.OLLAMA, "y")["message"] == {  # nosec B101
        "role": "assistant",
        "content": "y",
    }
    assert with_content({"id": "c"}, WireFormat.OPENAI, "z")["choices"][0]["delta"] == {"content": "z"}  # nosec B101
