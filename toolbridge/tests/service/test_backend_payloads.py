"""Unit tests for mapping client request bodies to backend payloads."""

from __future__ import annotations

from toolbridge.base.dto import ToolDefinition
from toolbridge.config import BridgeSettings
from toolbridge.prompts import inject_tool_instructions
from toolbridge.service.payloads import ChatBody, build_backend_payload, reinjection_policy
from toolbridge.streaming import WireFormat

OPENAI = WireFormat.OPENAI
OLLAMA = WireFormat.OLLAMA
TOOLS = [ToolDefinition(name="search", parameters={"properties": {"query": {"type": "string"}}})]


def test_wants_stream_defaults_per_format():
    body = ChatBody(model="m", messages=[])
    assert body.wants_stream(OLLAMA) is True  # nosec B101 - asserts are appropriate in unit tests
    assert body.wants_stream(OPENAI) is False  # nosec B101
    assert ChatBody(model="m", messages=[], stream=True).wants_stream(OPENAI) is True  # nosec B101


def test_chat_body_keeps_unknown_fields():
    body = ChatBody(model="m", messages=[], temperature=0.2)
    assert body.model_dump(exclude_none=True)["temperature"] == 0.2  # nosec B101


def test_same_format_passes_fields_through():
    body = {
        "model": "m",
        "messages": [{"role": "user", "content": "q"}],
        "tools": [{"type": "function", "function": {"name": "search"}}],
        "parallel_tool_calls": True,
        "temperature": 0.1,
        "stream": False,
    }
    payload = build_backend_payload(body, TOOLS, OPENAI, OPENAI)
    assert payload["temperature"] == 0.1 and payload["stream"] is True  # nosec B101
    assert "tools" not in payload and "parallel_tool_calls" not in payload  # nosec B101
    assert payload["messages"][0]["role"] == "system"  # nosec B101
    assert body["messages"] == [{"role": "user", "content": "q"}]  # nosec B101


def test_openai_client_to_ollama_backend():
    body = {
        "model": "m",
        "messages": [],
        "max_tokens": 64,
        "temperature": 0.3,
        "user": "abc",
        "response_format": {"type": "json_object"},
    }
    payload = build_backend_payload(body, [], OPENAI, OLLAMA)
    assert payload["options"] == {"temperature": 0.3, "num_predict": 64}  # nosec B101
    assert payload["format"] == "json"  # nosec B101
    assert "max_tokens" not in payload and "user" not in payload  # nosec B101
    assert "response_format" not in payload  # nosec B101
    assert payload["messages"] == []  # nosec B101


def test_ollama_client_to_openai_backend():
    body = {
        "model": "m",
        "messages": [],
        "options": {"num_predict": 32, "top_p": 0.9, "mirostat": 1},
        "format": "json",
        "keep_alive": "5m",
    }
    payload = build_backend_payload(body, [], OLLAMA, OPENAI)
    assert payload["max_tokens"] == 32 and payload["top_p"] == 0.9  # nosec B101
    assert payload["response_format"] == {"type": "json_object"}  # nosec B101
    assert not {"options", "format", "keep_alive"} & set(payload)  # nosec B101


def _drifted_conversation():
    messages = inject_tool_instructions([{"role": "system", "content": "Be terse."}], TOOLS)
    for i in range(8):
        messages.append({"role": "user" if i % 2 == 0 else "assistant", "content": f"turn {i}"})
    return {"model": "m", "messages": messages}


def test_configured_reinjection_adds_reminder():
    body = _drifted_conversation()
    policy = reinjection_policy(BridgeSettings.from_config())
    assert policy.enabled and policy.message_count == 3 and policy.role == "system"  # nosec B101

    payload = build_backend_payload(body, TOOLS, OPENAI, OPENAI, policy)
    assert len(payload["messages"]) == len(body["messages"]) + 1  # nosec B101
    assert payload["messages"][1]["role"] == "system"  # nosec B101
    assert payload["messages"][1]["content"].startswith("REMINDER:")  # nosec B101


def test_reinjection_disabled_or_omitted_leaves_messages():
    body = _drifted_conversation()
    disabled = reinjection_policy(BridgeSettings.from_config({"enable_reinjection": "false"}))
    assert build_backend_payload(body, TOOLS, OPENAI, OPENAI, disabled)["messages"] == body["messages"]  # nosec B101
    assert build_backend_payload(body, TOOLS, OPENAI, OPENAI)["messages"] == body["messages"]  # nosec B101


def test_reminder_as_user_message_when_configured():
    body = _drifted_conversation()
    settings = BridgeSettings.from_config({"reinjection_role": "user", "reinjection_message_count": 2})
    payload = build_backend_payload(body, TOOLS, OPENAI, OLLAMA, reinjection_policy(settings))
    assert payload["messages"][-1]["role"] == "user"  # nosec B101
    assert payload["messages"][-1]["content"].startswith("REMINDER:")  # nosec B101
