"""Unit tests for the generated XML tool instructions."""

from __future__ import annotations

import pytest

from toolbridge.base.dto import ToolDefinition
from toolbridge.parsers.xml import extract_tool_calls_from_wrapper
from toolbridge.prompts import (
    INSTRUCTIONS_HEADER,
    ReinjectionPolicy,
    build_examples,
    create_tool_reminder,
    estimate_token_count,
    format_tools_for_prompt,
    inject_tool_instructions,
    needs_tool_reinjection,
)


@pytest.fixture()
def tools():
    return [
        ToolDefinition(
            name="get_weather",
            description="Current weather for a city",
            parameters={
                "type": "object",
                "properties": {"location": {"type": "string", "description": "City name"}},
                "required": ["location"],
            },
        ),
        ToolDefinition(
            name="search",
            parameters={
                "type": "object",
                "properties": {
                    "query": {"type": "string"},
                    "limit": {"type": "integer", "description": "Max results"},
                },
            },
        ),
    ]


def test_no_tools_yields_no_instructions():
    assert format_tools_for_prompt([]) == ""  # nosec B101 - asserts are appropriate in unit tests
    assert create_tool_reminder([]) == ""  # nosec B101
    messages = [{"role": "user", "content": "hi"}]
    assert inject_tool_instructions(messages, []) == messages  # nosec B101


def test_instruction_block_describes_tools(tools):
    text = format_tools_for_prompt(tools)
    assert text.startswith(INSTRUCTIONS_HEADER)  # nosec B101
    assert "Tool Name: get_weather" in text  # nosec B101
    assert "* location (string): City name (required)" in text  # nosec B101
    assert "Description: No description provided" in text  # nosec B101
    assert "* limit (integer): Max results" in text  # nosec B101
    assert "<toolbridge:calls>" in text  # nosec B101


def test_examples_prefer_declared_tools(tools):
    examples = build_examples(tools)
    descriptions = [desc for desc, _ in examples]
    assert descriptions[0] == "Tool with a single string parameter: 'location'"  # nosec B101
    assert descriptions[1] == "Tool with 2 parameters of various types"  # nosec B101
    assert not any(desc.startswith("Generic example") for desc in descriptions)  # nosec B101
    assert "<limit>42</limit>" in examples[1][1]  # nosec B101
    assert "<query>What is the capital of France?</query>" in examples[1][1]  # nosec B101


def test_generic_examples_fill_in(tools):
    descriptions = [desc for desc, _ in build_examples(tools[:1])]
    assert descriptions[0].startswith("Tool with a single")  # nosec B101
    assert "Generic example: Tool with no parameters" in descriptions  # nosec B101
    assert "Generic example: Tool with multiple parameters of various types" in descriptions  # nosec B101
    assert "Generic example: Tool with a single string parameter" not in descriptions  # nosec B101


def test_generated_examples_parse_back(tools):
    names = [t.name for t in tools]
    single, several = build_examples(tools)[:2]
    assert extract_tool_calls_from_wrapper(single[1], names)[0].arguments == {  # nosec B101
        "location": "example value"
    }
    call = extract_tool_calls_from_wrapper(several[1], names)[0]
    assert call.name == "search"  # nosec B101
    assert call.arguments == {"query": "What is the capital of France?", "limit": 42}  # nosec B101


def test_inject_prepends_system_message(tools):
    messages = [{"role": "user", "content": "Weather in Paris?"}]
    out = inject_tool_instructions(messages, tools)
    assert messages == [{"role": "user", "content": "Weather in Paris?"}]  # nosec B101
    assert [m["role"] for m in out] == ["system", "user"]  # nosec B101
    assert out[0]["content"].startswith("You are a helpful AI assistant.")  # nosec B101
    assert INSTRUCTIONS_HEADER in out[0]["content"]  # nosec B101


def test_inject_appends_to_existing_system_message(tools):
    messages = [{"role": "system", "content": "Be terse."}, {"role": "user", "content": "hi"}]
    out = inject_tool_instructions(messages, tools)
    assert out[0]["content"].startswith("Be terse.\n\n---\n\n" + INSTRUCTIONS_HEADER)  # nosec B101
    assert messages[0]["content"] == "Be terse."  # nosec B101
    assert inject_tool_instructions(out, tools) == out  # nosec B101


def _long_conversation(tools, turns=8):
    messages = inject_tool_instructions([{"role": "system", "content": "Be terse."}], tools)
    for i in range(turns):
        messages.append({"role": "user" if i % 2 == 0 else "assistant", "content": f"turn {i}"})
    return messages


def test_reminder_inserted_when_enabled_and_drifted(tools):
    messages = _long_conversation(tools)
    assert inject_tool_instructions(messages, tools) == messages  # nosec B101

    policy = ReinjectionPolicy(enabled=True, message_count=4, token_count=10_000)
    out = inject_tool_instructions(messages, tools, policy)
    assert len(out) == len(messages) + 1  # nosec B101
    assert out[1]["role"] == "system"  # nosec B101
    assert out[1]["content"].startswith("REMINDER: You have access to these tools: get_weather, search.")  # nosec B101


def test_reminder_goes_last_as_user_with_several_system_messages(tools):
    messages = _long_conversation(tools)
    messages.insert(2, {"role": "system", "content": "extra"})
    policy = ReinjectionPolicy(enabled=True, message_count=4, token_count=10_000)
    out = inject_tool_instructions(messages, tools, policy)
    assert out[-1]["role"] == "user"  # nosec B101
    assert out[-1]["content"].startswith("REMINDER:")  # nosec B101


def test_recent_reminder_suppresses_another(tools):
    messages = _long_conversation(tools)
    messages.append({"role": "user", "content": create_tool_reminder(tools)})
    policy = ReinjectionPolicy(enabled=True, message_count=4, token_count=10_000)
    assert inject_tool_instructions(messages, tools, policy) == messages  # nosec B101


def test_needs_tool_reinjection_counts():
    system = {"role": "system", "content": "s"}
    chat = [{"role": "user", "content": "x" * 40}] * 3
    assert needs_tool_reinjection([], 1, 1) is False  # nosec B101
    assert needs_tool_reinjection(chat, 100, 100) is True  # nosec B101
    assert needs_tool_reinjection([system] + chat, 100, 3) is True  # nosec B101
    assert needs_tool_reinjection([system] + chat, 30, 10) is True  # nosec B101
    assert needs_tool_reinjection([system] + chat, 100, 10) is False  # nosec B101
    assert estimate_token_count({"content": "abcde"}) == 2  # nosec B101
    assert estimate_token_count({"content": None}) == 0  # nosec B101
