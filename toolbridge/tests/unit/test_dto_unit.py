"""Unit tests for tool DTOs."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from toolbridge.base.dto import ExtractedToolCall, ToolDefinition, known_tool_names, parse_tools


def _openai_tool(name: str, **params) -> dict:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": f"{name} tool",
            "parameters": {"type": "object", "properties": params, "required": list(params)[:1]},
        },
    }


def test_parse_tools_openai_and_bare_shapes():
    tools = parse_tools([
        _openai_tool("get_weather", location={"type": "string"}),
        {"name": "search", "description": "web search"},
    ])
    assert [t.name for t in tools] == ["get_weather", "search"]  # nosec B101 - asserts are appropriate in unit tests
    assert tools[0].parameter_names() == ["location"]  # nosec B101
    assert tools[0].required_parameters() == ["location"]  # nosec B101
    assert tools[1].parameters == {}  # nosec B101
    assert parse_tools(None) == []  # nosec B101


def test_tool_name_validation():
    with pytest.raises(ValidationError):
        ToolDefinition(name="")
    with pytest.raises(ValidationError):
        ToolDefinition(name="1st tool")
    assert ToolDefinition(name="  ok_name ").name == "ok_name"  # nosec B101


def test_known_tool_names_are_distinct_and_ordered():
    tools = [ToolDefinition(name="b"), ToolDefinition(name="a"), ToolDefinition(name="b")]
    assert known_tool_names(tools) == ("b", "a")  # nosec B101


def test_extracted_tool_call_is_frozen_and_serializes_in_order():
    call = ExtractedToolCall(name="get_weather", arguments={"location": "Paris", "days": 3})
    assert json.loads(call.arguments_json()) == {"location": "Paris", "days": 3}  # nosec B101
    assert list(json.loads(call.arguments_json())) == ["location", "days"]  # nosec B101
    with pytest.raises(ValidationError):
        call.name = "other"  # type: ignore[misc]
