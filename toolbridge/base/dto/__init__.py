"""Pydantic DTOs shared across the bridge."""

from .tool_call import ExtractedToolCall
from .tools import ToolDefinition, known_tool_names, parse_tools

__all__ = ["ExtractedToolCall", "ToolDefinition", "known_tool_names", "parse_tools"]
