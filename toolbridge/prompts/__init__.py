"""Prompt construction for XML tool calling."""

from .xml_instructions import (
    INSTRUCTIONS_HEADER,
    ReinjectionPolicy,
    build_examples,
    create_tool_reminder,
    estimate_token_count,
    format_tools_for_prompt,
    inject_tool_instructions,
    needs_tool_reinjection,
)

__all__ = [
    "INSTRUCTIONS_HEADER",
    "ReinjectionPolicy",
    "build_examples",
    "create_tool_reminder",
    "estimate_token_count",
    "format_tools_for_prompt",
    "inject_tool_instructions",
    "needs_tool_reinjection",
]
