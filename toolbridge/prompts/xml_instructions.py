"""System instructions that teach a model the XML tool-calling convention.

The backend never sees the request's ``tools`` array. Instead the tool list,
the wrapper convention and a handful of generated examples are rendered into
a system message by :func:`format_tools_for_prompt`, and
:func:`inject_tool_instructions` places that text into the conversation.

Long conversations can push the original system message out of the model's
attention; :func:`needs_tool_reinjection` implements the heuristic used to
add a short reminder (:func:`create_tool_reminder`) near the end instead of
repeating the full block.
"""
from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..base.dto import ToolDefinition
from ..base.logging import get_logger, log_event
from ..parsers.xml.wrapper import WRAPPER_TAG

_logger = get_logger("toolbridge.prompts")

INSTRUCTIONS_HEADER = "# TOOL USAGE INSTRUCTIONS"
EXCLUSIVE_TOOLS_NOTICE = (
    "IMPORTANT: The tools listed above are the ONLY tools available to you. "
    "Do not attempt to use any other tools."
)
DEFAULT_SYSTEM_PREAMBLE = "You are a helpful AI assistant. Respond directly to the user's requests."

# Substrings that show a message already carries instructions or a reminder.
_INSTRUCTION_MARKERS = (
    INSTRUCTIONS_HEADER,
    f"<{WRAPPER_TAG}>",
    "Output raw XML only",
)


def _wrap(inner: str) -> str:
    return f"<{WRAPPER_TAG}>\n{inner}\n</{WRAPPER_TAG}>"


def _properties(tool: ToolDefinition) -> Dict[str, Dict[str, Any]]:
    props = tool.parameters.get("properties")
    if not isinstance(props, Mapping):
        return {}
    return {str(k): dict(v) if isinstance(v, Mapping) else {} for k, v in props.items()}


def _describe_tool(tool: ToolDefinition) -> str:
    lines = [
        f"Tool Name: {tool.name}",
        f"Description: {tool.description or 'No description provided'}",
        "Parameters:",
    ]
    props = _properties(tool)
    required = set(tool.required_parameters())
    if not props:
        lines.append("* No parameters defined")
    for name, schema in props.items():
        flag = " (required)" if name in required else ""
        lines.append(
            f"* {name} ({schema.get('type', 'any')}): {schema.get('description') or 'No description'}{flag}"
        )
    return "\n".join(lines)


def _example_value(name: str, schema: Mapping[str, Any]) -> str:
    kind = schema.get("type", "string")
    if kind in ("number", "integer"):
        return "42"
    if kind == "boolean":
        return "true"
    lowered = name.lower()
    for hint, value in (
        ("query", "What is the capital of France?"),
        ("url", "https://example.com"),
        ("date", "2025-05-15"),
        ("email", "user@example.com"),
        ("name", "Example Name"),
    ):
        if hint in lowered:
            return value
    return "example value"


def _tool_example(tool: ToolDefinition) -> str:
    props = _properties(tool)
    if not props:
        return _wrap(f"  <{tool.name}></{tool.name}>")
    params = "\n".join(
        f"    <{name}>{_example_value(name, schema)}</{name}>" for name, schema in props.items()
    )
    return _wrap(f"  <{tool.name}>\n{params}\n  </{tool.name}>")


_GENERIC_EXAMPLES = (
    (
        "no parameters",
        "Generic example: Tool with no parameters",
        _wrap("  <getCurrentWeather></getCurrentWeather>"),
    ),
    (
        "single",
        "Generic example: Tool with a single string parameter",
        _wrap("  <searchWeb>\n    <query>What is the capital of France?</query>\n  </searchWeb>"),
    ),
    (
        "various types",
        "Generic example: Tool with multiple parameters of various types",
        _wrap(
            "  <bookFlight>\n"
            "    <destination>Tokyo</destination>\n"
            "    <departureDate>2025-05-15</departureDate>\n"
            "    <passengers>2</passengers>\n"
            "    <businessClass>true</businessClass>\n"
            "  </bookFlight>"
        ),
    ),
)

_FIXED_EXAMPLES = (
    (
        "Advanced example: Tool with nested object parameters",
        _wrap(
            "  <createUserProfile>\n"
            "    <userData>\n"
            "      <name>John Doe</name>\n"
            "      <email>john.doe@example.com</email>\n"
            "      <preferences>\n"
            "        <theme>dark</theme>\n"
            "        <notifications>true</notifications>\n"
            "      </preferences>\n"
            "    </userData>\n"
            "  </createUserProfile>"
        ),
    ),
    (
        "Tool with an array parameter (repeat the element for each value)",
        _wrap("  <tagPost>\n    <tags>news</tags>\n    <tags>sports</tags>\n  </tagPost>"),
    ),
    (
        "Tool with raw HTML content in parameters (never escape HTML tags)",
        _wrap(
            "  <insert_edit_into_file>\n"
            "    <explanation>Update HTML content</explanation>\n"
            "    <filePath>/path/to/file.html</filePath>\n"
            "    <code><div class=\"container\">\n"
            "    <h1>Raw HTML tags</h1>\n"
            "    <p>This content has <b>unescaped</b> HTML tags</p>\n"
            "  </div></code>\n"
            "  </insert_edit_into_file>"
        ),
    ),
)


def build_examples(tools: Sequence[ToolDefinition]) -> List[tuple[str, str]]:
    """Return ``(description, example)`` pairs for the instruction block.

    Examples are generated from the declared tools first (one with no
    parameters, one with a single parameter, one with several); generic
    examples fill in when fewer than two could be generated.
    """
    examples: List[tuple[str, str, str]] = []
    by_arity = (
        ("no parameters", lambda n: n == 0),
        ("single", lambda n: n == 1),
        ("various types", lambda n: n > 1),
    )
    for kind, matches in by_arity:
        tool = next((t for t in tools if matches(len(_properties(t)))), None)
        if tool is None:
            continue
        props = _properties(tool)
        if kind == "no parameters":
            desc = "Tool with no parameters"
        elif kind == "single":
            name, schema = next(iter(props.items()))
            desc = f"Tool with a single {schema.get('type', 'string')} parameter: '{name}'"
        else:
            desc = f"Tool with {len(props)} parameters of various types"
        examples.append((kind, desc, _tool_example(tool)))

    if len(examples) < 2:
        present = {kind for kind, _, _ in examples}
        examples.extend(g for g in _GENERIC_EXAMPLES if g[0] not in present)
    return [(desc, text) for _, desc, text in examples] + list(_FIXED_EXAMPLES)


def format_tools_for_prompt(tools: Sequence[ToolDefinition]) -> str:
    """Render the full instruction block; empty string when there are no tools."""
    if not tools:
        return ""
    descriptions = "\n\n".join(_describe_tool(t) for t in tools)
    examples = "\n\n".join(
        f"Example {index}: {desc}\n{text}"
        for index, (desc, text) in enumerate(build_examples(tools), start=1)
    )
    return f"""{INSTRUCTIONS_HEADER}

## Available Tools
You have access to the following tools:

{descriptions}

## Response Format
When using a tool, you MUST wrap your tool calls in <{WRAPPER_TAG}> tags.
ONLY content within these wrapper tags will be parsed as tool calls.
Output the raw XML for the tool call without any additional text, code blocks, or explanations.

## Examples of Correct Tool Usage
{examples}

## Critical Rules
1. ALWAYS wrap tool calls in <{WRAPPER_TAG}>...</{WRAPPER_TAG}> tags
2. ONLY output raw XML when calling a tool - no explanations, backticks, or code blocks
3. Never mention XML format or tools to users - they are internal only
4. Always use the EXACT tool name as specified above - do NOT create new tool names
5. For HTML content in parameters: ALWAYS use raw tags (<div>, <p>, etc.) - NEVER use HTML entities (&lt;div&gt;)

## XML Formatting Requirements
- Root element (inside the wrapper) MUST be the EXACT tool name as listed above
- Each parameter must be a child element
- For arrays: repeat the element name for each value (e.g., '<tags>tag1</tags><tags>tag2</tags>')
- For empty values: use '<param></param>' or self-closing '<param/>'
- For boolean values: use '<param>true</param>' or '<param>false</param>'
- For object parameters: use proper nesting of elements
- Ensure every opening tag has a matching closing tag

Remember that tools are invisible to the user - focus on addressing their needs, not explaining the tools."""


def create_tool_reminder(tools: Sequence[ToolDefinition]) -> str:
    """Short reminder listing the tool names, used for reinjection."""
    if not tools:
        return ""
    names = ", ".join(t.name for t in tools)
    return (
        f"REMINDER: You have access to these tools: {names}.\n\n"
        "Use ONLY these EXACT tool names with XML format.\n"
        "Output raw XML only when calling tools - no code blocks or backticks.\n"
        "For HTML content: ALWAYS use raw tags (<div>) - NEVER use HTML entities (&lt;div&gt;)."
    )


def estimate_token_count(message: Mapping[str, Any]) -> int:
    """Rough token estimate (four characters per token)."""
    content = message.get("content") or ""
    if not isinstance(content, str):
        content = str(content)
    return math.ceil(len(content) / 4)


def needs_tool_reinjection(
    messages: Sequence[Mapping[str, Any]], token_count: int = 0, message_count: int = 0
) -> bool:
    """Whether the last system message is too far back in the conversation.

    Counts messages and estimated tokens after the most recent system message;
    a conversation without a system message always needs instructions.
    """
    if not messages:
        return False
    msg_count = 0
    tok_count = 0
    for message in reversed(messages):
        if message.get("role") == "system":
            return msg_count >= message_count or tok_count >= token_count
        msg_count += 1
        tok_count += estimate_token_count(message)
    return True


@dataclass(frozen=True)
class ReinjectionPolicy:
    """When and how to remind the model of its tools in long conversations."""

    enabled: bool = False
    message_count: int = 10
    token_count: int = 3000
    role: str = "system"


def _has_instructions(content: Any) -> bool:
    text = content if isinstance(content, str) else str(content or "")
    return any(marker in text for marker in _INSTRUCTION_MARKERS)


def inject_tool_instructions(
    messages: Sequence[Mapping[str, Any]],
    tools: Sequence[ToolDefinition],
    reinjection: Optional[ReinjectionPolicy] = None,
) -> List[Dict[str, Any]]:
    """Return a copy of ``messages`` carrying the XML tool instructions.

    - No system message: a new one with the instructions is prepended.
    - A system message without instructions: the block is appended to it.
    - Instructions already present: unchanged, unless ``reinjection`` is
      enabled and :func:`needs_tool_reinjection` says the conversation has
      drifted, in which case a short reminder is inserted (as a system message
      right after the first one, or as a trailing user message when several
      system messages exist or the policy asks for it).
    """
    out: List[Dict[str, Any]] = [copy.deepcopy(dict(m)) for m in messages]
    instructions = format_tools_for_prompt(tools)
    if not instructions:
        return out
    block = f"{instructions}\n{EXCLUSIVE_TOOLS_NOTICE}"

    system_index = next((i for i, m in enumerate(out) if m.get("role") == "system"), None)
    if system_index is None:
        out.insert(
            0,
            {
                "role": "system",
                "content": f"{DEFAULT_SYSTEM_PREAMBLE}\n\n{block}\n\n"
                "When a specific tool is needed, use XML format as instructed above.",
            },
        )
        log_event(_logger, "prompts.instructions.prepended", level=logging.DEBUG, tools=len(tools))
        return out

    system = out[system_index]
    if not _has_instructions(system.get("content")):
        current = system.get("content") or ""
        system["content"] = f"{current}\n\n---\n\n{block}" if current else block
        log_event(_logger, "prompts.instructions.appended", level=logging.DEBUG, tools=len(tools))
        return out

    policy = reinjection or ReinjectionPolicy()
    if not policy.enabled or not needs_tool_reinjection(out, policy.token_count, policy.message_count):
        return out
    recent = out[max(len(out) - 6, 0):]
    if any(_has_instructions(m.get("content")) for m in recent):
        return out
    system_count = sum(1 for m in out if m.get("role") == "system")
    role = "system" if policy.role == "system" and system_count <= 1 else "user"
    index = system_index + 1 if role == "system" else len(out)
    out.insert(index, {"role": role, "content": create_tool_reminder(tools)})
    log_event(_logger, "prompts.reminder.inserted", level=logging.DEBUG, role=role)
    return out


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
