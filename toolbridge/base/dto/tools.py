"""Tool definition DTOs and helpers.

Requests declare tools in the OpenAI shape
(``{"type": "function", "function": {"name", "description", "parameters"}}``);
Ollama clients use the same shape. Bare ``{"name", ...}`` objects are accepted
as well. Only the names take part in detection; descriptions and parameter
schemas feed the generated instructions.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ToolDefinition(BaseModel):
    """A tool the model may call.

    Attributes:
        name: Tool name; must be a valid XML element name.
        description: Human-readable purpose shown to the model.
        parameters: JSON-schema object describing the arguments.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("tool name must be non-empty")
        if not (value[0].isalpha() or value[0] == "_") or not all(
            ch.isalnum() or ch in "_.-" for ch in value
        ):
            raise ValueError(f"tool name {value!r} is not a valid element name")
        return value

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ToolDefinition":
        """Build from an OpenAI-style tool entry or a bare function object."""
        function = payload.get("function") if payload.get("type", "function") == "function" else None
        source = function if isinstance(function, Mapping) else payload
        return cls(
            name=source.get("name", ""),
            description=source.get("description") or "",
            parameters=dict(source.get("parameters") or {}),
        )

    def parameter_names(self) -> List[str]:
        props = self.parameters.get("properties")
        return list(props) if isinstance(props, Mapping) else []

    def required_parameters(self) -> List[str]:
        required = self.parameters.get("required")
        return [str(r) for r in required] if isinstance(required, list) else []


def parse_tools(payload: Optional[Iterable[Mapping[str, Any]]]) -> List[ToolDefinition]:
    """Parse a request's ``tools`` array; ``None`` yields an empty list."""
    return [ToolDefinition.from_payload(item) for item in payload or ()]


def known_tool_names(tools: Iterable[ToolDefinition]) -> Tuple[str, ...]:
    """Distinct tool names in declaration order."""
    seen: Dict[str, None] = {}
    for tool in tools:
        seen.setdefault(tool.name, None)
    return tuple(seen)


__all__ = ["ToolDefinition", "parse_tools", "known_tool_names"]
