"""
Toolbridge Base Package

Cross-cutting building blocks shared by the parsers, the stream bridge and the
service: DTOs, the error taxonomy, structured logging, timeout configuration
and the pooled HTTP client.
"""

from .dto import ExtractedToolCall, ToolDefinition, known_tool_names, parse_tools
from .errors import BridgeError, BufferOverflowError, ErrorCode, classify_exception

__all__ = [
    "BridgeError",
    "BufferOverflowError",
    "ErrorCode",
    "ExtractedToolCall",
    "ToolDefinition",
    "classify_exception",
    "known_tool_names",
    "parse_tools",
]
