"""XML tool-call parsing: scanner, argument builder and extractors."""

from .arguments import RAW_PARAMETER_NAMES, MalformedXmlError, build_arguments
from .extractor import (
    extract_tool_call,
    extract_tool_calls_from_wrapper,
    parse_tool_call_fragment,
)
from .wrapper import (
    WRAPPER_TAG,
    WRAPPER_TAG_NAMES,
    has_tool_call_wrapper,
    remove_reasoning_blocks,
    unwrap_tool_calls,
)

__all__ = [
    "RAW_PARAMETER_NAMES",
    "MalformedXmlError",
    "build_arguments",
    "extract_tool_call",
    "extract_tool_calls_from_wrapper",
    "parse_tool_call_fragment",
    "WRAPPER_TAG",
    "WRAPPER_TAG_NAMES",
    "has_tool_call_wrapper",
    "remove_reasoning_blocks",
    "unwrap_tool_calls",
]
