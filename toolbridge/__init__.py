"""toolbridge package

Streaming proxy that lets chat backends without native function calling
serve tool calls. The model writes calls as XML inside its text; the proxy
detects them while the response streams and re-encodes them as native tool
calls in the client's wire format (OpenAI event-stream or Ollama line-JSON).

Public API (re-exported):
    - Version: ``__version__``
    - Parsing: :func:`detect_tool_call`, :func:`extract_tool_call`,
      :func:`parse_tool_call_fragment`
    - Streaming: :class:`StreamBridge`, :class:`WireFormat`,
      :class:`BoundedBuffer`
    - DTOs and errors: :class:`ToolDefinition`, :class:`ExtractedToolCall`,
      :class:`BridgeError`, :class:`ErrorCode`

The FastAPI service lives in :mod:`toolbridge.service` and is not imported
here.
"""

from .base import BridgeError, ErrorCode, ExtractedToolCall, ToolDefinition
from .parsers.detection import detect_tool_call
from .parsers.xml import extract_tool_call, parse_tool_call_fragment
from .streaming import BoundedBuffer, StreamBridge, WireFormat

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "BoundedBuffer",
    "BridgeError",
    "ErrorCode",
    "ExtractedToolCall",
    "StreamBridge",
    "ToolDefinition",
    "WireFormat",
    "detect_tool_call",
    "extract_tool_call",
    "parse_tool_call_fragment",
]
