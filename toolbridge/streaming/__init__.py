"""Streaming side of the proxy: framing, buffering, conversion and the bridge."""
from .bridge import CONVERSION_ERROR_CODE, BridgeState, StreamBridge
from .buffer import BoundedBuffer
from .chunk import StreamChunk, WireFormat, normalize_chunk, with_content
from .conversion import ConversionContext, convert_chunk, strip_terminal_fields
from .formatters import NdjsonFormatter, SseFormatter, formatter_for
from .framing import END_OF_STREAM, NdjsonDecoder, SseDecoder, decoder_for
from .sinks import MemorySink, QueueSink, SinkClosedError, StreamSink
from .task_queue import OrderedTaskQueue

__all__ = [
    "BoundedBuffer",
    "BridgeState",
    "CONVERSION_ERROR_CODE",
    "ConversionContext",
    "END_OF_STREAM",
    "MemorySink",
    "NdjsonDecoder",
    "NdjsonFormatter",
    "OrderedTaskQueue",
    "QueueSink",
    "SinkClosedError",
    "SseDecoder",
    "SseFormatter",
    "StreamBridge",
    "StreamChunk",
    "StreamSink",
    "WireFormat",
    "convert_chunk",
    "decoder_for",
    "formatter_for",
    "normalize_chunk",
    "strip_terminal_fields",
    "with_content",
]
