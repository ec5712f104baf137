"""Stream/protocol bridge: backend chunks in, client frames out.

Purpose
-------
A :class:`StreamBridge` sits between one backend response stream and one
client response. It decodes backend chunks, forwards ordinary text through a
conversion callable, and replaces an XML tool call embedded in the text with
a native tool-call chunk in the client's wire format.

Phases
------
``STREAMING``
    Content is scanned by the incremental detector. Plain text is forwarded
    immediately; only a trailing fragment that may still open a marker is
    kept in the detection window.
``TOOL_CALL_PENDING``
    A candidate has started. Its text accumulates in a bounded buffer until
    the root element is closed, the buffer overflows or the stream ends.
``TOOL_CALL_SENT``
    The call went out as a tool-call chunk followed by the completion marker.
    One call per turn: later text is never scanned again; non-whitespace
    trailing text is forwarded before the terminal marker.
``CLOSED``
    The terminal marker was written (or the client went away). Nothing else
    is written.

Ordering and termination
------------------------
Every write goes through a per-stream :class:`OrderedTaskQueue`, so frames
reach the sink in the order the chunks arrived even when conversion is
asynchronous. :meth:`StreamBridge.finish` and :meth:`StreamBridge.fail` drain
that queue before writing the terminal marker, and both are idempotent: the
terminal marker is written at most once per stream.

Failure modes
-------------
- Parse failure or buffer overflow: the held text is forwarded as ordinary
  content and the stream continues.
- Conversion failure: a non-terminal error frame is written, the stream
  continues.
- Backend failure (:meth:`fail`): pending buffers are dropped and an error
  frame plus the terminal marker are written.
- Client disconnect (:meth:`abort`): queued work is discarded and writing
  stops.
"""
from __future__ import annotations

import copy
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..base.dto import ExtractedToolCall, ToolDefinition
from ..base.errors import BridgeError, classify_exception
from ..base.logging import LogContext, get_logger, log_event, normalized_log_event
from ..config.defaults import (
    BRIDGE_DEFAULT_MAX_STREAM_BUFFER_SIZE,
    BRIDGE_DEFAULT_MAX_TOOL_CALL_BUFFER_SIZE,
    BRIDGE_DEFAULT_QUEUE_MAXSIZE,
)
from ..parsers.detection import (
    DetectionResult,
    PartialState,
    close_dangling_end_tag,
    detect_tool_call,
)
from ..parsers.xml import extract_tool_calls_from_wrapper, parse_tool_call_fragment
from .buffer import BoundedBuffer
from .chunk import StreamChunk, WireFormat, normalize_chunk, with_content
from .conversion import ChunkConverter, ConversionContext, convert_chunk, strip_terminal_fields
from .formatters import formatter_for
from .framing import END_OF_STREAM, Frame, decoder_for
from .sinks import StreamSink
from .task_queue import OrderedTaskQueue

_logger = get_logger("toolbridge.streaming.bridge")

CONVERSION_ERROR_CODE = "CONVERSION_ERROR"


class BridgeState(str, Enum):
    STREAMING = "streaming"
    TOOL_CALL_PENDING = "tool_call_pending"
    TOOL_CALL_SENT = "tool_call_sent"
    CLOSED = "closed"


@dataclass
class _Streaming:
    window: str = ""
    detection: Optional[PartialState] = None
    state = BridgeState.STREAMING


@dataclass
class _ToolCallPending:
    buffer: BoundedBuffer
    detection: PartialState
    state = BridgeState.TOOL_CALL_PENDING


@dataclass
class _ToolCallSent:
    calls: Tuple[ExtractedToolCall, ...]
    trailing: BoundedBuffer
    state = BridgeState.TOOL_CALL_SENT


@dataclass
class _Closed:
    calls: Tuple[ExtractedToolCall, ...] = field(default_factory=tuple)
    state = BridgeState.CLOSED


_Phase = Union[_Streaming, _ToolCallPending, _ToolCallSent, _Closed]


def _tool_names(tools: Sequence[Union[ToolDefinition, str]]) -> Tuple[str, ...]:
    names: Dict[str, None] = {}
    for tool in tools:
        names.setdefault(tool if isinstance(tool, str) else tool.name, None)
    return tuple(names)


def _without_finish(payload: Mapping[str, Any]) -> Dict[str, Any]:
    clone = copy.deepcopy(dict(payload))
    clone.pop("usage", None)
    for choice in clone.get("choices") or []:
        if isinstance(choice, dict):
            choice["finish_reason"] = None
    return clone


class StreamBridge:
    """Translate one backend stream into one client stream.

    Args:
        source_format: Wire format of the backend stream.
        target_format: Wire format expected by the client.
        sink: Destination for client frames.
        tools: Declared tools (or their names). Without tools the bridge is a
            plain format converter.
        converter: Callable mapping a backend chunk to a client chunk (see
            :func:`toolbridge.streaming.conversion.convert_chunk`); may be
            synchronous or return an awaitable.
        model: Model name used until the backend reports one.
        request_id: Correlation id for log events.
        max_tool_call_buffer_size: Limit for a held tool-call candidate.
        max_stream_buffer_size: Limit for an unterminated backend line or event.
        queue_maxsize: Capacity of the ordered write queue.
    """

    def __init__(
        self,
        source_format: WireFormat,
        target_format: WireFormat,
        sink: StreamSink,
        tools: Sequence[Union[ToolDefinition, str]] = (),
        *,
        converter: ChunkConverter = convert_chunk,
        model: Optional[str] = None,
        request_id: Optional[str] = None,
        max_tool_call_buffer_size: int = BRIDGE_DEFAULT_MAX_TOOL_CALL_BUFFER_SIZE,
        max_stream_buffer_size: int = BRIDGE_DEFAULT_MAX_STREAM_BUFFER_SIZE,
        queue_maxsize: int = BRIDGE_DEFAULT_QUEUE_MAXSIZE,
    ) -> None:
        self.source_format = WireFormat(source_format)
        self.target_format = WireFormat(target_format)
        self._sink = sink
        self._tool_names = _tool_names(tools)
        self._converter = converter
        self._max_buffer = max_tool_call_buffer_size
        self._decoder = decoder_for(self.source_format, max_stream_buffer_size)
        self._formatter = formatter_for(self.target_format, model)
        self._queue = OrderedTaskQueue(maxsize=queue_maxsize, on_error=self._on_task_error)
        self._phase: _Phase = _Streaming()
        self._model = model
        self._usage: Optional[Dict[str, int]] = None
        self._finish_reason: Optional[str] = None
        self._finish_emitted = False
        self._template: Optional[Dict[str, Any]] = None
        self._terminating = False
        self._sink_dead = False
        self._log_ctx = LogContext(
            source_format=self.source_format.value,
            target_format=self.target_format.value,
            model=model,
            request_id=request_id or uuid.uuid4().hex[:12],
        )
        self._context = ConversionContext(
            model=model,
            request_id=self._log_ctx.request_id,
            chunk_id=getattr(self._formatter, "stream_id", None),
            created=getattr(self._formatter, "created", None),
        )

    # ------------------------------------------------------------------ state

    @property
    def state(self) -> BridgeState:
        return self._phase.state

    @property
    def media_type(self) -> str:
        return self.target_format.media_type

    def headers(self) -> Dict[str, str]:
        """Response headers other than the content type."""
        return {
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        }

    @property
    def model(self) -> Optional[str]:
        return self._model

    @property
    def usage(self) -> Optional[Dict[str, int]]:
        return dict(self._usage) if self._usage else None

    @property
    def tool_calls(self) -> Tuple[ExtractedToolCall, ...]:
        """Tool calls emitted on this stream (empty until one is sent)."""
        phase = self._phase
        return phase.calls if isinstance(phase, (_ToolCallSent, _Closed)) else ()

    # ------------------------------------------------------------------ input

    async def feed(self, data: Union[bytes, str]) -> None:
        """Consume a piece of the backend response body."""
        if self._terminating:
            return
        try:
            for frame in self._decoder.feed(data):
                await self._on_frame(frame)
                if self._terminating:
                    return
        except Exception as exc:  # noqa: BLE001 - reported to the client as an error frame
            await self.fail(exc)

    async def _on_frame(self, frame: Frame) -> None:
        if frame is END_OF_STREAM:
            await self.finish()
        elif isinstance(frame, dict):
            await self.handle_chunk(normalize_chunk(frame, self.source_format))

    async def handle_chunk(self, chunk: StreamChunk) -> None:
        """Run one normalized backend chunk through the current phase."""
        if isinstance(self._phase, _Closed):
            return
        self._track(chunk)
        if chunk.content_delta and chunk.finish_reason and self.source_format is WireFormat.OPENAI:
            await self._on_content(normalize_chunk(_without_finish(chunk.raw), self.source_format))
            await self._on_signal(normalize_chunk(with_content(chunk.raw, self.source_format, ""), self.source_format))
        elif chunk.content_delta:
            await self._on_content(chunk)
        elif not chunk.done:
            await self._on_signal(chunk)
        if chunk.done:
            await self.finish()

    def _track(self, chunk: StreamChunk) -> None:
        if chunk.model and chunk.model != self._model:
            self._model = chunk.model
            self._formatter.model = chunk.model
            self._context.model = chunk.model
            self._log_ctx.model = chunk.model
        if chunk.usage:
            self._usage = {**(self._usage or {}), **chunk.usage}
        if chunk.finish_reason:
            self._finish_reason = chunk.finish_reason

    # ------------------------------------------------------------------ phases

    async def _on_content(self, chunk: StreamChunk) -> None:
        phase = self._phase
        if chunk.content_delta:
            self._template = chunk.raw
        if not self._tool_names:
            await self._forward(chunk, chunk.content_delta)
        elif isinstance(phase, _Streaming):
            await self._scan(phase, chunk)
        elif isinstance(phase, _ToolCallPending):
            await self._accumulate(phase, chunk)
        elif isinstance(phase, _ToolCallSent):
            await self._hold_trailing(phase, chunk.content_delta)

    async def _on_signal(self, chunk: StreamChunk) -> None:
        phase = self._phase
        if isinstance(phase, _Streaming):
            if chunk.finish_reason and phase.window:
                window, phase.window = phase.window, ""
                await self._emit_text(window)
            await self._forward(chunk, chunk.content_delta)
            return
        if isinstance(phase, _ToolCallPending) and chunk.finish_reason:
            await self._resolve_pending(phase)
            if isinstance(self._phase, _Streaming):
                await self._forward(chunk, chunk.content_delta)
            return
        if chunk.finish_reason:
            # a completion marker for the tool call was already sent
            return
        await self._forward(chunk, chunk.content_delta)

    async def _scan(self, phase: _Streaming, chunk: StreamChunk) -> None:
        text = phase.window + chunk.content_delta
        result = detect_tool_call(text, self._tool_names, phase.detection)
        if not result.is_potential:
            phase.window = text[result.flush_until:]
            phase.detection = result.state
            await self._forward(chunk, text[:result.flush_until])
            return

        start = result.start or 0
        candidate = text[start:]
        await self._forward(chunk, text[:start])
        if len(candidate) > self._max_buffer:
            self._log_overflow(len(candidate))
            self._phase = _Streaming()
            await self._emit_text(candidate)
            return
        buffer = BoundedBuffer(self._max_buffer, name="tool_call")
        buffer.append(candidate)
        detection = result.state or PartialState(
            root_tag=result.root_tag_name, in_candidate=True
        )
        pending = _ToolCallPending(buffer=buffer, detection=detection)
        self._phase = pending
        log_event(
            _logger,
            "bridge.candidate.start",
            self._log_ctx,
            level=logging.DEBUG,
            root_tag=result.root_tag_name,
            wrapper=detection.is_wrapper,
        )
        if result.is_completed_xml:
            # offsets are relative to the scanned text; re-anchor on the buffer
            await self._resolve(pending, candidate, detect_tool_call(candidate, self._tool_names, detection))

    async def _accumulate(self, phase: _ToolCallPending, chunk: StreamChunk) -> None:
        delta = chunk.content_delta
        if not phase.buffer.can_append(delta):
            self._log_overflow(phase.buffer.size + len(delta))
            held = phase.buffer.extract_and_clear()
            self._phase = _Streaming()
            await self._emit_text(held)
            await self._on_content(chunk)
            return
        phase.buffer.append(delta)
        content = phase.buffer.get_content()
        result = detect_tool_call(content, self._tool_names, phase.detection)
        phase.detection = result.state or phase.detection
        if result.is_completed_xml:
            await self._resolve(phase, content, result)

    async def _hold_trailing(self, phase: _ToolCallSent, text: str) -> None:
        if phase.trailing.can_append(text):
            phase.trailing.append(text)
            return
        held = phase.trailing.extract_and_clear() + text
        if held.strip():
            await self._emit_text(held)

    # ------------------------------------------------------------------ resolution

    def _parse_candidate(self, fragment: str, is_wrapper: bool, lenient: bool) -> List[ExtractedToolCall]:
        if is_wrapper:
            return extract_tool_calls_from_wrapper(fragment, self._tool_names, lenient=lenient)
        call = parse_tool_call_fragment(fragment, self._tool_names)
        return [call] if call is not None else []

    async def _resolve(
        self,
        phase: _ToolCallPending,
        content: str,
        result: DetectionResult,
        *,
        lenient: bool = False,
        original: Optional[str] = None,
    ) -> None:
        """Parse a complete candidate and emit it, or flush it as text.

        ``original`` is the text to flush on failure when ``content`` was
        patched for a lenient final attempt.
        """
        start = result.start or 0
        end = result.end if result.end is not None else len(content)
        calls = self._parse_candidate(content[start:end], phase.detection.is_wrapper, lenient)
        phase.buffer.clear()
        if not calls:
            normalized_log_event(
                _logger,
                "bridge.tool_call.parse_failed",
                self._log_ctx,
                phase="resolve",
                error_code="parse_failure",
                emitted=False,
                level=logging.WARNING,
                root_tag=phase.detection.root_tag,
                size=len(content),
            )
            self._phase = _Streaming()
            await self._emit_text(content if original is None else original)
            return
        sent = _ToolCallSent(
            calls=tuple(calls),
            trailing=BoundedBuffer(self._max_buffer, name="trailing"),
        )
        self._phase = sent
        await self._emit_tool_calls(calls)
        await self._hold_trailing(sent, content[end:])

    async def _resolve_pending(self, phase: _ToolCallPending) -> None:
        """Last parse attempt for a candidate when no more text will arrive."""
        original = phase.buffer.get_content()
        root = phase.detection.root_tag or ""
        content = close_dangling_end_tag(original, root)
        result = detect_tool_call(content, self._tool_names, phase.detection)
        if not result.is_completed_xml and phase.detection.is_wrapper:
            # an unclosed wrapper still yields the calls it completed
            result = DetectionResult.candidate(root, max(content.find("<"), 0), len(content), phase.detection)
        if result.is_completed_xml:
            await self._resolve(phase, content, result, lenient=True, original=original)
            return
        self._log_unresolved(phase, original)
        phase.buffer.clear()
        self._phase = _Streaming()
        await self._emit_text(original)

    def _log_unresolved(self, phase: _ToolCallPending, content: str) -> None:
        normalized_log_event(
            _logger,
            "bridge.tool_call.unterminated",
            self._log_ctx,
            phase="finalize",
            error_code="parse_failure",
            emitted=False,
            level=logging.WARNING,
            root_tag=phase.detection.root_tag,
            size=len(content),
        )

    def _log_overflow(self, attempted: int) -> None:
        normalized_log_event(
            _logger,
            "bridge.buffer.overflow",
            self._log_ctx,
            phase="accumulate",
            error_code="buffer_overflow",
            emitted=False,
            level=logging.WARNING,
            limit=self._max_buffer,
            attempted=attempted,
        )

    # ------------------------------------------------------------------ output

    async def _forward(self, chunk: StreamChunk, text: str) -> None:
        """Send ``chunk`` (or a copy carrying ``text``) through the converter."""
        if not text and chunk.content_delta and not chunk.has_signal:
            return
        if text == chunk.content_delta and not chunk.done:
            payload = chunk.raw
        else:
            payload = with_content(chunk.raw, self.source_format, text)
            if self.source_format is WireFormat.OLLAMA and chunk.done:
                payload = strip_terminal_fields(payload)
        if chunk.finish_reason and not chunk.done and self.target_format is WireFormat.OPENAI:
            self._finish_emitted = True
        await self._queue.submit(lambda: self._convert_and_write(payload))

    async def _emit_text(self, text: str) -> None:
        """Forward held text as ordinary content."""
        if not text:
            return
        if self._template is None:
            frame = self._formatter.content(text)
            await self._queue.submit(lambda: self._write(frame))
            return
        payload = with_content(_without_finish(self._template), self.source_format, text)
        if self.source_format is WireFormat.OLLAMA:
            payload = strip_terminal_fields(payload)
        await self._queue.submit(lambda: self._convert_and_write(payload))

    async def _emit_tool_calls(self, calls: Sequence[ExtractedToolCall]) -> None:
        frame = self._formatter.tool_calls(calls)
        await self._queue.submit(lambda: self._write(frame))
        marker = self._formatter.finish("tool_calls", self._usage)
        if marker is not None:
            await self._queue.submit(lambda: self._write(marker))
        self._finish_emitted = True
        normalized_log_event(
            _logger,
            "bridge.tool_call.emitted",
            self._log_ctx,
            phase="resolve",
            emitted=True,
            tools=[call.name for call in calls],
        )

    async def _convert_and_write(self, payload: Dict[str, Any]) -> None:
        converted = self._converter(payload, self.source_format, self.target_format, self._context)
        if inspect.isawaitable(converted):
            converted = await converted
        if converted is None:
            return
        await self._write(self._formatter.encode(converted))

    async def _write(self, data: str) -> None:
        if self._sink_dead:
            return
        try:
            await self._sink.write(data)
        except Exception as exc:  # noqa: BLE001 - any sink failure means the client is gone
            self._sink_dead = True
            log_event(
                _logger,
                "bridge.sink.failed",
                self._log_ctx,
                level=logging.WARNING,
                error=str(exc),
            )

    async def _on_task_error(self, exc: BaseException) -> None:
        log_event(
            _logger,
            "bridge.conversion.failed",
            self._log_ctx,
            level=logging.ERROR,
            error=str(exc),
            error_code=classify_exception(exc).value,
        )
        await self._write(self._formatter.error(f"Chunk conversion failed: {exc}", CONVERSION_ERROR_CODE))

    # ------------------------------------------------------------------ termination

    async def finish(self) -> None:
        """Handle the end of the backend stream and write the terminal marker.

        Safe to call more than once; only the first call has an effect.
        """
        if self._terminating:
            return
        try:
            frames = list(self._decoder.close())
        except BridgeError as exc:
            await self.fail(exc)
            return
        self._terminating = True
        for frame in frames:
            if frame is not END_OF_STREAM:
                await self.handle_chunk(normalize_chunk(frame, self.source_format))

        phase = self._phase
        if isinstance(phase, _Streaming) and phase.window:
            window, phase.window = phase.window, ""
            await self._emit_text(window)
        elif isinstance(phase, _ToolCallPending):
            await self._resolve_pending(phase)
        phase = self._phase
        if isinstance(phase, _ToolCallSent):
            trailing = phase.trailing.extract_and_clear()
            if trailing.strip():
                await self._emit_text(trailing)
        if not self._finish_emitted:
            frame = self._formatter.finish(self._finish_reason or "stop", self._usage)
            if frame is not None:
                await self._queue.submit(lambda: self._write(frame))
            self._finish_emitted = True

        await self._queue.close()
        await self._write(self._formatter.terminal(reason=self._finish_reason, usage=self._usage))
        self._close_phase()
        normalized_log_event(
            _logger,
            "bridge.stream.closed",
            self._log_ctx,
            phase="finalize",
            emitted=bool(self.tool_calls),
            tokens=self._usage,
        )

    async def fail(self, exc: BaseException) -> None:
        """Terminate the stream after a backend failure.

        Text still held for detection is dropped; frames already queued are
        written, then an error frame and the terminal marker.
        """
        if self._terminating:
            return
        self._terminating = True
        code = classify_exception(exc)
        normalized_log_event(
            _logger,
            "bridge.stream.failed",
            self._log_ctx,
            phase="stream",
            error_code=code.value,
            emitted=bool(self.tool_calls),
            level=logging.ERROR,
            error=str(exc),
        )
        self._release_buffers()
        await self._queue.close()
        message = (exc.message if isinstance(exc, BridgeError) else str(exc)) or code.value
        await self._write(self._formatter.terminal(error=f"Backend stream failed: {message}"))
        self._close_phase()

    async def abort(self) -> None:
        """Stop after the client went away; nothing further is written."""
        self._sink_dead = True
        if not self._terminating:
            self._terminating = True
            log_event(_logger, "bridge.stream.aborted", self._log_ctx, level=logging.INFO)
        await self._queue.cancel()
        self._release_buffers()
        self._close_phase()

    def _release_buffers(self) -> None:
        phase = self._phase
        if isinstance(phase, _Streaming):
            phase.window = ""
        elif isinstance(phase, _ToolCallPending):
            phase.buffer.clear()
        elif isinstance(phase, _ToolCallSent):
            phase.trailing.clear()

    def _close_phase(self) -> None:
        if not isinstance(self._phase, _Closed):
            self._phase = _Closed(calls=self.tool_calls)


__all__ = ["BridgeState", "StreamBridge", "CONVERSION_ERROR_CODE"]
