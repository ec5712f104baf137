"""Incremental decoders for backend response bodies.

Transport reads split the body at arbitrary byte offsets, including inside a
multi-byte UTF-8 sequence or a JSON line. The decoders here buffer the
unfinished tail and yield only complete frames:

- a ``dict`` for every decoded JSON payload;
- :data:`END_OF_STREAM` for ``data: [DONE]`` (event-stream only; for
  line-JSON the final ``done: true`` object is itself a payload).

Undecodable lines are logged at warning level and skipped. An unterminated
line longer than ``max_pending`` characters, or an event whose joined
``data:`` lines exceed that size without a blank line, raises a
``BridgeError`` with ``ErrorCode.BUFFER_OVERFLOW``.
"""
from __future__ import annotations

import codecs
import json
import logging
from typing import Any, Dict, Iterator, List, Union

from ..base.errors import BridgeError, ErrorCode
from ..base.logging import get_logger, log_event
from ..config.defaults import BRIDGE_DEFAULT_MAX_STREAM_BUFFER_SIZE
from .chunk import WireFormat

_logger = get_logger("toolbridge.streaming.framing")


class _EndOfStream:
    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return "END_OF_STREAM"


END_OF_STREAM = _EndOfStream()

Frame = Union[Dict[str, Any], _EndOfStream]


class _LineDecoder:
    """Shared byte-to-line handling."""

    def __init__(self, max_pending: int = BRIDGE_DEFAULT_MAX_STREAM_BUFFER_SIZE) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self._max_pending = max_pending

    def _lines(self, data: Union[bytes, str], final: bool = False) -> List[str]:
        text = data if isinstance(data, str) else self._decoder.decode(data, final=final)
        self._pending += text
        if final:
            lines, self._pending = self._pending.split("\n"), ""
        else:
            *lines, self._pending = self._pending.split("\n")
            if len(self._pending) > self._max_pending:
                raise self._overflow("unterminated backend line")
        return [line.rstrip("\r") for line in lines]

    def _overflow(self, what: str) -> BridgeError:
        return BridgeError(
            code=ErrorCode.BUFFER_OVERFLOW,
            message=f"{what} exceeds {self._max_pending} characters",
            stage="framing",
        )

    def _load(self, body: str) -> Dict[str, Any] | None:
        try:
            value = json.loads(body)
        except ValueError:
            log_event(_logger, "framing.invalid_json", level=logging.WARNING, line=body[:200])
            return None
        if not isinstance(value, dict):
            log_event(_logger, "framing.unexpected_payload", level=logging.WARNING, line=body[:200])
            return None
        return value

    def feed(self, data: Union[bytes, str]) -> Iterator[Frame]:
        for line in self._lines(data):
            yield from self._frame(line)

    def close(self) -> Iterator[Frame]:
        """Flush a final line that was not newline-terminated."""
        for line in self._lines(b"", final=True):
            yield from self._frame(line)

    def _frame(self, line: str) -> Iterator[Frame]:  # pragma: no cover - overridden
        raise NotImplementedError


class SseDecoder(_LineDecoder):
    """Decoder for ``text/event-stream`` bodies.

    Multi-line ``data:`` fields of one event are joined with ``\\n`` as the
    event-stream format prescribes; comments and other fields are ignored.
    """

    def __init__(self, max_pending: int = BRIDGE_DEFAULT_MAX_STREAM_BUFFER_SIZE) -> None:
        super().__init__(max_pending)
        self._data: List[str] = []
        self._data_size = 0

    def _frame(self, line: str) -> Iterator[Frame]:
        if line == "":
            yield from self._dispatch()
            return
        if line.startswith(":"):
            return
        field_name, _, value = line.partition(":")
        if field_name != "data":
            return
        value = value[1:] if value.startswith(" ") else value
        self._data_size += len(value) + (1 if self._data else 0)
        if self._data_size > self._max_pending:
            raise self._overflow("unterminated backend event")
        self._data.append(value)

    def _dispatch(self) -> Iterator[Frame]:
        if not self._data:
            return
        body = "\n".join(self._data).strip()
        self._data = []
        self._data_size = 0
        if body == "[DONE]":
            yield END_OF_STREAM
            return
        if body:
            payload = self._load(body)
            if payload is not None:
                yield payload

    def close(self) -> Iterator[Frame]:
        yield from super().close()
        yield from self._dispatch()


class NdjsonDecoder(_LineDecoder):
    """Decoder for ``application/x-ndjson`` bodies."""

    def _frame(self, line: str) -> Iterator[Frame]:
        body = line.strip()
        if not body:
            return
        # some servers wrap line-JSON in event-stream framing
        if body.startswith("data:"):
            body = body[5:].strip()
            if body == "[DONE]":
                yield END_OF_STREAM
                return
        payload = self._load(body)
        if payload is not None:
            yield payload


def decoder_for(fmt: WireFormat, max_pending: int = BRIDGE_DEFAULT_MAX_STREAM_BUFFER_SIZE) -> _LineDecoder:
    return SseDecoder(max_pending) if fmt is WireFormat.OPENAI else NdjsonDecoder(max_pending)


__all__ = ["END_OF_STREAM", "Frame", "SseDecoder", "NdjsonDecoder", "decoder_for"]
