"""Destinations for the frames a stream bridge produces.

A sink is anything with an awaitable ``write(str)`` and a ``closed`` flag.
:class:`QueueSink` hands frames to an HTTP response body through a bounded
queue: when the client reads slowly the queue fills, ``write`` waits, and the
wait propagates back to the reader of the backend stream.
"""
from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Protocol, runtime_checkable


class SinkClosedError(RuntimeError):
    """Raised when writing to a sink whose consumer has gone away."""


@runtime_checkable
class StreamSink(Protocol):
    closed: bool

    async def write(self, data: str) -> None:
        ...


_EOF = object()


class QueueSink:
    """Bounded async queue consumed by iterating the sink.

    Args:
        maxsize: Number of frames buffered before ``write`` waits.
    """

    def __init__(self, maxsize: int = 64) -> None:
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False
        self._eof_sent = False

    async def write(self, data: str) -> None:
        if self.closed:
            raise SinkClosedError("stream consumer is gone")
        await self._queue.put(data)

    async def close(self) -> None:
        """Signal end of output to the consumer; later writes fail."""
        if self._eof_sent:
            return
        self._eof_sent = True
        if self.closed:
            # nobody is left to read the marker
            return
        await self._queue.put(_EOF)
        self.closed = True

    def disconnect(self) -> None:
        """Mark the consumer as gone (client disconnect)."""
        self.closed = True

    async def __aiter__(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _EOF:
                return
            yield item


class MemorySink:
    """Collects frames in a list; used by tests and offline conversions."""

    def __init__(self) -> None:
        self.frames: List[str] = []
        self.closed = False

    async def write(self, data: str) -> None:
        if self.closed:
            raise SinkClosedError("sink is closed")
        self.frames.append(data)

    @property
    def text(self) -> str:
        return "".join(self.frames)


__all__ = ["StreamSink", "SinkClosedError", "QueueSink", "MemorySink"]
