"""Per-stream FIFO of asynchronous work items.

Chunk handling must not wait for earlier output to be written, yet output has
to reach the client in arrival order. :class:`OrderedTaskQueue` runs submitted
coroutine factories one at a time on a single worker task, in submission
order. ``submit`` returns as soon as the item is queued; it only waits when
the queue is full, which propagates client back-pressure to the reader of the
backend stream.

A failing item is reported to ``on_error`` and the queue continues with the
next one.
"""
from __future__ import annotations

import asyncio
import contextlib
from typing import Awaitable, Callable, Optional

WorkItem = Callable[[], Awaitable[None]]
ErrorHandler = Callable[[BaseException], Awaitable[None]]

_STOP = object()


class OrderedTaskQueue:
    """Run work items sequentially in FIFO order on one worker task.

    Args:
        maxsize: Queue capacity; ``0`` means unbounded.
        on_error: Awaited with the exception of a failing item.
    """

    def __init__(self, maxsize: int = 0, on_error: Optional[ErrorHandler] = None) -> None:
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._on_error = on_error
        self._worker: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_worker(self) -> None:
        if self._worker is None:
            self._worker = asyncio.get_running_loop().create_task(self._run())

    async def submit(self, item: WorkItem) -> None:
        """Queue ``item``; items submitted after :meth:`close` are dropped."""
        if self._closed:
            return
        self._ensure_worker()
        await self._queue.put(item)

    async def drain(self) -> None:
        """Wait until every item submitted so far has finished."""
        if self._worker is None:
            return
        await self._queue.join()

    async def close(self) -> None:
        """Drain outstanding items and stop the worker."""
        if self._closed:
            return
        self._closed = True
        if self._worker is None:
            return
        await self._queue.put(_STOP)
        await self._worker

    async def cancel(self) -> None:
        """Stop immediately, discarding queued items."""
        self._closed = True
        if self._worker is None:
            return
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is _STOP:
                    return
                try:
                    await item()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:  # noqa: BLE001 - reported to the owner
                    if self._on_error is not None:
                        await self._on_error(exc)
            finally:
                self._queue.task_done()


__all__ = ["OrderedTaskQueue", "WorkItem"]
