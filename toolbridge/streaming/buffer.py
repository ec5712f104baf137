"""Size-capped text accumulator.

The stream bridge keeps candidate tool-call text here while waiting for the
closing tag. The buffer never truncates: an append that would exceed the
limit raises :class:`BufferOverflowError` and leaves the content untouched,
so the caller can flush everything it holds as plain text.
"""
from __future__ import annotations

from ..base.errors import BufferOverflowError


class BoundedBuffer:
    """Append-only text buffer with a hard size limit.

    Args:
        max_size: Maximum number of characters held at any time.
        name: Label used in overflow errors and log events.
    """

    def __init__(self, max_size: int, name: str = "tool_call") -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.name = name
        self._parts: list[str] = []
        self._size = 0

    @property
    def size(self) -> int:
        return self._size

    def __len__(self) -> int:
        return self._size

    def can_append(self, text: str) -> bool:
        return self._size + len(text) <= self.max_size

    def append(self, text: str) -> None:
        """Append ``text`` or raise without changing the buffer."""
        if not self.can_append(text):
            raise BufferOverflowError(self.name, self.max_size, self._size + len(text))
        if text:
            self._parts.append(text)
            self._size += len(text)

    def get_content(self) -> str:
        if len(self._parts) > 1:
            self._parts = ["".join(self._parts)]
        return self._parts[0] if self._parts else ""

    def has_content(self) -> bool:
        return self._size > 0

    def clear(self) -> None:
        self._parts.clear()
        self._size = 0

    def set_content(self, text: str) -> None:
        """Replace the content, e.g. to re-seed it with an unconsumed remainder."""
        if len(text) > self.max_size:
            raise BufferOverflowError(self.name, self.max_size, len(text))
        self._parts = [text] if text else []
        self._size = len(text)

    def extract_and_clear(self) -> str:
        content = self.get_content()
        self.clear()
        return content

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"BoundedBuffer(name={self.name!r}, size={self._size}, max_size={self.max_size})"


__all__ = ["BoundedBuffer"]
