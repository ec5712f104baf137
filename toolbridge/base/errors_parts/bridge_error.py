"""
Structured bridge error exception types.

Wraps failures raised while detecting, parsing, converting or transporting a
stream with a normalized `ErrorCode` for consistent handling and structured
logging.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .error_code import ErrorCode


@dataclass
class BridgeError(Exception):
    """Represents a structured bridge error with a normalized error code.

    Attributes:
        code: Normalized :class:`ErrorCode` classification for the failure.
        message: Human-readable error message suitable for logging and error frames.
        stage: Pipeline stage where the error originated (e.g. ``"convert"``).
        source_format: Wire format of the backend stream, when known.
        target_format: Wire format of the client stream, when known.
        retryable: Hint for upstream retry logic (not authoritative).
        raw: Optional original exception for diagnostics.
    """

    code: ErrorCode
    message: str
    stage: str = "stream"
    source_format: Optional[str] = None
    target_format: Optional[str] = None
    retryable: bool = False
    raw: Optional[Exception] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        """Return a compact string combining stage, formats, code, and message."""
        route = f"{self.source_format or '-'}->{self.target_format or '-'}"
        return f"{self.stage}[{route}] {self.code.value}: {self.message}"


class BufferOverflowError(BridgeError):
    """Raised by :class:`BoundedBuffer` when an append would exceed its limit."""

    def __init__(self, buffer_name: str, max_size: int, attempted_size: int) -> None:
        super().__init__(
            code=ErrorCode.BUFFER_OVERFLOW,
            message=(
                f"{buffer_name} buffer would grow to {attempted_size} characters "
                f"(limit {max_size})"
            ),
            stage="buffer",
        )
        self.buffer_name = buffer_name
        self.max_size = max_size
        self.attempted_size = attempted_size


__all__ = ["BridgeError", "BufferOverflowError"]
