"""
Normalized bridge error codes (taxonomy).

Defines the `ErrorCode` enumeration used by the parsers, the stream bridge and
the proxy service. Values are lowercase snake_case and are considered a stable
public contract for logging and error frames.
"""
from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Enumerated normalized error codes representing failure categories."""

    PARSE_FAILURE = "parse_failure"
    BUFFER_OVERFLOW = "buffer_overflow"
    CONVERSION = "conversion"
    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    VALIDATION = "validation"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    SERVER_ERROR = "server_error"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


__all__ = ["ErrorCode"]
