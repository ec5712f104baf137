"""Unified bridge error taxonomy public surface.

This module re-exports the one-class-per-file implementations under
``toolbridge.base.errors_parts`` to keep a stable import path.
"""

from .errors_parts.error_code import ErrorCode
from .errors_parts.bridge_error import BridgeError, BufferOverflowError
from .errors_parts.classification import classify_exception

__all__ = ["ErrorCode", "BridgeError", "BufferOverflowError", "classify_exception"]
