"""Errors parts package public surface.

Re-exports individual error taxonomy components for optional direct imports.
Prefer importing from `toolbridge.base.errors` for the stable surface.
"""

from .error_code import ErrorCode
from .bridge_error import BridgeError, BufferOverflowError
from .classification import classify_exception

__all__ = ["ErrorCode", "BridgeError", "BufferOverflowError", "classify_exception"]
