"""Incremental tool-call detection."""

from .detector import (
    NAMESPACE_ALLOWANCE,
    close_dangling_end_tag,
    detect_tool_call,
    detection_window_size,
)
from .models import DetectionResult, PartialState

__all__ = [
    "NAMESPACE_ALLOWANCE",
    "DetectionResult",
    "PartialState",
    "close_dangling_end_tag",
    "detect_tool_call",
    "detection_window_size",
]
