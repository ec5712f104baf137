"""Structured logging context object for bridge events.

:class:`LogContext` carries the fields shared by every event of one proxied
stream (wire formats, model, request id) and renders them with ``to_dict``,
merging ``extra`` and pruning ``None`` values.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional


@dataclass
class LogContext:
    """Structured context for bridge logging events."""

    source_format: Optional[str] = None
    target_format: Optional[str] = None
    model: Optional[str] = None
    request_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        extra = data.pop("extra", {}) or {}
        data.update({k: v for k, v in extra.items() if v is not None})
        return {k: v for k, v in data.items() if v is not None}


__all__ = ["LogContext"]
