"""Structured logging utilities for the bridge.

Every module obtains its logger through :func:`get_logger`, which returns a
child of the shared ``toolbridge`` logger. The shared logger owns one console
handler writing JSON lines to stderr; children propagate to it. The level is
taken from ``TOOLBRIDGE_LOG_LEVEL`` (default INFO).

Events are emitted with :func:`log_event` (one JSON object per line) or with
:func:`normalized_log_event`, which guarantees the presence of the canonical
keys ``structured``, ``phase``, ``emitted`` and ``tokens`` so stream lifecycle
events can be filtered uniformly.
"""
from __future__ import annotations

import contextlib
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Mapping, Optional

from .log_support import JsonFormatter, LogContext

BASE_LOGGER_NAME = "toolbridge"
LOG_LEVEL_ENV = "TOOLBRIDGE_LOG_LEVEL"

_BASE_LOGGER_ATTR = "_toolbridge_logger_initialized"
_CONSOLE_HANDLER_ATTR = "_toolbridge_console_handler"
_FILE_HANDLER_ATTR = "_toolbridge_file_handler"
_PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _parse_level(value: str | None, default: int = logging.INFO) -> int:
    """Parse a logging level name (case-insensitive), falling back to ``default``."""
    if not value:
        return default
    mapping = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARN": logging.WARNING,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    return mapping.get(value.strip().upper(), default)


def _make_formatter(json_mode: bool) -> logging.Formatter:
    return JsonFormatter() if json_mode else logging.Formatter(_PLAIN_FORMAT)


def _console_handler(level: int, json_mode: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(_make_formatter(json_mode))
    setattr(handler, _CONSOLE_HANDLER_ATTR, True)
    return handler


def _ensure_base_logger(json_mode: bool, level: int) -> logging.Logger:
    """Initialize (or refresh) and return the shared ``toolbridge`` logger."""
    logger = logging.getLogger(BASE_LOGGER_NAME)
    desired_level = _parse_level(os.getenv(LOG_LEVEL_ENV), default=level)
    if not getattr(logger, _BASE_LOGGER_ATTR, False):
        logger.setLevel(desired_level)
        logger.handlers[:] = [_console_handler(desired_level, json_mode)]
        logger.propagate = False
        setattr(logger, _BASE_LOGGER_ATTR, True)
        return logger

    if logger.level != desired_level:
        logger.setLevel(desired_level)
    for existing in list(logger.handlers):
        if not getattr(existing, _CONSOLE_HANDLER_ATTR, False):
            continue
        stream_obj = getattr(existing, "stream", None)
        # pytest's capsys swaps sys.stderr between tests; rebind to the live stream.
        if stream_obj is None or getattr(stream_obj, "closed", False) or stream_obj is not sys.stderr:
            logger.removeHandler(existing)
            with contextlib.suppress(Exception):
                existing.close()
            logger.addHandler(_console_handler(desired_level, json_mode))
            continue
        existing.setLevel(desired_level)
        if json_mode != isinstance(existing.formatter, JsonFormatter):
            existing.setFormatter(_make_formatter(json_mode))
    return logger


def get_logger(name: str = BASE_LOGGER_NAME, json_mode: bool = True, level: int = logging.INFO) -> logging.Logger:
    """Return the shared logger or one of its children.

    Parameters
    ----------
    name:
        Dotted logger name. Names outside the ``toolbridge`` namespace are
        still routed to the shared handler through propagation.
    json_mode:
        Use the JSON formatter for the console handler.
    level:
        Default level when ``TOOLBRIDGE_LOG_LEVEL`` is unset.
    """
    base_logger = _ensure_base_logger(json_mode=json_mode, level=level)
    if name == BASE_LOGGER_NAME:
        return base_logger
    logger = logging.getLogger(name)
    if not name.startswith(BASE_LOGGER_NAME + "."):
        logger.handlers[:] = [h for h in base_logger.handlers]
        logger.propagate = False
    logger.setLevel(logging.NOTSET if logger.propagate else base_logger.level)
    return logger


def configure_logger(
    *,
    level: int | str | None = None,
    file_path: Optional[str] = None,
    json_mode: bool = True,
) -> logging.Logger:
    """Reconfigure the shared logger at runtime.

    Parameters
    ----------
    level:
        Numeric level or level name. ``None`` keeps the current level.
    file_path:
        When given, attach (or retarget) a rotating file handler writing to
        this path. When ``None``, any file handler added by this function is
        removed.
    json_mode:
        Formatter choice for the file handler.

    Returns
    -------
    logging.Logger
        The shared ``toolbridge`` logger.
    """
    logger = get_logger(BASE_LOGGER_NAME, json_mode=json_mode)
    if level is not None:
        resolved = _parse_level(level, default=logger.level) if isinstance(level, str) else level
        logger.setLevel(resolved)
        for h in logger.handlers:
            h.setLevel(resolved)

    managed = [h for h in logger.handlers if getattr(h, _FILE_HANDLER_ATTR, False)]
    if file_path is None:
        for h in managed:
            logger.removeHandler(h)
            with contextlib.suppress(Exception):
                h.close()
        return logger

    abs_path = os.path.abspath(os.path.expanduser(file_path))
    os.makedirs(os.path.dirname(abs_path) or ".", exist_ok=True)
    existing: Optional[logging.Handler] = None
    for h in managed:
        if getattr(h, "baseFilename", None) == abs_path:
            existing = h
            continue
        logger.removeHandler(h)
        with contextlib.suppress(Exception):
            h.close()

    if existing is None:
        # 10MB x 5 backups
        existing = RotatingFileHandler(abs_path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
        setattr(existing, _FILE_HANDLER_ATTR, True)
        logger.addHandler(existing)
    existing.setFormatter(_make_formatter(json_mode))
    existing.setLevel(logger.level)
    return logger


def log_event(
    logger: logging.Logger,
    event: str,
    ctx: LogContext | None = None,
    *,
    level: int = logging.INFO,
    keep_none: bool = False,
    **fields: Any,
) -> None:
    """Emit one structured event as a JSON-encoded message.

    Parameters
    ----------
    logger:
        Logger obtained from :func:`get_logger`.
    event:
        Dotted event name, e.g. ``bridge.tool_call.emitted``.
    ctx:
        Stream context merged shallowly into the payload.
    level:
        Logging level of the record.
    keep_none:
        Preserve keys whose value is ``None`` instead of dropping them.
    **fields:
        JSON-serializable payload fields.
    """
    if not logger.isEnabledFor(level):
        return
    payload: Dict[str, Any] = {"event": event}
    if ctx:
        payload |= ctx.to_dict()
    if keep_none:
        payload.update(fields)
    else:
        payload.update({k: v for k, v in fields.items() if v is not None})
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))


REQUIRED_NORMALIZED_KEYS = (
    "structured",
    "phase",
    "error_code",
    "emitted",
    "tokens",
)


def _coerce_tokens(tokens: Any) -> Any:
    """Coerce usage information into a JSON-friendly mapping (or ``None``)."""
    if tokens is None:
        return None
    if isinstance(tokens, Mapping):
        return dict(tokens.items())
    return {"value": repr(tokens)}


def normalized_log_event(
    logger: logging.Logger,
    event: str,
    ctx: LogContext | None = None,
    *,
    phase: str,
    error_code: str | None = None,
    emitted: bool | None = None,
    tokens: Any = None,
    level: int = logging.INFO,
    **extra_fields: Any,
) -> None:
    """Emit a lifecycle event carrying the canonical normalized keys.

    ``error_code`` is omitted when ``None``; the other canonical keys are
    always present (``null`` when unknown). ``extra_fields`` never overwrite a
    canonical value.
    """
    base_fields: Dict[str, Any] = {
        "structured": True,
        "phase": phase,
        "emitted": emitted,
        "tokens": _coerce_tokens(tokens),
    }
    if error_code is not None:
        base_fields["error_code"] = error_code
    for k, v in extra_fields.items():
        if v is None or k in base_fields:
            continue
        base_fields[k] = v
    log_event(logger, event, ctx, level=level, keep_none=True, **base_fields)


__all__ = [
    "LogContext",
    "get_logger",
    "configure_logger",
    "log_event",
    "normalized_log_event",
    "REQUIRED_NORMALIZED_KEYS",
]
