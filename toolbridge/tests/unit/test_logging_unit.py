"""Unit coverage for structured logging utilities and helpers."""

from __future__ import annotations

import json
import logging

from toolbridge.base.log_support import JsonFormatter
from toolbridge.base.logging import (
    LogContext,
    configure_logger,
    get_logger,
    log_event,
    normalized_log_event,
)


def test_get_logger_env_overrides_level(monkeypatch, capsys):
    monkeypatch.setenv("TOOLBRIDGE_LOG_LEVEL", "ERROR")
    logger = get_logger(name="toolbridge.test", json_mode=True, level=logging.DEBUG)
    logger.info("hello")
    out = capsys.readouterr().err
    assert out == ""  # nosec B101 - asserts are appropriate in unit tests
    logger.error("fail")
    out = capsys.readouterr().err
    data = json.loads(out.strip())
    assert data["level"] == "ERROR"  # nosec B101 - asserts are appropriate in unit tests


def test_log_event_merges_context_and_drops_none(capsys):
    logger = get_logger(name="toolbridge.test.events")
    ctx = LogContext(source_format="openai", target_format="ollama", model="m", request_id="r1")
    log_event(logger, "bridge.tool_call.emitted", ctx, tools=["get_weather"], missing=None)
    data = json.loads(capsys.readouterr().err.strip())
    assert data["event"] == "bridge.tool_call.emitted"  # nosec B101
    assert data["source_format"] == "openai"  # nosec B101
    assert data["request_id"] == "r1"  # nosec B101
    assert data["tools"] == ["get_weather"]  # nosec B101
    assert "missing" not in data  # nosec B101


def test_normalized_log_event_includes_required_keys(capsys):
    logger = get_logger(name="toolbridge.test2", json_mode=True)
    ctx = LogContext(model="m", request_id="r1")
    normalized_log_event(
        logger,
        "bridge.stream.closed",
        ctx,
        phase="finalize",
        error_code=None,
        emitted=True,
        tokens={"prompt_tokens": 1, "completion_tokens": 2},
        extra_field=123,
    )
    data = json.loads(capsys.readouterr().err.strip())
    for k in ("structured", "phase", "emitted", "tokens"):
        assert k in data  # nosec B101 - asserts are fine in tests
    assert "error_code" not in data  # nosec B101
    assert data["phase"] == "finalize"  # nosec B101
    assert data["extra_field"] == 123  # nosec B101


def test_json_formatter_hoists_json_message():
    formatter = JsonFormatter()
    record = logging.LogRecord("toolbridge.x", logging.INFO, __file__, 1, json.dumps({"event": "e", "n": 1}), None, None)
    data = json.loads(formatter.format(record))
    assert data["event"] == "e"  # nosec B101
    assert data["n"] == 1  # nosec B101
    assert "msg" not in data  # nosec B101


def test_json_formatter_keeps_plain_message():
    formatter = JsonFormatter()
    record = logging.LogRecord("toolbridge.x", logging.WARNING, __file__, 1, "plain %s", ("text",), None)
    data = json.loads(formatter.format(record))
    assert data["msg"] == "plain text"  # nosec B101
    assert data["level"] == "WARNING"  # nosec B101


def test_configure_logger_file_handler_roundtrip(tmp_path):
    path = tmp_path / "logs" / "bridge.log"
    logger = configure_logger(level="INFO", file_path=str(path))
    try:
        log_event(logger, "file.event", value=1)
        for h in logger.handlers:
            h.flush()
        lines = path.read_text(encoding="utf-8").strip().splitlines()
        assert json.loads(lines[-1])["event"] == "file.event"  # nosec B101
    finally:
        configure_logger(file_path=None)
    assert not any(getattr(h, "baseFilename", None) for h in logger.handlers)  # nosec B101
