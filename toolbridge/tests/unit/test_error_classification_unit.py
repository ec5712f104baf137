"""Unit tests for exception classification into ErrorCode values."""

from __future__ import annotations

import asyncio
import types

import httpx
import pytest

from toolbridge.base.errors import BridgeError, ErrorCode, classify_exception
from toolbridge.base.errors_parts.classification import _extract_status


def _status_exc(status: int) -> Exception:
    exc = Exception("boom")
    exc.response = types.SimpleNamespace(status_code=status)  # type: ignore[attr-defined]
    return exc


def test_bridge_error_passthrough():
    err = BridgeError(code=ErrorCode.PARSE_FAILURE, message="bad xml", stage="parse")
    assert classify_exception(err) is ErrorCode.PARSE_FAILURE  # nosec B101 - asserts are appropriate in unit tests


def test_bridge_error_str_mentions_route_and_code():
    err = BridgeError(
        code=ErrorCode.TRANSPORT,
        message="reset",
        stage="backend",
        source_format="openai",
        target_format="ollama",
    )
    text = str(err)
    assert "backend[openai->ollama]" in text  # nosec B101
    assert "transport" in text  # nosec B101


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (400, ErrorCode.VALIDATION),
        (401, ErrorCode.AUTH),
        (404, ErrorCode.NOT_FOUND),
        (429, ErrorCode.RATE_LIMIT),
        (500, ErrorCode.SERVER_ERROR),
        (502, ErrorCode.TRANSPORT),
        (503, ErrorCode.UNAVAILABLE),
        (504, ErrorCode.TIMEOUT),
    ],
)
def test_http_status_mapping(status, expected):
    assert classify_exception(_status_exc(status)) is expected  # nosec B101


def test_extract_status_prefers_direct_attribute():
    exc = Exception("x")
    exc.status_code = 418  # type: ignore[attr-defined]
    assert _extract_status(exc) == 418  # nosec B101
    assert _extract_status(Exception("none")) is None  # nosec B101


def test_timeouts_and_cancellation():
    assert classify_exception(asyncio.TimeoutError()) is ErrorCode.TIMEOUT  # nosec B101
    assert classify_exception(httpx.ReadTimeout("slow")) is ErrorCode.TIMEOUT  # nosec B101
    assert classify_exception(asyncio.CancelledError()) is ErrorCode.CANCELLED  # nosec B101


def test_transport_errors():
    assert classify_exception(httpx.ConnectError("refused")) is ErrorCode.TRANSPORT  # nosec B101


def test_message_heuristics_and_unknown_fallback():
    assert classify_exception(RuntimeError("Rate limit exceeded")) is ErrorCode.RATE_LIMIT  # nosec B101
    assert classify_exception(RuntimeError("service unavailable")) is ErrorCode.UNAVAILABLE  # nosec B101
    assert classify_exception(RuntimeError("something odd")) is ErrorCode.UNKNOWN  # nosec B101
