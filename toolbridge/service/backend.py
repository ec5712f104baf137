"""Streaming requests to the configured backend.

:func:`stream_backend` opens one streaming POST on the pooled
``httpx.AsyncClient`` and yields the raw response body as it arrives. A
backend that answers with an HTTP error status is reported as a
:class:`BridgeError` before any byte is yielded, so the caller can turn it
into a protocol-shaped error for the client.
"""
from __future__ import annotations

from typing import Any, AsyncIterator, Dict

import httpx

from ..base.errors import BridgeError, ErrorCode, classify_exception
from ..base.http import get_async_client
from ..base.logging import get_logger, log_event
from ..config import BridgeSettings

_logger = get_logger("toolbridge.service.backend")


def _headers(settings: BridgeSettings) -> Dict[str, str]:
    headers = {"Accept": "application/x-ndjson, text/event-stream"}
    if settings.backend_api_key:
        headers["Authorization"] = f"Bearer {settings.backend_api_key}"
    return headers


async def stream_backend(settings: BridgeSettings, payload: Dict[str, Any]) -> AsyncIterator[bytes]:
    """Yield the backend's streamed response body.

    Raises:
        BridgeError: when the backend answers with a status of 400 or above;
            the code is derived from the status.
        httpx.HTTPError: transport failures while connecting or reading.
    """
    client = get_async_client(settings.backend_base_url)
    async with client.stream(
        "POST", settings.backend_chat_path, json=payload, headers=_headers(settings)
    ) as response:
        if response.status_code >= 400:
            body = (await response.aread()).decode("utf-8", errors="replace")
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                code = classify_exception(exc)
                log_event(
                    _logger,
                    "backend.http_error",
                    status=response.status_code,
                    error_code=code.value,
                    body=body[:500],
                )
                raise BridgeError(
                    code=code,
                    message=f"backend returned HTTP {response.status_code}: {body[:200]}",
                    stage="backend",
                    source_format=settings.backend_format,
                    retryable=code in (ErrorCode.RATE_LIMIT, ErrorCode.UNAVAILABLE, ErrorCode.TIMEOUT),
                    raw=exc,
                ) from exc
        async for data in response.aiter_bytes():
            if data:
                yield data


__all__ = ["stream_backend"]
