"""FastAPI application exposing the tool-call bridging proxy.

Endpoints
---------
``POST /v1/chat/completions``
    OpenAI-compatible streaming chat; the response is an event stream.
``POST /api/chat``
    Ollama-compatible streaming chat; the response is line-JSON.
``GET /api/health``
    Liveness probe.

Streaming model
---------------
Each request gets its own :class:`StreamBridge`. A background task reads the
backend response and feeds the bridge, which writes frames into a bounded
:class:`QueueSink`; the response body iterates that sink. A slow client fills
the sink and the backend reader waits. When the client disconnects the body
iterator stops, the reader task is cancelled and the bridge is aborted.

Fallback semantics
------------------
- Non-streaming requests are rejected with HTTP 400; there is no silent
  fallback to a buffered response.
- Backend failures (HTTP error status, transport errors) after the response
  has started become an error frame followed by the terminal marker.
"""
from __future__ import annotations

import asyncio
import uuid
from contextlib import suppress
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from ..base.dto import ToolDefinition, parse_tools
from ..base.http import close_all_clients
from ..base.logging import LogContext, get_logger, log_event
from ..config import BridgeSettings
from ..streaming import QueueSink, StreamBridge, WireFormat
from .backend import stream_backend
from .payloads import ChatBody, build_backend_payload, reinjection_policy

_logger = get_logger("toolbridge.service")


async def _pump(bridge: StreamBridge, sink: QueueSink, settings: BridgeSettings, payload: Dict[str, Any]) -> None:
    """Feed the backend response into ``bridge`` and terminate it exactly once."""
    try:
        async for data in stream_backend(settings, payload):
            await bridge.feed(data)
        await bridge.finish()
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # noqa: BLE001 - reported to the client as an error frame
        await bridge.fail(exc)
    finally:
        await sink.close()


def _parse_tools_or_400(body: ChatBody) -> list[ToolDefinition]:
    try:
        return parse_tools(body.tools)
    except ValidationError as e:
        detail = [{"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]} for err in e.errors()]
        raise HTTPException(status_code=400, detail=detail) from e


async def _proxy_stream(request: Request, body: ChatBody, client_format: WireFormat) -> StreamingResponse:
    settings: BridgeSettings = request.app.state.settings
    if not body.wants_stream(client_format):
        raise HTTPException(status_code=400, detail="Only streaming chat requests are supported")
    tools = _parse_tools_or_400(body)
    backend_format = WireFormat(settings.backend_format)
    payload = build_backend_payload(
        body.model_dump(exclude_none=True),
        tools,
        client_format,
        backend_format,
        reinjection_policy(settings),
    )

    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    sink = QueueSink(maxsize=settings.sink_maxsize)
    bridge = StreamBridge(
        backend_format,
        client_format,
        sink,
        tools,
        model=body.model,
        request_id=request_id,
        max_tool_call_buffer_size=settings.max_tool_call_buffer_size,
        max_stream_buffer_size=settings.max_stream_buffer_size,
        queue_maxsize=settings.queue_maxsize,
    )
    log_event(
        _logger,
        "service.request.accepted",
        LogContext(
            source_format=backend_format.value,
            target_format=client_format.value,
            model=body.model,
            request_id=request_id,
        ),
        tools=len(tools),
    )
    pump = asyncio.create_task(_pump(bridge, sink, settings, payload))

    async def body_iter() -> AsyncIterator[str]:
        try:
            async for frame in sink:
                yield frame
        finally:
            if not pump.done():
                sink.disconnect()
                pump.cancel()
                with suppress(asyncio.CancelledError):
                    await pump
                await bridge.abort()

    return StreamingResponse(body_iter(), media_type=bridge.media_type, headers=bridge.headers())


def create_app(settings: Optional[BridgeSettings] = None) -> FastAPI:
    """Build the proxy application.

    Parameters
    ----------
    settings:
        Explicit settings; read from configuration when omitted.
    """
    resolved = settings or BridgeSettings.from_config()
    application = FastAPI(title="Toolbridge", version="0.1.0")
    application.state.settings = resolved

    application.add_middleware(
        CORSMiddleware,
        allow_origins=list(resolved.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.on_event("shutdown")
    async def _close_backend_clients() -> None:
        await close_all_clients()

    @application.get("/api/health")
    def health() -> Dict[str, Any]:
        """Report that the proxy is running and which backend format it speaks."""
        return {"ok": True, "backend_format": resolved.backend_format}

    @application.post("/v1/chat/completions")
    async def openai_chat(body: ChatBody, request: Request) -> StreamingResponse:
        """Stream an OpenAI chat completion with XML tool calls re-encoded natively."""
        return await _proxy_stream(request, body, WireFormat.OPENAI)

    @application.post("/api/chat")
    async def ollama_chat(body: ChatBody, request: Request) -> StreamingResponse:
        """Stream an Ollama chat response with XML tool calls re-encoded natively."""
        return await _proxy_stream(request, body, WireFormat.OLLAMA)

    return application


app = create_app()


__all__ = ["app", "create_app"]
