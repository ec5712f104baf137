"""Shared async HTTP client pool for backend requests.

Purpose:
    Reuse one ``httpx.AsyncClient`` per backend base URL so consecutive proxied
    requests share connection pools. Timeouts derive exclusively from
    :func:`get_timeout_config`.

External dependencies:
    - ``httpx`` for the async HTTP client.

Lifecycle & cleanup:
    - Clients are cached by ``base_url``. Async clients are bound to the event
      loop that created them, so the pool also records the loop and replaces a
      client created on a loop that has since closed.
    - The service closes all clients on shutdown via :func:`close_all_clients`.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Optional, Tuple

import httpx

from ..timeouts import get_timeout_config

_CLIENTS: Dict[str, Tuple[httpx.AsyncClient, asyncio.AbstractEventLoop]] = {}


def get_async_client(base_url: Optional[str]) -> httpx.AsyncClient:
    """Return a pooled ``httpx.AsyncClient`` for ``base_url``.

    Must be called from a running event loop.

    Parameters:
        base_url: Backend base URL; ``None`` groups clients without one.

    Returns:
        A reusable ``httpx.AsyncClient`` instance.
    """
    loop = asyncio.get_running_loop()
    key = base_url or ""
    cached = _CLIENTS.get(key)
    if cached is not None:
        client, owner = cached
        if owner is loop and not client.is_closed:
            return client
    timeout = get_timeout_config().as_httpx()
    client = httpx.AsyncClient(base_url=base_url, timeout=timeout) if base_url else httpx.AsyncClient(timeout=timeout)
    _CLIENTS[key] = (client, loop)
    return client


async def close_all_clients() -> None:
    """Close and clear all pooled clients owned by the running loop."""
    loop = asyncio.get_running_loop()
    for key, (client, owner) in list(_CLIENTS.items()):
        if owner is loop and not client.is_closed:
            await client.aclose()
        _CLIENTS.pop(key, None)


__all__ = ["get_async_client", "close_all_clients"]
