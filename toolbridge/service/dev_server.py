from __future__ import annotations

import os

import uvicorn

from ..config import BridgeSettings


def main() -> None:
    """Start the proxy with uvicorn.

    Host and port come from the configuration layer (``TOOLBRIDGE_HOST`` /
    ``TOOLBRIDGE_PORT``, the config file or the defaults). Auto-reload is off
    unless ``TOOLBRIDGE_RELOAD`` is ``"true"``.
    """
    settings = BridgeSettings.from_config()
    reload_enabled = os.getenv("TOOLBRIDGE_RELOAD", "false").lower() == "true"
    uvicorn.run(
        "toolbridge.service.app:app",
        host=settings.host,
        port=settings.port,
        reload=reload_enabled,
    )


if __name__ == "__main__":
    main()
