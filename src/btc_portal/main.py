"""Application entry point for the portal server."""

from __future__ import annotations

import os

import uvicorn

from btc_portal.config.settings import AppConfig


def main() -> None:
    """Start the portal server on the configured host and port."""
    config = AppConfig()
    reload = os.getenv("BTCPORTAL_RELOAD", "false").lower() in ("1", "true", "yes")
    uvicorn.run(
        "btc_portal.api.app:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
        reload=reload,
        log_level="debug" if config.debug else "info",
    )


if __name__ == "__main__":
    main()
