"""
FastAPI application entrypoint for the Spotify credential proxy.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from spotify_proxy.api.routes import router as api_router
from spotify_proxy.core.config import get_settings
from spotify_proxy.core.logging import configure_logging
from spotify_proxy.dependencies import get_credential_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if get_credential_store.cache_info().currsize:
        await get_credential_store().close()


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Spotify Credential Proxy",
        version="0.1.0",
        description=(
            "Stores Spotify OAuth credentials behind opaque local tokens and "
            "proxies playlist and search calls with automatic token refresh."
        ),
        lifespan=lifespan,
    )
    app.include_router(api_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
