"""FastAPI dependency returning the cached application settings."""

from spotify_proxy.core.config import AppSettings, get_settings


def get_app_settings() -> AppSettings:
    return get_settings()


__all__ = ["get_app_settings"]
