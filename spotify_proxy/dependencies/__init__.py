"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_access_token_generator,
    get_authed_request_executor,
    get_credential_store,
    get_spotify_api_client,
    get_spotify_oauth_client,
    get_track_search_service,
)
from .config import get_app_settings

__all__ = [
    "get_access_token_generator",
    "get_app_settings",
    "get_authed_request_executor",
    "get_credential_store",
    "get_spotify_api_client",
    "get_spotify_oauth_client",
    "get_track_search_service",
]
