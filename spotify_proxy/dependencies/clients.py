"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from spotify_proxy.clients import RedisCredentialStore, SpotifyApiClient, SpotifyOAuthClient
from spotify_proxy.core.config import get_settings
from spotify_proxy.services import (
    AccessTokenGenerator,
    AuthedRequestExecutor,
    TrackSearchService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_credential_store() -> RedisCredentialStore:
    """Provide the shared Redis credential store."""
    settings = _settings()
    return RedisCredentialStore.from_url(
        settings.redis.url,
        key_prefix=settings.redis.key_prefix,
        encryption_secret=settings.security.token_encryption_secret,
    )


@lru_cache()
def get_spotify_oauth_client() -> SpotifyOAuthClient:
    """Create a singleton Spotify OAuth client."""
    settings = _settings()
    return SpotifyOAuthClient(settings.spotify, settings.oauth)


@lru_cache()
def get_spotify_api_client() -> SpotifyApiClient:
    """Provide the Spotify Web API client."""
    return SpotifyApiClient(timeout=_settings().spotify.http_timeout)


def get_access_token_generator() -> AccessTokenGenerator:
    """Build a generator checking uniqueness against the credential store."""
    return AccessTokenGenerator(
        get_credential_store(),
        max_attempts=_settings().security.access_token_max_attempts,
    )


def get_authed_request_executor() -> AuthedRequestExecutor:
    """Build an executor wired to the shared store and Spotify clients."""
    return AuthedRequestExecutor(
        store=get_credential_store(),
        api_client=get_spotify_api_client(),
        oauth_client=get_spotify_oauth_client(),
    )


def get_track_search_service() -> TrackSearchService:
    """Build a track search service for the configured market."""
    return TrackSearchService(
        api_client=get_spotify_api_client(),
        oauth_client=get_spotify_oauth_client(),
        market=_settings().spotify.market,
    )


__all__ = [
    "get_access_token_generator",
    "get_authed_request_executor",
    "get_credential_store",
    "get_spotify_api_client",
    "get_spotify_oauth_client",
    "get_track_search_service",
]
