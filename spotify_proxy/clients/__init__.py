"""Expose constructed client wrappers."""

from .redis_store import RedisCredentialStore
from .spotify_api import SpotifyApiClient, UpstreamResponse
from .spotify_auth import OAuthTokenExchangeError, SpotifyOAuthClient

__all__ = [
    "OAuthTokenExchangeError",
    "RedisCredentialStore",
    "SpotifyApiClient",
    "SpotifyOAuthClient",
    "UpstreamResponse",
]
