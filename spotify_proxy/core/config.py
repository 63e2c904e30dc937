"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app and the operator scripts
share a consistent configuration surface.
"""

from functools import lru_cache
from typing import Annotated, Optional

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_ENV = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


class SpotifySettings(BaseSettings):
    """Configuration required for interacting with the Spotify APIs."""

    model_config = _ENV

    client_id: str = Field(..., validation_alias="SPOTIFY_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="SPOTIFY_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="CALLBACK_URI")
    market: str = Field("US", validation_alias="SPOTIFY_MARKET")
    http_timeout: float = Field(
        10.0,
        validation_alias="SPOTIFY_HTTP_TIMEOUT",
        description="Timeout in seconds applied to every upstream call.",
    )


class RedisSettings(BaseSettings):
    """Location of the credential store."""

    model_config = _ENV

    url: str = Field("redis://localhost:6379/0", validation_alias="REDIS_URL")
    key_prefix: str = Field("spotify-access-token-", validation_alias="REDIS_KEY_PREFIX")


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = _ENV

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "When set, Spotify tokens are encrypted before being written to Redis."
        ),
    )
    access_token_max_attempts: int = Field(
        5,
        ge=1,
        validation_alias="ACCESS_TOKEN_MAX_ATTEMPTS",
        description="Attempts made to find an unused local access token.",
    )


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = _ENV

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (
            "user-read-private",
            "user-read-email",
            "playlist-modify-private",
            "playlist-modify-public",
            "playlist-read-private",
        ),
        validation_alias="OAUTH_SCOPES",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = _ENV

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL that OAuth callbacks redirect back to.",
    )
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "OAuthSettings",
    "RedisSettings",
    "SecuritySettings",
    "SpotifySettings",
    "get_settings",
]
