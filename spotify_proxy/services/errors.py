"""Failures raised by the proxy services and translated by the route layer."""

from __future__ import annotations

from typing import Any


class ProxyError(Exception):
    """Base class for errors reported back to API clients."""


class InvalidTokenError(ProxyError):
    """The local access token is missing, malformed, or unknown."""


class UpstreamAuthFailedError(ProxyError):
    """Spotify rejected the credentials even after a refresh attempt."""


class CredentialStoreError(ProxyError):
    """The credential store could not be read or written."""


class UpstreamError(ProxyError):
    """Spotify failed for a reason other than authorization."""

    def __init__(self, message: str, *, error_info: Any = None) -> None:
        super().__init__(message)
        self.error_info = error_info


class EmptyQueryError(ProxyError):
    """Search input normalized to an empty query."""


class TrackNotFoundError(ProxyError):
    """No usable track matched the search query."""

    def __init__(self, message: str, *, track: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.track = track


class TokenGenerationExhaustedError(ProxyError):
    """Every generated access token collided with an existing one."""


class StateMismatchError(ProxyError):
    """The OAuth state returned by Spotify does not match the cookie."""


__all__ = [
    "CredentialStoreError",
    "EmptyQueryError",
    "InvalidTokenError",
    "ProxyError",
    "StateMismatchError",
    "TokenGenerationExhaustedError",
    "TrackNotFoundError",
    "UpstreamAuthFailedError",
    "UpstreamError",
]
