"""
Authenticated Spotify requests on behalf of a local access token.

The executor resolves the Spotify credentials behind a local token, sends the
request, and when Spotify answers 401 it refreshes the access token, persists
it, and retries once. Refreshing is reactive only; token expiry is never
tracked ahead of time.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, Union

import httpx
from fastapi import status
from redis.exceptions import RedisError

from spotify_proxy.clients.spotify_api import SpotifyApiClient, UpstreamResponse
from spotify_proxy.clients.spotify_auth import OAuthTokenExchangeError, SpotifyOAuthClient
from spotify_proxy.models import CredentialRecord
from spotify_proxy.services.access_tokens import is_well_formed_token
from spotify_proxy.services.errors import (
    CredentialStoreError,
    InvalidTokenError,
    UpstreamAuthFailedError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

PathBuilder = Callable[[CredentialRecord], str]


class AuthedRequestExecutor:
    """Run Spotify Web API calls with a single refresh-and-retry on 401."""

    def __init__(
        self,
        store: Any,
        api_client: SpotifyApiClient,
        oauth_client: SpotifyOAuthClient,
    ) -> None:
        self._store = store
        self._api = api_client
        self._oauth = oauth_client

    async def resolve(self, local_token: Optional[str]) -> CredentialRecord:
        """Look up the credentials for ``local_token`` without calling Spotify."""
        if not is_well_formed_token(local_token):
            raise InvalidTokenError("Invalid or missing access_token")
        try:
            credentials = await self._store.get(local_token)
        except RedisError as exc:
            logger.warning("Credential store read failed: %s", exc)
            raise CredentialStoreError("Credential store unavailable") from exc
        if credentials is None or not credentials.access_token:
            raise InvalidTokenError("Invalid or missing access_token")
        return credentials

    async def execute(
        self,
        local_token: Optional[str],
        method: str,
        path: Union[str, PathBuilder],
        *,
        params: Optional[Mapping[str, Any]] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> UpstreamResponse:
        """
        Send an authenticated request and return Spotify's response verbatim.

        Raises ``InvalidTokenError`` before any network call when the token is
        unknown, ``UpstreamAuthFailedError`` when the refresh fails or the
        retried call is rejected again, ``UpstreamError`` on transport
        failures and ``CredentialStoreError`` when the store is unreachable.

        ``path`` may be a callable receiving the stored credentials, for
        paths that embed the Spotify user id.
        """
        credentials = await self.resolve(local_token)
        if callable(path):
            path = path(credentials)
        response = await self._send(credentials, method, path, params=params, data=data)
        if response.status_code != status.HTTP_401_UNAUTHORIZED:
            return response

        credentials = await self.refresh(local_token, credentials)
        response = await self._send(credentials, method, path, params=params, data=data)
        if response.status_code == status.HTTP_401_UNAUTHORIZED:
            logger.warning(
                "Spotify rejected refreshed credentials for token %s...", local_token[:8]
            )
            raise UpstreamAuthFailedError("Spotify rejected refreshed credentials")
        return response

    async def refresh(
        self, local_token: str, credentials: CredentialRecord
    ) -> CredentialRecord:
        """Refresh the access token and persist it, keeping the refresh token."""
        logger.info("Refreshing Spotify access token for token %s...", local_token[:8])
        try:
            access_token = await self._oauth.refresh_token(credentials.refresh_token)
        except (OAuthTokenExchangeError, httpx.HTTPError) as exc:
            logger.warning("Spotify token refresh failed: %s", exc)
            raise UpstreamAuthFailedError("Spotify token refresh failed") from exc

        refreshed = credentials.with_access_token(access_token)
        try:
            await self._store.put(local_token, refreshed)
        except RedisError as exc:
            logger.warning("Credential store write failed: %s", exc)
            raise CredentialStoreError("Credential store unavailable") from exc
        return refreshed

    async def _send(
        self,
        credentials: CredentialRecord,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]],
        data: Optional[Mapping[str, Any]],
    ) -> UpstreamResponse:
        try:
            return await self._api.request(
                method,
                path,
                access_token=credentials.access_token,
                params=params,
                data=data,
            )
        except httpx.HTTPError as exc:
            logger.warning("Spotify request %s %s failed: %s", method, path, exc)
            raise UpstreamError(
                "Spotify request failed", error_info={"message": str(exc)}
            ) from exc


__all__ = ["AuthedRequestExecutor"]
