"""
Spotify Accounts OAuth utilities.

These helpers build the consent URL and perform the token grants used by the
proxy: authorization code, refresh token, and client credentials.
"""

from __future__ import annotations

import asyncio
import base64
import time
from typing import Optional, Tuple
from urllib.parse import urlencode

import httpx
from fastapi import status

from spotify_proxy.core.config import OAuthSettings, SpotifySettings


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint returns an error."""


class SpotifyOAuthClient:
    """Build Spotify authorization URLs and exchange grants for tokens."""

    AUTH_BASE_URL = "https://accounts.spotify.com/authorize"
    TOKEN_URL = "https://accounts.spotify.com/api/token"

    # Renew the cached application token this long before Spotify expires it.
    _APP_TOKEN_MARGIN_SECONDS = 60

    def __init__(
        self,
        spotify_settings: SpotifySettings,
        oauth_settings: OAuthSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._spotify = spotify_settings
        self._oauth = oauth_settings
        self._transport = transport
        self._app_token: Optional[str] = None
        self._app_token_expires_at = 0.0
        self._app_token_lock = asyncio.Lock()

    def build_authorization_url(self, state: str) -> str:
        """Construct the Spotify consent URL."""
        params = {
            "response_type": "code",
            "client_id": self._spotify.client_id,
            "scope": " ".join(self._oauth.scopes),
            "redirect_uri": str(self._spotify.redirect_uri),
            "state": state,
        }
        return f"{self.AUTH_BASE_URL}?{urlencode(params)}"

    def _basic_auth_header(self) -> dict[str, str]:
        raw = f"{self._spotify.client_id}:{self._spotify.client_secret}"
        encoded = base64.b64encode(raw.encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {encoded}"}

    async def _request_token(self, form: dict[str, str]) -> dict:
        async with httpx.AsyncClient(
            timeout=self._spotify.http_timeout, transport=self._transport
        ) as client:
            response = await client.post(
                self.TOKEN_URL, data=form, headers=self._basic_auth_header()
            )

        if response.status_code != status.HTTP_200_OK:
            raise OAuthTokenExchangeError(response.text)
        try:
            payload = response.json()
        except ValueError as exc:
            raise OAuthTokenExchangeError("Spotify token endpoint returned invalid JSON.") from exc
        if not isinstance(payload, dict):
            raise OAuthTokenExchangeError("Unexpected token payload returned from Spotify.")
        return payload

    async def exchange_authorization_code(self, code: str) -> Tuple[str, str]:
        """
        Exchange an authorization code for tokens.

        Returns a tuple of (access_token, refresh_token).
        """
        payload = await self._request_token(
            {
                "code": code,
                "redirect_uri": str(self._spotify.redirect_uri),
                "grant_type": "authorization_code",
            }
        )
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        if not access_token or not refresh_token:
            raise OAuthTokenExchangeError("Incomplete token payload returned from Spotify.")
        return access_token, refresh_token

    async def refresh_token(self, refresh_token: str) -> str:
        """Obtain a new access token using a stored refresh token."""
        payload = await self._request_token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )
        access_token = payload.get("access_token")
        if not access_token:
            raise OAuthTokenExchangeError("Incomplete refresh payload returned from Spotify.")
        return access_token

    async def app_access_token(self) -> str:
        """Return an application token from the client-credentials grant."""
        async with self._app_token_lock:
            if self._app_token and time.monotonic() < self._app_token_expires_at:
                return self._app_token

            payload = await self._request_token({"grant_type": "client_credentials"})
            access_token = payload.get("access_token")
            expires_in = payload.get("expires_in")
            if not access_token or not expires_in:
                raise OAuthTokenExchangeError(
                    "Incomplete client credentials payload returned from Spotify."
                )
            self._app_token = access_token
            self._app_token_expires_at = (
                time.monotonic() + int(expires_in) - self._APP_TOKEN_MARGIN_SECONDS
            )
            return access_token


__all__ = ["OAuthTokenExchangeError", "SpotifyOAuthClient"]
