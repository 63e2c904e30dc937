"""Thin wrapper over the Spotify Web API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx


@dataclass(frozen=True)
class UpstreamResponse:
    """Status code and decoded body of a Spotify Web API call."""

    status_code: int
    body: Any

    @property
    def error_info(self) -> Any:
        if isinstance(self.body, dict):
            return self.body.get("error")
        return None


class SpotifyApiClient:
    """Issue bearer-authenticated requests against the Spotify Web API."""

    BASE_URL = "https://api.spotify.com/v1"

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def request(
        self,
        method: str,
        path: str,
        *,
        access_token: str,
        params: Optional[Mapping[str, Any]] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> UpstreamResponse:
        """
        Send ``method`` to ``path`` (relative to the API root).

        Transport failures and timeouts propagate as ``httpx.HTTPError``; any
        HTTP status, including errors, is returned to the caller.
        """
        async with httpx.AsyncClient(
            base_url=self.BASE_URL, timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.request(
                method.upper(),
                path,
                params=params,
                data=data,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        return UpstreamResponse(status_code=response.status_code, body=_decode(response))

    async def get_current_user(self, access_token: str) -> UpstreamResponse:
        return await self.request("GET", "/me", access_token=access_token)


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


__all__ = ["SpotifyApiClient", "UpstreamResponse"]
