"""
Best-match track search.

Free-text artist/title input (often a YouTube video title) is reduced to a
search query, sent to Spotify, and every candidate is scored by edit distance
against the query to pick the closest track.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Iterable, Optional

import httpx
from fastapi import status
from rapidfuzz.distance import Levenshtein

from spotify_proxy.clients.spotify_api import SpotifyApiClient
from spotify_proxy.clients.spotify_auth import OAuthTokenExchangeError, SpotifyOAuthClient
from spotify_proxy.services.errors import EmptyQueryError, TrackNotFoundError, UpstreamError

logger = logging.getLogger(__name__)

_NOISE_PATTERNS = (
    re.compile(r"[()\[\]<>]"),
    # Spotify finds "M.I.A." as "mia" but not as "m i a".
    re.compile(r"\."),
    re.compile(r"\bf(ea)?t(uring)?\b"),
    re.compile(r"official( music)?( video)?"),
    re.compile(r"\blyrics?( video)?\b"),
    re.compile(r"\bh[qd]\b"),
    re.compile(r"\boriginal mix\b"),
)


def normalize_query(text: str) -> str:
    """Lower-case ``text`` and strip video-title noise until nothing changes."""
    text = text.lower()
    previous = None
    while text != previous:
        previous = text
        for pattern in _NOISE_PATTERNS:
            text = pattern.sub("", text)
        text = " ".join(text.split())
    return text


def build_query(artist: Optional[str], title: Optional[str]) -> str:
    """Join whichever of ``artist`` and ``title`` are present and normalize."""
    return normalize_query(" ".join(part for part in (artist, title) if part))


def _artist_combinations(track: dict[str, Any]) -> list[str]:
    names = [artist.get("name") or "" for artist in track.get("artists") or []]
    return [*names, " ".join(names)]


def select_best_match(
    query: str, tracks: Iterable[dict[str, Any]]
) -> Optional[dict[str, Any]]:
    """
    Return the track whose artist/title string is closest to ``query``.

    Each track is compared once per individual artist and once with all of its
    artists joined; the first track reaching the lowest distance wins.
    """
    best_track = None
    best_distance = math.inf
    for track in tracks:
        for artists in _artist_combinations(track):
            candidate = build_query(artists, track.get("name"))
            distance = Levenshtein.distance(candidate, query)
            if distance < best_distance:
                best_distance = distance
                best_track = track
    return best_track


class TrackSearchService:
    """Find the Spotify track best matching an artist and title."""

    def __init__(
        self,
        api_client: SpotifyApiClient,
        oauth_client: SpotifyOAuthClient,
        *,
        market: str = "US",
        limit: int = 10,
    ) -> None:
        self._api = api_client
        self._oauth = oauth_client
        self._market = market
        self._limit = limit

    async def search(
        self, artist: Optional[str] = None, title: Optional[str] = None
    ) -> dict[str, Any]:
        query = build_query(artist, title)
        if not query:
            raise EmptyQueryError("Bad query")

        params = {
            "type": "track",
            "market": self._market,
            "q": query,
            "limit": self._limit,
            "offset": 0,
        }
        try:
            app_token = await self._oauth.app_access_token()
            response = await self._api.request(
                "GET", "/search", access_token=app_token, params=params
            )
        except (OAuthTokenExchangeError, httpx.HTTPError) as exc:
            logger.warning("Spotify search for %r failed: %s", query, exc)
            raise UpstreamError("Spotify error", error_info={"message": str(exc)}) from exc

        if response.status_code != status.HTTP_200_OK:
            raise UpstreamError("Spotify error", error_info=response.error_info)

        body = response.body if isinstance(response.body, dict) else {}
        tracks = (body.get("tracks") or {}).get("items") or []
        best_track = select_best_match(query, tracks)
        if not best_track or not best_track.get("id"):
            raise TrackNotFoundError("Song not found", track=best_track)
        return best_track


__all__ = [
    "TrackSearchService",
    "build_query",
    "normalize_query",
    "select_best_match",
]
