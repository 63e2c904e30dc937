"""
FastAPI routes for the Spotify credential proxy.
"""

from __future__ import annotations

import logging
import secrets
import string
from http import HTTPStatus
from typing import Annotated, Any, Optional
from urllib.parse import quote, urlencode

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from redis.exceptions import RedisError

from spotify_proxy.clients.spotify_auth import OAuthTokenExchangeError
from spotify_proxy.dependencies import (
    get_access_token_generator,
    get_app_settings,
    get_authed_request_executor,
    get_credential_store,
    get_spotify_api_client,
    get_spotify_oauth_client,
    get_track_search_service,
)
from spotify_proxy.models import CredentialRecord
from spotify_proxy.schemas import error_envelope
from spotify_proxy.services.access_tokens import is_well_formed_token
from spotify_proxy.services.errors import (
    CredentialStoreError,
    EmptyQueryError,
    InvalidTokenError,
    StateMismatchError,
    TokenGenerationExhaustedError,
    TrackNotFoundError,
    UpstreamAuthFailedError,
    UpstreamError,
)

router = APIRouter()
logger = logging.getLogger(__name__)

STATE_COOKIE = "spotify_auth_state"
ACCESS_TOKEN_COOKIE = "access_token"

_STATE_ALPHABET = string.ascii_letters + string.digits


def _generate_state(length: int = 16) -> str:
    return "".join(secrets.choice(_STATE_ALPHABET) for _ in range(length))


def verify_oauth_state(state: Optional[str], stored_state: Optional[str]) -> None:
    """Raise ``StateMismatchError`` unless ``state`` matches the cookie value."""
    if not state or not stored_state or not secrets.compare_digest(
        state.encode("utf-8"), stored_state.encode("utf-8")
    ):
        raise StateMismatchError("OAuth state does not match the login cookie.")


def _fragment_redirect(settings: Any, **params: str) -> RedirectResponse:
    """Redirect to the front-end with ``params`` in the URL fragment."""
    base = str(settings.frontend_base_url) if settings.frontend_base_url else "/"
    return RedirectResponse(url=f"{base}#{urlencode(params)}", status_code=HTTPStatus.FOUND)


def _is_path_segment(value: Optional[str]) -> bool:
    return bool(value) and "/" not in value


def _user_playlists_path(credentials: CredentialRecord) -> str:
    return f"/users/{quote(credentials.user_id, safe='')}/playlists"


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/refresh_redis")
async def refresh_redis(
    store: Annotated[Any, Depends(get_credential_store)],
) -> dict:
    """Touch the credential store so hosted Redis instances are kept awake."""
    try:
        await store.keepalive()
    except RedisError as exc:
        logger.warning("Redis keepalive failed: %s", exc)
        return error_envelope(1, "Credential store unavailable")
    return {"success": True}


@router.get("/login")
async def login(
    oauth_client: Annotated[Any, Depends(get_spotify_oauth_client)],
    settings: Annotated[Any, Depends(get_app_settings)],
    access_token: Optional[str] = Query(
        default=None,
        description="Local access token the Spotify account should be bound to.",
    ),
) -> RedirectResponse:
    """Redirect the browser to the Spotify consent screen."""
    state = _generate_state()
    response = RedirectResponse(
        url=oauth_client.build_authorization_url(state=state),
        status_code=HTTPStatus.FOUND,
    )
    ttl = settings.oauth.state_ttl_seconds
    response.set_cookie(STATE_COOKIE, state, max_age=ttl, httponly=True)
    if access_token:
        response.set_cookie(ACCESS_TOKEN_COOKIE, access_token, max_age=ttl, httponly=True)
    else:
        response.delete_cookie(ACCESS_TOKEN_COOKIE)
    return response


@router.get("/callback")
async def callback(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_spotify_oauth_client)],
    api_client: Annotated[Any, Depends(get_spotify_api_client)],
    store: Annotated[Any, Depends(get_credential_store)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: Optional[str] = Query(default=None, description="Authorization code."),
    state: Optional[str] = Query(default=None, description="OAuth state value."),
) -> RedirectResponse:
    """Complete the OAuth exchange and bind the credentials to the local token."""
    try:
        verify_oauth_state(state, request.cookies.get(STATE_COOKIE))
    except StateMismatchError:
        logger.warning("OAuth callback rejected: state mismatch")
        return _fragment_redirect(settings, error="state_mismatch")

    tracked_token = request.cookies.get(ACCESS_TOKEN_COOKIE)

    try:
        if not code:
            raise OAuthTokenExchangeError("Callback did not include an authorization code.")
        access_token, refresh_token = await oauth_client.exchange_authorization_code(code)
    except (OAuthTokenExchangeError, httpx.HTTPError) as exc:
        logger.warning("Spotify code exchange failed: %s", exc)
        response = _fragment_redirect(settings, error="invalid_token")
        response.delete_cookie(STATE_COOKIE)
        return response

    if is_well_formed_token(tracked_token):
        try:
            await _bind_credentials(
                api_client, store, tracked_token, access_token, refresh_token
            )
        except RedisError as exc:
            logger.warning("Could not store Spotify credentials: %s", exc)
            response = _fragment_redirect(settings, error="store_unavailable")
            response.delete_cookie(STATE_COOKIE)
            response.delete_cookie(ACCESS_TOKEN_COOKIE)
            return response

    response = _fragment_redirect(
        settings, access_token=access_token, refresh_token=refresh_token
    )
    response.delete_cookie(STATE_COOKIE)
    response.delete_cookie(ACCESS_TOKEN_COOKIE)
    return response


async def _bind_credentials(
    api_client: Any,
    store: Any,
    local_token: str,
    access_token: str,
    refresh_token: str,
) -> None:
    """Look up the Spotify user and store the credentials under ``local_token``."""
    try:
        profile = await api_client.get_current_user(access_token)
    except httpx.HTTPError as exc:
        logger.warning("Spotify profile lookup failed: %s", exc)
        return

    user_id = profile.body.get("id") if isinstance(profile.body, dict) else None
    if profile.status_code != HTTPStatus.OK or not user_id:
        logger.warning(
            "Spotify profile lookup returned %s; credentials not stored",
            profile.status_code,
        )
        return

    await store.put(
        local_token,
        CredentialRecord(
            access_token=access_token, refresh_token=refresh_token, user_id=user_id
        ),
    )
    logger.info("Stored Spotify credentials for token %s...", local_token[:8])


@router.get("/generate_access_token")
async def generate_access_token(
    generator: Annotated[Any, Depends(get_access_token_generator)],
) -> dict:
    """Issue a fresh local access token for a client to log in with."""
    try:
        token = await generator.generate()
    except TokenGenerationExhaustedError as exc:
        return error_envelope(1, str(exc))
    except CredentialStoreError as exc:
        return error_envelope(2, str(exc))
    return {"success": True, "access_token": token}


@router.get("/playlists")
async def list_playlists(
    executor: Annotated[Any, Depends(get_authed_request_executor)],
    access_token: Optional[str] = Query(default=None),
) -> Any:
    """Return the Spotify playlist listing for the bound user."""
    try:
        upstream = await executor.execute(access_token, "GET", _user_playlists_path)
    except InvalidTokenError:
        return error_envelope(3, "Invalid or missing access_token")
    except UpstreamAuthFailedError:
        return error_envelope(4, "Spotify authorization failed")
    except CredentialStoreError as exc:
        return error_envelope(5, str(exc))
    except UpstreamError as exc:
        return error_envelope(2, "Spotify error", spotify_error_info=exc.error_info)
    return JSONResponse(content=upstream.body)


@router.get("/add_song")
async def add_song(
    executor: Annotated[Any, Depends(get_authed_request_executor)],
    access_token: Optional[str] = Query(default=None),
    playlist_id: Optional[str] = Query(default=None),
    track_uri: Optional[str] = Query(default=None),
) -> dict:
    """Append a track to one of the bound user's playlists."""
    if not _is_path_segment(playlist_id) or not _is_path_segment(track_uri):
        return error_envelope(1, "Missing or invalid playlist_id or track_uri")

    try:
        upstream = await executor.execute(
            access_token,
            "POST",
            f"/playlists/{quote(playlist_id, safe='')}/tracks",
            params={"uris": track_uri},
        )
    except InvalidTokenError:
        return error_envelope(3, "Invalid or missing access_token")
    except UpstreamAuthFailedError:
        return error_envelope(4, "Spotify authorization failed")
    except CredentialStoreError as exc:
        return error_envelope(5, str(exc))
    except UpstreamError as exc:
        return error_envelope(2, "Spotify error", spotify_error_info=exc.error_info)

    if upstream.status_code == HTTPStatus.CREATED:
        return {"success": True}
    return error_envelope(2, "Spotify error", spotify_error_info=upstream.error_info)


@router.get("/search_song")
async def search_song(
    search_service: Annotated[Any, Depends(get_track_search_service)],
    artist: Optional[str] = Query(default=None),
    title: Optional[str] = Query(default=None),
) -> dict:
    """Find the Spotify track closest to a free-text artist and title."""
    try:
        track = await search_service.search(artist, title)
    except EmptyQueryError:
        return error_envelope(1, "Bad query")
    except TrackNotFoundError as exc:
        return error_envelope(2, "Song not found", track=exc.track)
    except UpstreamError as exc:
        return error_envelope(3, "Spotify error", spotify_error_info=exc.error_info)
    return {"success": True, "track": track}


__all__ = ["router", "verify_oauth_state"]
