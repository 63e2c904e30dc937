try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from spotify_proxy.clients.spotify_api import SpotifyApiClient
from spotify_proxy.clients.spotify_auth import OAuthTokenExchangeError
from spotify_proxy.models import CredentialRecord
from spotify_proxy.services.authed_requests import AuthedRequestExecutor
from spotify_proxy.services.errors import (
    CredentialStoreError,
    InvalidTokenError,
    UpstreamAuthFailedError,
    UpstreamError,
)

LOCAL_TOKEN = "ab" * 48


class FakeCredentialStore:
    def __init__(self) -> None:
        self.records: dict[str, CredentialRecord] = {}
        self.writes: list[str] = []

    async def get(self, token: str) -> CredentialRecord | None:
        return self.records.get(token)

    async def put(self, token: str, record: CredentialRecord) -> None:
        self.writes.append(token)
        self.records[token] = record


class DummyOAuthClient:
    def __init__(self, *, refreshed_token: str = "fresh-access", error: Exception | None = None) -> None:
        self.refreshed_token = refreshed_token
        self.error = error
        self.calls: list[str] = []

    async def refresh_token(self, refresh_token: str) -> str:
        self.calls.append(refresh_token)
        if self.error is not None:
            raise self.error
        return self.refreshed_token


class SpotifyStub:
    """Answers 401 unless the bearer token is in ``valid_tokens``."""

    def __init__(self, valid_tokens: set[str], *, status_code: int = 200, body=None) -> None:
        self.valid_tokens = valid_tokens
        self.status_code = status_code
        self.body = body if body is not None else {"items": []}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        token = request.headers["authorization"].removeprefix("Bearer ")
        if token not in self.valid_tokens:
            return httpx.Response(401, json={"error": {"status": 401, "message": "expired"}})
        return httpx.Response(self.status_code, json=self.body)


def _build(stub, oauth_client=None, store=None):
    store = store or FakeCredentialStore()
    oauth_client = oauth_client or DummyOAuthClient()
    api_client = SpotifyApiClient(transport=httpx.MockTransport(stub))
    return AuthedRequestExecutor(store, api_client, oauth_client), store, oauth_client


def _stored_record(store: FakeCredentialStore, access_token: str = "stale-access") -> None:
    store.records[LOCAL_TOKEN] = CredentialRecord(
        access_token=access_token, refresh_token="refresh-1", user_id="spotify-user"
    )


@pytest.mark.anyio
async def test_execute_passes_through_with_valid_credentials() -> None:
    stub = SpotifyStub({"good-access"}, body={"items": [{"id": "p1"}]})
    executor, store, oauth_client = _build(stub)
    _stored_record(store, access_token="good-access")

    response = await executor.execute(LOCAL_TOKEN, "GET", "/users/spotify-user/playlists")

    assert response.status_code == 200
    assert response.body == {"items": [{"id": "p1"}]}
    assert oauth_client.calls == []
    assert stub.requests[0].url.path == "/v1/users/spotify-user/playlists"
    assert store.writes == []


@pytest.mark.anyio
async def test_execute_refreshes_once_and_persists_new_access_token() -> None:
    stub = SpotifyStub({"fresh-access"}, body={"items": []})
    executor, store, oauth_client = _build(stub)
    _stored_record(store)

    response = await executor.execute(LOCAL_TOKEN, "GET", "/users/spotify-user/playlists")

    assert response.status_code == 200
    assert oauth_client.calls == ["refresh-1"]
    assert [r.headers["authorization"] for r in stub.requests] == [
        "Bearer stale-access",
        "Bearer fresh-access",
    ]
    assert store.records[LOCAL_TOKEN] == CredentialRecord(
        access_token="fresh-access", refresh_token="refresh-1", user_id="spotify-user"
    )


@pytest.mark.anyio
async def test_execute_rejects_unknown_token_without_calling_spotify() -> None:
    stub = SpotifyStub({"good-access"})
    executor, _, oauth_client = _build(stub)

    with pytest.raises(InvalidTokenError):
        await executor.execute(LOCAL_TOKEN, "GET", "/me")

    assert stub.requests == []
    assert oauth_client.calls == []


@pytest.mark.anyio
@pytest.mark.parametrize("token", [None, "", "short", LOCAL_TOKEN + "x"])
async def test_execute_rejects_malformed_token(token) -> None:
    stub = SpotifyStub({"good-access"})
    executor, store, _ = _build(stub)
    _stored_record(store, access_token="good-access")

    with pytest.raises(InvalidTokenError):
        await executor.execute(token, "GET", "/me")

    assert stub.requests == []


@pytest.mark.anyio
async def test_second_unauthorized_response_is_not_retried() -> None:
    stub = SpotifyStub(set())
    executor, store, oauth_client = _build(stub, DummyOAuthClient(refreshed_token="still-bad"))
    _stored_record(store)

    with pytest.raises(UpstreamAuthFailedError):
        await executor.execute(LOCAL_TOKEN, "GET", "/me")

    assert len(stub.requests) == 2
    assert oauth_client.calls == ["refresh-1"]


@pytest.mark.anyio
async def test_refresh_failure_surfaces_as_auth_failure() -> None:
    stub = SpotifyStub(set())
    oauth_client = DummyOAuthClient(error=OAuthTokenExchangeError("invalid_grant"))
    executor, store, _ = _build(stub, oauth_client)
    _stored_record(store)

    with pytest.raises(UpstreamAuthFailedError):
        await executor.execute(LOCAL_TOKEN, "GET", "/me")

    assert len(stub.requests) == 1
    assert store.records[LOCAL_TOKEN].access_token == "stale-access"
    assert store.writes == []


@pytest.mark.anyio
async def test_non_auth_errors_are_returned_verbatim() -> None:
    body = {"error": {"status": 404, "message": "Not found."}}
    stub = SpotifyStub({"good-access"}, status_code=404, body=body)
    executor, store, oauth_client = _build(stub)
    _stored_record(store, access_token="good-access")

    response = await executor.execute(LOCAL_TOKEN, "POST", "/playlists/p1/tracks")

    assert response.status_code == 404
    assert response.error_info == body["error"]
    assert oauth_client.calls == []


@pytest.mark.anyio
async def test_transport_failure_becomes_upstream_error() -> None:
    def broken(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    executor, store, _ = _build(broken)
    _stored_record(store)

    with pytest.raises(UpstreamError):
        await executor.execute(LOCAL_TOKEN, "GET", "/me")


@pytest.mark.anyio
async def test_path_builder_receives_stored_credentials_and_is_reused_on_retry() -> None:
    stub = SpotifyStub({"fresh-access"})
    executor, store, _ = _build(stub)
    _stored_record(store)
    seen: list[CredentialRecord] = []

    def playlists_path(credentials: CredentialRecord) -> str:
        seen.append(credentials)
        return f"/users/{credentials.user_id}/playlists"

    response = await executor.execute(LOCAL_TOKEN, "GET", playlists_path)

    assert response.status_code == 200
    assert len(seen) == 1
    assert [r.url.path for r in stub.requests] == [
        "/v1/users/spotify-user/playlists",
        "/v1/users/spotify-user/playlists",
    ]


class UnreachableStore(FakeCredentialStore):
    def __init__(self, *, fail_reads: bool = False) -> None:
        super().__init__()
        self.fail_reads = fail_reads

    async def get(self, token: str) -> CredentialRecord | None:
        if self.fail_reads:
            raise RedisConnectionError("connection refused")
        return await super().get(token)

    async def put(self, token: str, record: CredentialRecord) -> None:
        raise RedisConnectionError("connection refused")


@pytest.mark.anyio
async def test_store_read_failure_becomes_credential_store_error() -> None:
    stub = SpotifyStub({"good-access"})
    executor, _, _ = _build(stub, store=UnreachableStore(fail_reads=True))

    with pytest.raises(CredentialStoreError):
        await executor.execute(LOCAL_TOKEN, "GET", "/me")

    assert stub.requests == []


@pytest.mark.anyio
async def test_store_write_failure_after_refresh_becomes_credential_store_error() -> None:
    stub = SpotifyStub({"fresh-access"})
    store = UnreachableStore()
    executor, _, oauth_client = _build(stub, store=store)
    _stored_record(store)

    with pytest.raises(CredentialStoreError):
        await executor.execute(LOCAL_TOKEN, "GET", "/me")

    assert oauth_client.calls == ["refresh-1"]
    assert len(stub.requests) == 1
