"""
Redis-backed store mapping local access tokens to Spotify credentials.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import time
from typing import Any, Optional

import redis.asyncio as redis
from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError

from spotify_proxy.models import CredentialRecord

logger = logging.getLogger(__name__)

_ENCRYPTED_FIELDS = ("access_token", "refresh_token")


def _fernet_for(secret: str) -> Fernet:
    """Derive a Fernet key from an arbitrary-length secret."""
    return Fernet(base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest()))


class RedisCredentialStore:
    """
    Last-write-wins credential storage keyed by local access token.

    With an ``encryption_secret`` the Spotify access and refresh tokens are
    Fernet-encrypted before they reach Redis; the record keeps its flat
    ``{access_token, refresh_token, user_id}`` shape either way.
    """

    PING_KEY = "ping"

    def __init__(
        self,
        client: redis.Redis,
        *,
        key_prefix: str = "spotify-access-token-",
        encryption_secret: Optional[str] = None,
    ) -> None:
        self._redis = client
        self._prefix = key_prefix
        self._fernet = _fernet_for(encryption_secret) if encryption_secret else None

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        key_prefix: str = "spotify-access-token-",
        encryption_secret: Optional[str] = None,
    ) -> "RedisCredentialStore":
        client = redis.from_url(url, encoding="utf-8", decode_responses=True)
        return cls(client, key_prefix=key_prefix, encryption_secret=encryption_secret)

    def _key(self, token: str) -> str:
        return f"{self._prefix}{token}"

    def _decrypt(self, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Encrypted token field is not a string.")
        try:
            return self._fernet.decrypt(value.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Stored token could not be decrypted.") from exc

    async def get(self, token: str) -> Optional[CredentialRecord]:
        """Return the credentials stored under ``token``, if any."""
        raw = await self._redis.get(self._key(token))
        if not raw:
            return None
        try:
            data = json.loads(raw)
            if self._fernet is not None:
                for field in _ENCRYPTED_FIELDS:
                    data[field] = self._decrypt(data[field])
            return CredentialRecord(**data)
        except (ValueError, KeyError, TypeError, ValidationError) as exc:
            logger.warning(
                "Unreadable credential record for token %s...: %s", token[:8], exc
            )
            return None

    async def put(self, token: str, record: CredentialRecord) -> None:
        """Write ``record`` under ``token``, replacing any previous value."""
        data = record.model_dump()
        if self._fernet is not None:
            for field in _ENCRYPTED_FIELDS:
                data[field] = self._fernet.encrypt(data[field].encode("utf-8")).decode("utf-8")
        await self._redis.set(self._key(token), json.dumps(data))

    async def exists(self, token: str) -> bool:
        return bool(await self._redis.exists(self._key(token)))

    async def keepalive(self) -> int:
        """Write the current time under the ping key so the instance stays warm."""
        now_ms = int(time.time() * 1000)
        await self._redis.set(self.PING_KEY, now_ms)
        return now_ms

    async def ping(self) -> bool:
        return bool(await self._redis.ping())

    async def close(self) -> None:
        await self._redis.aclose()


__all__ = ["RedisCredentialStore"]
