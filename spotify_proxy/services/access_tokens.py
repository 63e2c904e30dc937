"""Issue opaque local access tokens that stand in for Spotify credentials."""

from __future__ import annotations

import logging
import secrets
from typing import Any, Callable

from redis.exceptions import RedisError

from spotify_proxy.services.errors import CredentialStoreError, TokenGenerationExhaustedError

logger = logging.getLogger(__name__)

TOKEN_BYTES = 48
TOKEN_LENGTH = TOKEN_BYTES * 2


def is_well_formed_token(token: Any) -> bool:
    """Return True when ``token`` has the shape of an issued local token."""
    return isinstance(token, str) and len(token) == TOKEN_LENGTH


def _random_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


class AccessTokenGenerator:
    """
    Generate local access tokens that are not yet present in the store.

    The uniqueness check and the later write of a credential record are not
    atomic; two concurrent callers could in theory receive the same token.
    """

    def __init__(
        self,
        store: Any,
        *,
        max_attempts: int = 5,
        token_factory: Callable[[], str] = _random_token,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self._store = store
        self._max_attempts = max_attempts
        self._token_factory = token_factory

    async def generate(self) -> str:
        """Return an unused token or raise ``TokenGenerationExhaustedError``."""
        for attempt in range(1, self._max_attempts + 1):
            token = self._token_factory()
            try:
                taken = await self._store.exists(token)
            except RedisError as exc:
                logger.warning("Credential store lookup failed: %s", exc)
                raise CredentialStoreError("Credential store unavailable") from exc
            if not taken:
                return token
            logger.warning(
                "Generated access token collided with a stored one (attempt %d/%d)",
                attempt,
                self._max_attempts,
            )

        logger.error(
            "Could not generate a unique access token after %d attempts",
            self._max_attempts,
        )
        raise TokenGenerationExhaustedError("Could not generate unique token")


__all__ = [
    "AccessTokenGenerator",
    "TOKEN_BYTES",
    "TOKEN_LENGTH",
    "is_well_formed_token",
]
