"""
Domain models for Spotify credential persistence.
"""

from pydantic import BaseModel, Field


class CredentialRecord(BaseModel):
    """Spotify credentials stored under a locally issued access token."""

    access_token: str = Field(..., description="Short-lived Spotify access token.")
    refresh_token: str = Field(
        ..., description="Long-lived Spotify refresh token, kept across refreshes."
    )
    user_id: str = Field(..., description="Spotify user identifier.")

    def with_access_token(self, access_token: str) -> "CredentialRecord":
        """Return a copy carrying a new access token and the same refresh token."""
        return self.model_copy(update={"access_token": access_token})


__all__ = ["CredentialRecord"]
