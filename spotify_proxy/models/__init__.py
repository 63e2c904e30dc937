"""Domain models."""

from .credentials import CredentialRecord

__all__ = ["CredentialRecord"]
