"""Public schema exports."""

from .envelopes import error_envelope

__all__ = ["error_envelope"]
