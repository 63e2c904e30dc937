"""Response envelopes shared by the proxy routes."""

from __future__ import annotations

from typing import Any


def error_envelope(code: int, name: str, **extra: Any) -> dict[str, Any]:
    """Build ``{"success": False, "error": code, "error_name": name, ...}``.

    Codes are local to each route.
    """
    return {"success": False, "error": code, "error_name": name, **extra}


__all__ = ["error_envelope"]
