"""Service layer exports."""

from .access_tokens import AccessTokenGenerator, is_well_formed_token
from .authed_requests import AuthedRequestExecutor
from .track_search import TrackSearchService, build_query

__all__ = [
    "AccessTokenGenerator",
    "AuthedRequestExecutor",
    "TrackSearchService",
    "build_query",
    "is_well_formed_token",
]
