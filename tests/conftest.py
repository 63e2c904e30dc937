"""Pytest configuration shared across the suite."""

import pytest


@pytest.fixture
def anyio_backend() -> str:
    """Run AnyIO-marked tests on the asyncio backend only."""
    return "asyncio"
