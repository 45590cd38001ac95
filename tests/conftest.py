"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from tests.support import FakeIdentityProvider


@pytest.fixture
def idp() -> FakeIdentityProvider:
    """Provide a fresh fake identity provider."""
    return FakeIdentityProvider()
