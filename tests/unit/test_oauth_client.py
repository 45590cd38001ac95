"""Unit tests for the authlib-backed OAuth2 client."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest

from fedbridge.core.oauth import OAuth2Client
from fedbridge.errors import RefreshFailed, TokenExchangeFailed
from tests.support import REDIRECT_URI, TOKEN_ENDPOINT, FakeIdentityProvider


def _client(idp: FakeIdentityProvider) -> OAuth2Client:
    return OAuth2Client(
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri=REDIRECT_URI,
        scopes=["openid", "email"],
        authorization_endpoint="https://idp.local/oauth2/authorize",
        token_endpoint=TOKEN_ENDPOINT,
        transport=idp.transport,
    )


@pytest.mark.asyncio
async def test_exchange_code_returns_token(idp: FakeIdentityProvider) -> None:
    """Authorization codes are redeemed at the token endpoint."""
    token = await _client(idp).exchange_code("auth-code")

    assert token.access_token == "access-1"
    assert token.refresh_token == "refresh-1"
    assert token.expires_at is not None
    form = idp.form(0)
    assert form["grant_type"] == "authorization_code"
    assert form["code"] == "auth-code"


@pytest.mark.asyncio
async def test_exchange_code_failure_is_token_exchange_failed(idp: FakeIdentityProvider) -> None:
    """Upstream errors during code exchange are surfaced."""
    idp.token_status = 400
    idp.token_body = {"error": "invalid_grant", "error_description": "bad code"}

    with pytest.raises(TokenExchangeFailed):
        await _client(idp).exchange_code("auth-code")


@pytest.mark.asyncio
async def test_refresh_without_refresh_token_fails_without_network(
    idp: FakeIdentityProvider,
) -> None:
    """An empty refresh token cannot be redeemed."""
    with pytest.raises(RefreshFailed):
        await _client(idp).refresh("")
    assert idp.calls["/oauth2/token"] == 0


@pytest.mark.asyncio
async def test_refresh_keeps_refresh_token_when_not_rotated(idp: FakeIdentityProvider) -> None:
    """A refresh response without a new refresh token keeps the old one."""
    idp.token_body = {"access_token": "access-2", "token_type": "Bearer", "expires_in": 60}

    token = await _client(idp).refresh("refresh-1")

    assert token.access_token == "access-2"
    assert token.refresh_token == "refresh-1"
    form = idp.form(0)
    assert form["grant_type"] == "refresh_token"
    assert form["refresh_token"] == "refresh-1"


@pytest.mark.asyncio
async def test_refresh_failure_is_refresh_failed(idp: FakeIdentityProvider) -> None:
    """A revoked refresh token surfaces RefreshFailed."""
    idp.token_status = 400
    idp.token_body = {"error": "invalid_grant"}

    with pytest.raises(RefreshFailed):
        await _client(idp).refresh("revoked")


def test_authorization_url_is_built_without_network(idp: FakeIdentityProvider) -> None:
    """Authorization URLs carry the client, scopes, state and extra parameters."""
    url = _client(idp).authorization_url("state-1", access_type="offline", prompt="consent")

    parts = urlsplit(url)
    query = parse_qs(parts.query)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://idp.local/oauth2/authorize"
    assert query["response_type"] == ["code"]
    assert query["client_id"] == ["client-id"]
    assert query["redirect_uri"] == [REDIRECT_URI]
    assert query["scope"] == ["openid email"]
    assert query["state"] == ["state-1"]
    assert query["access_type"] == ["offline"]
    assert query["prompt"] == ["consent"]
    assert idp.requests == []
