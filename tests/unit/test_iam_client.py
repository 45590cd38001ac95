"""Unit tests for the IAM introspection and profile client."""

from __future__ import annotations

import httpx
import pytest

from fedbridge.core.iam import IAMClient
from fedbridge.errors import IntrospectionFailed, ProfileLookupFailed
from tests.support import IDM_URL, SUBJECT, FakeIdentityProvider, basic_auth_header


def _client(http_client: httpx.AsyncClient) -> IAMClient:
    return IAMClient(
        http_client=http_client,
        introspection_endpoint="https://idp.local/oauth2/introspect",
        idm_url=IDM_URL + "/",
        client_id="client-id",
        client_secret="client-secret",
    )


@pytest.mark.asyncio
async def test_introspect_posts_token_with_client_credentials(idp: FakeIdentityProvider) -> None:
    """Introspection sends the token as a form with basic client auth."""
    async with httpx.AsyncClient(transport=idp.transport) as http_client:
        result = await _client(http_client).introspect("access-1")

    assert result.sub == SUBJECT
    assert result.username == "jane"
    assert result.organizations.organization_list[0].groups == ["admins"]
    request = idp.requests[0]
    assert request.headers["authorization"] == basic_auth_header()
    assert request.headers["api-version"] == "4"
    assert idp.form(0) == {"token": "access-1"}


@pytest.mark.asyncio
async def test_introspect_rejects_inactive_token(idp: FakeIdentityProvider) -> None:
    """An inactive token is not a usable identity."""
    idp.introspection = {"active": False}
    async with httpx.AsyncClient(transport=idp.transport) as http_client:
        with pytest.raises(IntrospectionFailed):
            await _client(http_client).introspect("access-1")


@pytest.mark.asyncio
async def test_introspect_surfaces_status_and_body(idp: FakeIdentityProvider) -> None:
    """Non-200 introspection responses keep status and body for diagnosis."""
    idp.introspect_status = 401
    idp.introspection = {"error": "invalid_client"}
    async with httpx.AsyncClient(transport=idp.transport) as http_client:
        with pytest.raises(IntrospectionFailed) as exc_info:
            await _client(http_client).introspect("access-1")

    assert "401" in exc_info.value.detail
    assert "invalid_client" in exc_info.value.detail


@pytest.mark.asyncio
async def test_get_user_profile_unwraps_exchange(idp: FakeIdentityProvider) -> None:
    """Profile lookups read the exchange envelope with bearer auth."""
    async with httpx.AsyncClient(transport=idp.transport) as http_client:
        profile = await _client(http_client).get_user_profile("access-1", SUBJECT)

    assert profile.id == SUBJECT
    assert profile.login_id == "jane"
    assert profile.given_name == "Jane"
    request = idp.requests[0]
    assert str(request.url) == f"{IDM_URL}/security/users/{SUBJECT}"
    assert request.headers["authorization"] == "Bearer access-1"
    assert request.headers["api-version"] == "1"


@pytest.mark.asyncio
async def test_get_user_profile_maps_failures(idp: FakeIdentityProvider) -> None:
    """Profile lookup failures raise ProfileLookupFailed."""
    idp.profile_status = 404
    async with httpx.AsyncClient(transport=idp.transport) as http_client:
        with pytest.raises(ProfileLookupFailed):
            await _client(http_client).get_user_profile("access-1", SUBJECT)


@pytest.mark.asyncio
async def test_network_errors_map_to_connector_errors() -> None:
    """Transport failures are wrapped in the matching connector error."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("network down", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = _client(http_client)
        with pytest.raises(IntrospectionFailed):
            await client.introspect("access-1")
        with pytest.raises(ProfileLookupFailed):
            await client.get_user_profile("access-1", SUBJECT)
