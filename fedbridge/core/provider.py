"""OIDC provider discovery and userinfo via httpx."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from fedbridge.errors import ProviderDiscoveryFailed, UserInfoFailed
from fedbridge.models import UpstreamToken

DISCOVERY_PATH = "/.well-known/openid-configuration"
_REQUIRED_ENDPOINTS = ("authorization_endpoint", "token_endpoint", "userinfo_endpoint")


@dataclass(frozen=True)
class ProviderMetadata:
    """Subset of the discovery document the connector relies on."""

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    userinfo_endpoint: str
    introspection_endpoint: str
    jwks_uri: str = ""


class OIDCProvider:
    """Discovered OIDC provider with userinfo support."""

    def __init__(self, metadata: ProviderMetadata, http_client: httpx.AsyncClient) -> None:
        self._metadata = metadata
        self._client = http_client

    @property
    def metadata(self) -> ProviderMetadata:
        """Return discovered provider metadata."""
        return self._metadata

    @classmethod
    async def discover(
        cls,
        http_client: httpx.AsyncClient,
        issuer: str,
        insecure_issuer: str = "",
        introspection_endpoint: str = "",
        default_introspection_endpoint: str = "",
    ) -> OIDCProvider:
        """Load the discovery document and validate the advertised issuer.

        The introspection endpoint is an IdP extension of the discovery
        document; an explicit ``introspection_endpoint`` overrides it and
        ``default_introspection_endpoint`` is used when neither is present.
        """
        issuer = issuer.rstrip("/")
        try:
            response = await http_client.get(issuer + DISCOVERY_PATH)
        except httpx.RequestError as exc:
            raise ProviderDiscoveryFailed(f"Failed to get provider: {exc}") from exc
        if response.status_code != 200:
            raise ProviderDiscoveryFailed(
                f"Failed to get provider: {response.status_code}: {response.text}"
            )
        try:
            document = response.json()
        except ValueError as exc:
            raise ProviderDiscoveryFailed("Provider returned invalid discovery JSON.") from exc
        if not isinstance(document, dict):
            raise ProviderDiscoveryFailed("Provider returned invalid discovery JSON.")

        advertised = str(document.get("issuer", "")).rstrip("/")
        accepted = {issuer}
        if insecure_issuer:
            accepted.add(insecure_issuer.rstrip("/"))
        if advertised not in accepted:
            raise ProviderDiscoveryFailed(
                f"Issuer did not match the issuer returned by provider, "
                f"expected {issuer!r} got {advertised!r}"
            )
        for key in _REQUIRED_ENDPOINTS:
            if not isinstance(document.get(key), str) or not document[key]:
                raise ProviderDiscoveryFailed(f"Provider metadata is missing {key}.")

        introspection = (
            introspection_endpoint
            or str(document.get("introspection_endpoint") or "")
            or default_introspection_endpoint
        )
        if not introspection:
            raise ProviderDiscoveryFailed("Failed to get introspection endpoint.")

        metadata = ProviderMetadata(
            issuer=advertised,
            authorization_endpoint=document["authorization_endpoint"],
            token_endpoint=document["token_endpoint"],
            userinfo_endpoint=document["userinfo_endpoint"],
            introspection_endpoint=introspection,
            jwks_uri=str(document.get("jwks_uri") or ""),
        )
        return cls(metadata=metadata, http_client=http_client)

    async def userinfo(self, token: UpstreamToken) -> dict[str, Any]:
        """Fetch and decode userinfo claims for the token."""
        try:
            response = await self._client.get(
                self._metadata.userinfo_endpoint,
                headers={
                    "Authorization": f"Bearer {token.access_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.RequestError as exc:
            raise UserInfoFailed(f"Error loading userinfo: {exc}") from exc
        if response.status_code != 200:
            raise UserInfoFailed(
                f"Error loading userinfo: {response.status_code}: {response.text}"
            )
        try:
            claims = response.json()
        except ValueError as exc:
            raise UserInfoFailed("Failed to decode userinfo claims.") from exc
        if not isinstance(claims, dict):
            raise UserInfoFailed("Failed to decode userinfo claims.")
        return claims
