"""Connector data contract types."""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from pydantic import BaseModel, ConfigDict, Field

IDENTITY_TYPE_SERVICE = "Service"


@dataclass(frozen=True)
class Scopes:
    """Scopes requested by the broker for a login or refresh."""

    offline_access: bool = False


@dataclass(frozen=True)
class CallbackRequest:
    """Query parameters the identity provider redirected back with."""

    query: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]]) -> CallbackRequest:
        """Build a callback request; the first value of a repeated key wins."""
        query: dict[str, str] = {}
        for key, value in pairs:
            query.setdefault(key, value)
        return cls(query=query)

    @classmethod
    def from_url(cls, url: str) -> CallbackRequest:
        """Build a callback request from a full callback URL."""
        return cls.from_pairs(parse_qsl(urlsplit(url).query, keep_blank_values=True))

    def get(self, key: str) -> str:
        """Return a query parameter or an empty string."""
        return str(self.query.get(key, "") or "")


@dataclass(frozen=True)
class UpstreamToken:
    """Token material obtained from the identity provider."""

    access_token: str = ""
    token_type: str = "Bearer"
    refresh_token: str = ""
    expires_at: float | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> UpstreamToken:
        """Normalize a token endpoint response into an upstream token.

        ``expires_in`` is relative seconds; zero or a missing value means the
        expiry is unknown. An absolute ``expires_at`` (as authlib computes it)
        takes precedence.
        """
        expires_at: float | None = None
        raw_expires_at = payload.get("expires_at")
        raw_expires_in = payload.get("expires_in")
        if isinstance(raw_expires_at, int | float) and raw_expires_at > 0:
            expires_at = float(raw_expires_at)
        elif isinstance(raw_expires_in, int | float) and raw_expires_in > 0:
            expires_at = time.time() + float(raw_expires_in)
        return cls(
            access_token=str(payload.get("access_token") or ""),
            token_type=str(payload.get("token_type") or "Bearer"),
            refresh_token=str(payload.get("refresh_token") or ""),
            expires_at=expires_at,
        )


class _WireModel(BaseModel):
    """Base for models decoded from upstream JSON with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class IntrospectOrganization(_WireModel):
    """One organization entry from the introspection response."""

    organization_id: str = Field(default="", alias="organizationId")
    organization_name: str = Field(default="", alias="organizationName")
    disabled: bool = False
    permissions: list[str] = Field(default_factory=list)
    roles: list[str] = Field(default_factory=list)
    groups: list[str] = Field(default_factory=list)


class IntrospectOrganizations(_WireModel):
    """Organization membership block of the introspection response."""

    managing_organization: str = Field(default="", alias="managingOrganization")
    organization_list: list[IntrospectOrganization] = Field(
        default_factory=list, alias="organizationList"
    )


class IntrospectResponse(_WireModel):
    """Token introspection result, authoritative for subject and username."""

    active: bool = False
    scope: str = ""
    username: str = ""
    exp: int = 0
    sub: str = ""
    iss: str = ""
    client_id: str = ""
    token_type: str = ""
    identity_type: str = ""
    organizations: IntrospectOrganizations = Field(default_factory=IntrospectOrganizations)

    @property
    def is_service(self) -> bool:
        """Return True for service identities, which carry no human email."""
        return self.identity_type == IDENTITY_TYPE_SERVICE


class Profile(_WireModel):
    """Best-effort user profile looked up by subject identifier."""

    id: str = ""
    login_id: str = Field(default="", alias="loginId")
    email_address: str = Field(default="", alias="emailAddress")
    given_name: str = Field(default="", alias="givenName")
    middle_name: str = Field(default="", alias="middleName")
    family_name: str = Field(default="", alias="familyName")
    display_name: str = Field(default="", alias="displayName")
    managing_organization: str = Field(default="", alias="managingOrganization")
    disabled: bool = False


class ConnectorData(BaseModel):
    """Session blob handed back to the broker and read again on refresh."""

    model_config = ConfigDict(
        populate_by_name=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    refresh_token: bytes = Field(default=b"", alias="refreshToken")
    access_token: bytes = Field(default=b"", alias="accessToken")
    assertion: bytes = b""
    groups: list[str] = Field(default_factory=list)
    trusted_idp_org: str = Field(default="", alias="trustedIdpOrg")
    audience_trust_map: dict[str, str] = Field(default_factory=dict, alias="audienceTrustMap")
    tenant_map: dict[str, str] = Field(default_factory=dict, alias="tenantMap")
    introspection: IntrospectResponse = Field(default_factory=IntrospectResponse)
    user: Profile = Field(default_factory=Profile)

    def encode(self) -> bytes:
        """Serialize to the opaque JSON blob."""
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def decode(cls, raw: bytes | str) -> ConnectorData:
        """Parse an opaque JSON blob produced by encode()."""
        return cls.model_validate_json(raw)


@dataclass(frozen=True)
class Identity:
    """Canonical identity returned to the broker."""

    user_id: str
    username: str
    email: str
    email_verified: bool
    groups: tuple[str, ...] = ()
    connector_data: bytes = b""
