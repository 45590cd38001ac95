"""Identity resolution: reconcile userinfo, introspection, and profile data."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from fedbridge.config import ConnectorSettings
from fedbridge.core.iam import IAMClient
from fedbridge.core.provider import OIDCProvider
from fedbridge.errors import DomainNotAllowed, MissingEmailClaim, ProfileLookupFailed
from fedbridge.models import (
    ConnectorData,
    Identity,
    IntrospectResponse,
    Profile,
    UpstreamToken,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CreateInvocation:
    """Fresh login callback; SAML logins carry the raw assertion."""

    assertion: str | None = None


@dataclass(frozen=True)
class RefreshInvocation:
    """Session renewal from a stored refresh token."""


@dataclass(frozen=True)
class ExchangeInvocation:
    """Externally supplied subject token."""

    subject_token_type: str = ""


Invocation = CreateInvocation | RefreshInvocation | ExchangeInvocation


def invocation_name(invocation: Invocation) -> str:
    """Return the short name used in logs."""
    if isinstance(invocation, CreateInvocation):
        return "create"
    if isinstance(invocation, RefreshInvocation):
        return "refresh"
    return "exchange"


class IdentityResolver:
    """Build the canonical identity and session blob for an upstream token."""

    def __init__(
        self,
        settings: ConnectorSettings,
        provider: OIDCProvider,
        iam_client: IAMClient,
    ) -> None:
        self._settings = settings
        self._provider = provider
        self._iam = iam_client
        self._has_email_scope = "email" in settings.oauth_scopes

    async def resolve(self, token: UpstreamToken, invocation: Invocation) -> Identity:
        """Run the claims pipeline for a token.

        The calls run in order: userinfo, introspection, profile. Email
        resolution needs the introspection identity type, so introspection is
        always fetched even though userinfo already succeeded.
        """
        claims = await self._provider.userinfo(token)
        introspection = await self._iam.introspect(token.access_token)

        email = self._resolve_email(claims, introspection)
        email_verified = self._resolve_email_verified(claims)
        self._check_hosted_domain(claims)

        profile = await self._lookup_profile(token, introspection)
        groups = self._resolve_groups(introspection)

        connector_data = ConnectorData(
            refresh_token=token.refresh_token.encode("utf-8"),
            access_token=token.access_token.encode("utf-8"),
            groups=groups,
            tenant_map=dict(self._settings.tenant_map),
            introspection=introspection,
            user=profile,
        )
        if (
            isinstance(invocation, CreateInvocation)
            and self._settings.is_saml
            and invocation.assertion is not None
        ):
            connector_data.assertion = invocation.assertion.encode("utf-8")

        identity = Identity(
            user_id=introspection.sub,
            username=introspection.username,
            email=email,
            email_verified=email_verified,
            groups=tuple(groups),
            connector_data=connector_data.encode(),
        )
        logger.info(
            "identity_resolved",
            invocation=invocation_name(invocation),
            user_id=identity.user_id,
            identity_type=introspection.identity_type or "unknown",
            profile_found=bool(profile.id or profile.login_id),
        )
        return identity

    def _resolve_email(self, claims: dict[str, Any], introspection: IntrospectResponse) -> str:
        """Prefer the userinfo email; service identities use their subject."""
        raw_email = claims.get("email")
        found = isinstance(raw_email, str)
        email = raw_email if isinstance(raw_email, str) else ""
        if introspection.is_service:
            email = introspection.sub
            found = True
        if not found and self._has_email_scope:
            raise MissingEmailClaim('Missing "email" claim.')
        return email

    def _resolve_email_verified(self, claims: dict[str, Any]) -> bool:
        """SAML logins are treated as verified; OAuth2 depends on configuration."""
        if self._settings.is_saml:
            return True
        if self._settings.insecure_skip_email_verified:
            return True
        return claims.get("email_verified") is True

    def _check_hosted_domain(self, claims: dict[str, Any]) -> None:
        """Reject users outside the hosted domain allow-list."""
        if not self._settings.hosted_domains:
            return
        hosted_domain = claims.get("hd")
        if not isinstance(hosted_domain, str) or hosted_domain not in self._settings.hosted_domains:
            raise DomainNotAllowed(f"Unexpected hd claim {hosted_domain!r}.")

    async def _lookup_profile(
        self, token: UpstreamToken, introspection: IntrospectResponse
    ) -> Profile:
        """Fetch the profile; failures are logged and yield an empty profile."""
        try:
            return await self._iam.get_user_profile(token.access_token, introspection.sub)
        except ProfileLookupFailed as exc:
            logger.error(
                "profile_lookup_failed",
                user_id=introspection.sub,
                code=exc.code,
                error=exc.detail,
            )
            return Profile()

    def _resolve_groups(self, introspection: IntrospectResponse) -> list[str]:
        """Collect organization groups and, optionally, roles."""
        include_groups = self._settings.enable_group_claim
        include_roles = self._settings.enable_role_claim and self._settings.role_as_group_claim
        if not include_groups and not include_roles:
            return []
        collected: set[str] = set()
        for organization in introspection.organizations.organization_list:
            if include_groups:
                collected.update(organization.groups)
            if include_roles:
                collected.update(organization.roles)
        return sorted(collected)
