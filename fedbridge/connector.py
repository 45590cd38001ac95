"""Connector entry points: login URL, callback, refresh, token exchange, close."""

from __future__ import annotations

import httpx
import structlog
from pydantic import ValidationError

from fedbridge.config import ConnectorSettings
from fedbridge.core.iam import IAMClient
from fedbridge.core.oauth import OAuth2Client
from fedbridge.core.protocols import LoginProtocol, OAuth2Login, SAML2Login
from fedbridge.core.provider import OIDCProvider, ProviderMetadata
from fedbridge.core.resolver import (
    CreateInvocation,
    ExchangeInvocation,
    IdentityResolver,
    RefreshInvocation,
)
from fedbridge.errors import ConnectorClosed, SessionCorrupt, SubjectTokenTypeRejected
from fedbridge.models import CallbackRequest, ConnectorData, Identity, Scopes, UpstreamToken

logger = structlog.get_logger(__name__)


class HSDPConnector:
    """Authenticates users against the upstream IdP in OAuth2 or SAML2 mode."""

    def __init__(
        self,
        settings: ConnectorSettings,
        http_client: httpx.AsyncClient,
        protocol: LoginProtocol,
        oauth_client: OAuth2Client,
        resolver: IdentityResolver,
        metadata: ProviderMetadata,
    ) -> None:
        self._settings = settings
        self._metadata = metadata
        self._http_client = http_client
        self._protocol = protocol
        self._oauth_client = oauth_client
        self._resolver = resolver
        self._closed = False

    @property
    def settings(self) -> ConnectorSettings:
        """Return the immutable connector settings."""
        return self._settings

    @property
    def metadata(self) -> ProviderMetadata:
        """Return the discovered provider metadata."""
        return self._metadata

    @property
    def protocol(self) -> LoginProtocol:
        """Return the login protocol selected at construction."""
        return self._protocol

    @property
    def closed(self) -> bool:
        """Return True once close() has run."""
        return self._closed

    def login_url(self, scopes: Scopes, callback_url: str, state: str) -> str:
        """Build the redirect target for a new login."""
        self._ensure_open()
        return self._protocol.login_url(scopes=scopes, callback_url=callback_url, state=state)

    async def handle_callback(self, scopes: Scopes, request: CallbackRequest) -> Identity:
        """Exchange the provider callback and resolve the identity."""
        self._ensure_open()
        token, assertion = await self._protocol.exchange_callback(request)
        return await self._resolver.resolve(token, CreateInvocation(assertion=assertion))

    async def refresh(self, scopes: Scopes, identity: Identity) -> Identity:
        """Renew a session from the refresh token stored in the session blob."""
        self._ensure_open()
        try:
            connector_data = ConnectorData.decode(identity.connector_data)
            refresh_token = connector_data.refresh_token.decode("utf-8")
        except (ValidationError, ValueError) as exc:
            raise SessionCorrupt(f"Failed to unmarshal connector data: {exc}") from exc

        token = await self._oauth_client.refresh(refresh_token)
        return await self._resolver.resolve(token, RefreshInvocation())

    async def token_identity(self, subject_token_type: str, subject_token: str) -> Identity:
        """Resolve the identity behind an externally supplied subject token."""
        self._ensure_open()
        allowed = self._settings.allowed_subject_token_types
        if allowed and subject_token_type not in allowed:
            raise SubjectTokenTypeRejected(
                f"Subject token type {subject_token_type!r} is not supported."
            )
        token = UpstreamToken(access_token=subject_token, token_type="Bearer")
        return await self._resolver.resolve(
            token, ExchangeInvocation(subject_token_type=subject_token_type)
        )

    async def close(self) -> None:
        """Release the connector-owned HTTP client; later calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        await self._http_client.aclose()
        logger.info("connector_closed", protocol=self._protocol.name)

    async def __aenter__(self) -> HSDPConnector:
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        """Exit async context manager and close the connector."""
        del exc_type, exc, tb
        await self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise ConnectorClosed("Connector is closed.")


async def open_connector(
    settings: ConnectorSettings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> HSDPConnector:
    """Discover the provider and build a connector for the configured mode."""
    http_client = httpx.AsyncClient(timeout=settings.request_timeout_seconds, transport=transport)
    try:
        provider = await OIDCProvider.discover(
            http_client,
            issuer=settings.issuer_url,
            insecure_issuer=settings.insecure_issuer,
            introspection_endpoint=settings.introspection_endpoint,
            default_introspection_endpoint=settings.default_introspection_endpoint,
        )
    except BaseException:
        await http_client.aclose()
        raise

    metadata = provider.metadata
    client_secret = settings.client_secret.get_secret_value()
    oauth_client = OAuth2Client(
        client_id=settings.client_id,
        client_secret=client_secret,
        redirect_uri=settings.redirect_uri,
        scopes=settings.oauth_scopes,
        authorization_endpoint=metadata.authorization_endpoint,
        token_endpoint=metadata.token_endpoint,
        auth_in_params=bool(settings.basic_auth_unsupported),
        timeout=settings.request_timeout_seconds,
        transport=transport,
    )
    protocol: LoginProtocol
    if settings.is_saml:
        protocol = SAML2Login(
            redirect_uri=settings.redirect_uri,
            saml2_login_url=settings.saml2_login_url,
            token_endpoint=metadata.token_endpoint,
            client_id=settings.client_id,
            client_secret=client_secret,
            http_client=http_client,
        )
    else:
        protocol = OAuth2Login(
            redirect_uri=settings.redirect_uri,
            oauth_client=oauth_client,
            hosted_domains=settings.hosted_domains,
            prompt_type=settings.prompt_type,
        )
    iam_client = IAMClient(
        http_client=http_client,
        introspection_endpoint=metadata.introspection_endpoint,
        idm_url=str(settings.idm_url),
        client_id=settings.client_id,
        client_secret=client_secret,
    )
    resolver = IdentityResolver(settings=settings, provider=provider, iam_client=iam_client)

    if settings.insecure_skip_email_verified and not settings.is_saml:
        logger.warning(
            "email_verification_skipped",
            detail="OAuth2 logins report email_verified=true regardless of upstream claims.",
        )
    logger.info(
        "connector_opened",
        protocol=protocol.name,
        issuer=metadata.issuer,
        scopes=settings.oauth_scopes,
    )
    return HSDPConnector(
        settings=settings,
        http_client=http_client,
        protocol=protocol,
        oauth_client=oauth_client,
        resolver=resolver,
        metadata=metadata,
    )
