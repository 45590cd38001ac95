"""OAuth2 authorization-code and refresh-token operations via authlib."""

from __future__ import annotations

import httpx
from authlib.integrations.httpx_client import AsyncOAuth2Client
from authlib.oauth2.rfc6749.parameters import prepare_grant_uri

from fedbridge.errors import RefreshFailed, TokenExchangeFailed
from fedbridge.models import UpstreamToken


class OAuth2Client:
    """Authlib-backed OAuth2 client for the upstream token endpoint."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: list[str],
        authorization_endpoint: str,
        token_endpoint: str,
        auth_in_params: bool = False,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._scopes = scopes
        self._authorization_endpoint = authorization_endpoint
        self._token_endpoint = token_endpoint
        self._auth_method = "client_secret_post" if auth_in_params else "client_secret_basic"
        self._timeout = timeout
        self._transport = transport

    def authorization_url(self, state: str, **params: str) -> str:
        """Build an authorization-code URL with extra query parameters."""
        return prepare_grant_uri(
            self._authorization_endpoint,
            client_id=self._client_id,
            response_type="code",
            redirect_uri=self._redirect_uri,
            scope=self._scopes,
            state=state,
            **params,
        )

    async def exchange_code(self, code: str) -> UpstreamToken:
        """Exchange an authorization code for a token."""
        client = self._build_client()
        try:
            payload = await client.fetch_token(
                self._token_endpoint,
                grant_type="authorization_code",
                code=code,
                redirect_uri=self._redirect_uri,
            )
        except Exception as exc:
            raise TokenExchangeFailed(f"Failed to get token: {exc}") from exc
        finally:
            await client.aclose()
        return UpstreamToken.from_payload(payload)

    async def refresh(self, refresh_token: str) -> UpstreamToken:
        """Redeem a refresh token.

        A missing refresh token fails without contacting the provider.
        """
        if not refresh_token:
            raise RefreshFailed("Failed to get refresh token: refresh token is not set.")
        client = self._build_client()
        try:
            payload = await client.refresh_token(
                self._token_endpoint,
                refresh_token=refresh_token,
            )
        except Exception as exc:
            raise RefreshFailed(f"Failed to get refresh token: {exc}") from exc
        finally:
            await client.aclose()
        refreshed = UpstreamToken.from_payload(payload)
        if not refreshed.refresh_token:
            # Providers may omit the refresh token when it is not rotated.
            refreshed = UpstreamToken(
                access_token=refreshed.access_token,
                token_type=refreshed.token_type,
                refresh_token=refresh_token,
                expires_at=refreshed.expires_at,
            )
        return refreshed

    def _build_client(self) -> AsyncOAuth2Client:
        """Build authlib OAuth2 client for the upstream endpoints."""
        kwargs: dict[str, object] = {"timeout": self._timeout}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return AsyncOAuth2Client(
            client_id=self._client_id,
            client_secret=self._client_secret,
            scope=" ".join(self._scopes),
            redirect_uri=self._redirect_uri,
            token_endpoint_auth_method=self._auth_method,
            **kwargs,
        )
