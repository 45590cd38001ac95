"""Login protocol strategies: OAuth2 authorization code and SAML2 bearer assertion."""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from fedbridge.core.oauth import OAuth2Client
from fedbridge.errors import ConfigMismatch, TokenExchangeFailed, UpstreamAuthError
from fedbridge.models import CallbackRequest, Scopes, UpstreamToken

SAML2_BEARER_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:saml2-bearer"
SAML2_TOKEN_API_VERSION = "2"


def _set_query_param(url: str, key: str, value: str) -> str:
    """Return url with one query parameter set, keeping the others."""
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query[key] = value
    return urlunsplit(
        (parts.scheme, parts.netloc, parts.path, urlencode(sorted(query.items())), parts.fragment)
    )


class LoginProtocol:
    """Shared login URL and callback handling for both protocol modes."""

    name = "base"

    def __init__(self, redirect_uri: str) -> None:
        self._redirect_uri = redirect_uri

    def login_url(self, scopes: Scopes, callback_url: str, state: str) -> str:
        """Validate the callback URL, then build the upstream login URL."""
        if callback_url != self._redirect_uri:
            raise ConfigMismatch(
                f"Expected callback URL {callback_url!r} did not match "
                f"the URL in the config {self._redirect_uri!r}."
            )
        return self._build_login_url(scopes=scopes, callback_url=callback_url, state=state)

    async def exchange_callback(
        self, request: CallbackRequest
    ) -> tuple[UpstreamToken, str | None]:
        """Exchange the callback for a token and the raw assertion, if any.

        An ``error`` parameter short-circuits before any upstream call.
        """
        error = request.get("error")
        if error:
            raise UpstreamAuthError(error, request.get("error_description"))
        return await self._exchange(request)

    def _build_login_url(self, scopes: Scopes, callback_url: str, state: str) -> str:
        raise NotImplementedError

    async def _exchange(self, request: CallbackRequest) -> tuple[UpstreamToken, str | None]:
        raise NotImplementedError


class OAuth2Login(LoginProtocol):
    """Standard authorization-code login."""

    name = "oauth2"

    def __init__(
        self,
        redirect_uri: str,
        oauth_client: OAuth2Client,
        hosted_domains: tuple[str, ...] = (),
        prompt_type: str = "consent",
    ) -> None:
        super().__init__(redirect_uri)
        self._oauth_client = oauth_client
        self._hosted_domains = hosted_domains
        self._prompt_type = prompt_type

    def _build_login_url(self, scopes: Scopes, callback_url: str, state: str) -> str:
        params: dict[str, str] = {}
        if self._hosted_domains:
            params["hd"] = self._hosted_domains[0] if len(self._hosted_domains) == 1 else "*"
        if scopes.offline_access:
            params["access_type"] = "offline"
            params["prompt"] = self._prompt_type
        return self._oauth_client.authorization_url(state, **params)

    async def _exchange(self, request: CallbackRequest) -> tuple[UpstreamToken, str | None]:
        code = request.get("code")
        if not code:
            raise TokenExchangeFailed("Callback is missing the authorization code.")
        token = await self._oauth_client.exchange_code(code)
        return token, None


class SAML2Login(LoginProtocol):
    """Login through a SAML page whose assertion is exchanged for a token."""

    name = "saml2"

    def __init__(
        self,
        redirect_uri: str,
        saml2_login_url: str,
        token_endpoint: str,
        client_id: str,
        client_secret: str,
        http_client: httpx.AsyncClient,
    ) -> None:
        super().__init__(redirect_uri)
        self._saml2_login_url = saml2_login_url
        self._token_endpoint = token_endpoint
        self._auth = httpx.BasicAuth(client_id, client_secret)
        self._client = http_client

    def _build_login_url(self, scopes: Scopes, callback_url: str, state: str) -> str:
        parts = urlsplit(self._saml2_login_url)
        if not parts.scheme or not parts.netloc:
            raise ConfigMismatch(f"Invalid SAML2 login URL {self._saml2_login_url!r}.")
        callback_with_state = _set_query_param(callback_url, "state", state)
        return _set_query_param(self._saml2_login_url, "redirect_uri", callback_with_state)

    async def _exchange(self, request: CallbackRequest) -> tuple[UpstreamToken, str | None]:
        assertion = request.get("assertion")
        if not assertion:
            raise TokenExchangeFailed("Callback is missing the SAML2 assertion.")
        try:
            response = await self._client.post(
                self._token_endpoint,
                data={"grant_type": SAML2_BEARER_GRANT_TYPE, "assertion": assertion},
                auth=self._auth,
                headers={
                    "Accept": "application/json",
                    "Api-Version": SAML2_TOKEN_API_VERSION,
                },
            )
        except httpx.RequestError as exc:
            raise TokenExchangeFailed(f"SAML2 assertion exchange failed: {exc}") from exc
        if response.status_code != 200:
            raise TokenExchangeFailed(f"{response.status_code}: {response.text}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise TokenExchangeFailed("Failed to decode token response.") from exc
        if not isinstance(payload, dict):
            raise TokenExchangeFailed("Failed to decode token response.")
        return UpstreamToken.from_payload(payload), assertion
