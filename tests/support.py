"""Test support: connector settings and an in-memory identity provider."""

from __future__ import annotations

import base64
from collections import Counter
from typing import Any
from urllib.parse import parse_qs

import httpx

from fedbridge.config import ConnectorSettings

ISSUER = "https://idp.local"
IDM_URL = "https://idm.local"
REDIRECT_URI = "https://broker.local/callback"
TOKEN_ENDPOINT = f"{ISSUER}/oauth2/token"
SUBJECT = "3f1c7a2e-0b6d-4d43-9d1e-3a3f0c2b9e11"


def build_settings(**overrides: Any) -> ConnectorSettings:
    """Build connector settings pointing at the fake identity provider."""
    values: dict[str, Any] = {
        "issuer": ISSUER,
        "client_id": "client-id",
        "client_secret": "client-secret",
        "redirect_uri": REDIRECT_URI,
        "idm_url": IDM_URL,
    }
    values.update(overrides)
    return ConnectorSettings(**values)


def basic_auth_header(client_id: str = "client-id", secret: str = "client-secret") -> str:
    """Return the expected basic authorization header value."""
    raw = f"{client_id}:{secret}".encode()
    return "Basic " + base64.b64encode(raw).decode()


class FakeIdentityProvider:
    """Route-based fake of the upstream IdP for httpx.MockTransport."""

    def __init__(self) -> None:
        self.calls: Counter[str] = Counter()
        self.requests: list[httpx.Request] = []
        self.discovery: dict[str, Any] = {
            "issuer": ISSUER,
            "authorization_endpoint": f"{ISSUER}/oauth2/authorize",
            "token_endpoint": TOKEN_ENDPOINT,
            "userinfo_endpoint": f"{ISSUER}/oauth2/userinfo",
            "introspection_endpoint": f"{ISSUER}/oauth2/introspect",
            "jwks_uri": f"{ISSUER}/oauth2/jwks",
        }
        self.token_status = 200
        self.token_body: Any = {
            "access_token": "access-1",
            "refresh_token": "refresh-1",
            "expires_in": 3600,
            "token_type": "Bearer",
        }
        self.userinfo_status = 200
        self.userinfo: Any = {"sub": "userinfo-sub", "email": "jane@acme.com"}
        self.introspect_status = 200
        self.introspection: Any = {
            "active": True,
            "sub": SUBJECT,
            "username": "jane",
            "identity_type": "User",
            "organizations": {
                "managingOrganization": "org-1",
                "organizationList": [
                    {"organizationId": "org-1", "groups": ["admins"], "roles": ["ADMIN"]}
                ],
            },
        }
        self.profile_status = 200
        self.profile: Any = {
            "exchange": {"id": SUBJECT, "loginId": "jane", "givenName": "Jane"},
            "responseCode": "200",
        }

    @property
    def transport(self) -> httpx.MockTransport:
        """Return a mock transport serving this provider."""
        return httpx.MockTransport(self.handle)

    def form(self, index: int) -> dict[str, str]:
        """Return the decoded form body of a recorded request."""
        parsed = parse_qs(self.requests[index].content.decode("utf-8"))
        return {key: values[-1] for key, values in parsed.items()}

    def requests_to(self, path: str) -> list[httpx.Request]:
        """Return recorded requests for a path."""
        return [request for request in self.requests if request.url.path == path]

    def handle(self, request: httpx.Request) -> httpx.Response:
        """Dispatch a request to the matching fake endpoint."""
        path = request.url.path
        self.calls[path] += 1
        self.requests.append(request)
        if path == "/.well-known/openid-configuration":
            return httpx.Response(200, json=self.discovery)
        if path == "/oauth2/token":
            return self._respond(self.token_status, self.token_body)
        if path == "/oauth2/userinfo":
            return self._respond(self.userinfo_status, self.userinfo)
        if path == "/oauth2/introspect":
            return self._respond(self.introspect_status, self.introspection)
        if path.startswith("/security/users/"):
            return self._respond(self.profile_status, self.profile)
        return httpx.Response(404, json={"error": "not_found"})

    @staticmethod
    def _respond(status_code: int, body: Any) -> httpx.Response:
        if isinstance(body, str | bytes):
            return httpx.Response(status_code, content=body)
        return httpx.Response(status_code, json=body)
