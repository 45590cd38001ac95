"""Async HTTP client for IAM introspection and IDM profile lookups."""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import ValidationError

from fedbridge.errors import IntrospectionFailed, ProfileLookupFailed
from fedbridge.models import IntrospectResponse, Profile

INTROSPECT_API_VERSION = "4"
PROFILE_API_VERSION = "1"


class IAMClient:
    """Client for the identity provider's introspection and user endpoints."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        introspection_endpoint: str,
        idm_url: str,
        client_id: str,
        client_secret: str,
    ) -> None:
        self._client = http_client
        self._introspection_endpoint = introspection_endpoint
        self._idm_url = idm_url.rstrip("/")
        self._auth = httpx.BasicAuth(client_id, client_secret)

    async def introspect(self, access_token: str) -> IntrospectResponse:
        """Introspect an access token with client credentials."""
        try:
            response = await self._client.post(
                self._introspection_endpoint,
                data={"token": access_token},
                auth=self._auth,
                headers={"Accept": "application/json", "Api-Version": INTROSPECT_API_VERSION},
            )
        except httpx.RequestError as exc:
            raise IntrospectionFailed(f"Introspect failed: {exc}") from exc
        if response.status_code != 200:
            raise IntrospectionFailed(
                f"Introspect failed: {response.status_code}: {response.text}"
            )
        payload = self._json_object(response, IntrospectionFailed)
        try:
            result = IntrospectResponse.model_validate(payload)
        except ValidationError as exc:
            raise IntrospectionFailed("Introspect returned an invalid payload.") from exc
        if not result.active:
            raise IntrospectionFailed("Introspect reported an inactive token.")
        if not result.sub:
            raise IntrospectionFailed("Introspect response is missing the subject.")
        return result

    async def get_user_profile(self, access_token: str, user_uuid: str) -> Profile:
        """Look up the user profile by subject identifier."""
        try:
            response = await self._client.get(
                f"{self._idm_url}/security/users/{user_uuid}",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                    "Api-Version": PROFILE_API_VERSION,
                },
            )
        except httpx.RequestError as exc:
            raise ProfileLookupFailed(f"Failed to get user profile: {exc}") from exc
        if response.status_code != 200:
            raise ProfileLookupFailed(
                f"Failed to get user profile: {response.status_code}: {response.text}"
            )
        payload = self._json_object(response, ProfileLookupFailed)
        exchange = payload.get("exchange", payload)
        if not isinstance(exchange, dict):
            raise ProfileLookupFailed("User profile response has no exchange object.")
        try:
            return Profile.model_validate(exchange)
        except ValidationError as exc:
            raise ProfileLookupFailed("User profile response is invalid.") from exc

    @staticmethod
    def _json_object(
        response: httpx.Response,
        error_class: type[IntrospectionFailed] | type[ProfileLookupFailed],
    ) -> dict[str, Any]:
        """Return response JSON as object."""
        try:
            payload = response.json()
        except ValueError as exc:
            raise error_class("Upstream returned invalid JSON.") from exc
        if not isinstance(payload, dict):
            raise error_class("Upstream returned invalid JSON object.")
        return payload
