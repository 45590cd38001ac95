"""Identity request and response schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from fedbridge.models import Identity


class IdentityResponse(BaseModel):
    """Canonical identity returned to the broker."""

    user_id: str
    username: str
    email: str
    email_verified: bool
    groups: list[str] = Field(default_factory=list)
    connector_data: str = Field(description="Opaque session blob; send back verbatim on refresh.")

    @classmethod
    def from_identity(cls, identity: Identity) -> IdentityResponse:
        """Render a connector identity for the wire."""
        return cls(
            user_id=identity.user_id,
            username=identity.username,
            email=identity.email,
            email_verified=identity.email_verified,
            groups=list(identity.groups),
            connector_data=identity.connector_data.decode("utf-8"),
        )


class RefreshRequest(BaseModel):
    """Refresh request carrying a previously issued identity."""

    user_id: str = ""
    username: str = ""
    email: str = ""
    email_verified: bool = False
    groups: list[str] = Field(default_factory=list)
    connector_data: str = Field(min_length=1)
    offline_access: bool = False

    def to_identity(self) -> Identity:
        """Rebuild the connector identity from the request payload."""
        return Identity(
            user_id=self.user_id,
            username=self.username,
            email=self.email,
            email_verified=self.email_verified,
            groups=tuple(self.groups),
            connector_data=self.connector_data.encode("utf-8"),
        )


class TokenExchangeRequest(BaseModel):
    """Subject token presented for identity resolution."""

    subject_token_type: str = ""
    subject_token: str = Field(min_length=1)
