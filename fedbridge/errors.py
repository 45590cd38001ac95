"""Connector exception hierarchy."""

from __future__ import annotations


class ConnectorError(Exception):
    """Base class for all connector failures."""

    code = "connector_error"
    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ConfigMismatch(ConnectorError):
    """Raised when a caller-supplied value disagrees with the configuration."""

    code = "config_mismatch"
    status_code = 400


class UpstreamAuthError(ConnectorError):
    """Raised when the identity provider reports an error on the callback."""

    code = "upstream_auth_error"
    status_code = 401

    def __init__(self, error: str, error_description: str = "") -> None:
        detail = f"{error}: {error_description}" if error_description else error
        super().__init__(detail)
        self.error = error
        self.error_description = error_description


class TokenExchangeFailed(ConnectorError):
    """Raised when the code or assertion exchange fails."""

    code = "token_exchange_failed"
    status_code = 502


class UserInfoFailed(ConnectorError):
    """Raised when userinfo claims cannot be loaded."""

    code = "userinfo_failed"
    status_code = 502


class IntrospectionFailed(ConnectorError):
    """Raised when token introspection fails or reports an inactive token."""

    code = "introspection_failed"
    status_code = 401


class MissingEmailClaim(ConnectorError):
    """Raised when the email scope was requested but no email was resolved."""

    code = "missing_email_claim"
    status_code = 401


class DomainNotAllowed(ConnectorError):
    """Raised when the hd claim is not in the hosted domain allow-list."""

    code = "domain_not_allowed"
    status_code = 403


class ProfileLookupFailed(ConnectorError):
    """Raised by the IAM client when the profile lookup fails."""

    code = "profile_lookup_failed"
    status_code = 502


class SessionCorrupt(ConnectorError):
    """Raised when stored connector data cannot be decoded."""

    code = "session_corrupt"
    status_code = 400


class RefreshFailed(ConnectorError):
    """Raised when the stored refresh token cannot be redeemed."""

    code = "refresh_failed"
    status_code = 401


class SubjectTokenTypeRejected(ConnectorError):
    """Raised when a subject token type is outside the configured allow-list."""

    code = "unsupported_token_type"
    status_code = 400


class ProviderDiscoveryFailed(ConnectorError):
    """Raised when provider metadata cannot be loaded or is unusable."""

    code = "provider_unavailable"
    status_code = 503


class ConnectorClosed(ConnectorError):
    """Raised when an operation is attempted after close()."""

    code = "connector_closed"
    status_code = 503
