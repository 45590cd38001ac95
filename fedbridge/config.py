"""Connector settings and logging configuration."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any, Literal

import structlog
from pydantic import (
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationInfo,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_CONTEXT: dict[str, str] = {"environment": "development", "service": "fedbridge"}

SCOPE_OPENID = "openid"
DEFAULT_SCOPES = ("profile", "email", "groups")
# The IdP rejects any scope containing a colon.
UNSUPPORTED_SCOPES = frozenset({"federated:id"})


class AppSettings(BaseModel):
    """Application identity and runtime settings."""

    environment: Literal["development", "staging", "production"] = "development"
    service: str = "fedbridge"
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


class ConnectorSettings(BaseModel):
    """Upstream identity provider settings, immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    issuer: AnyHttpUrl
    insecure_issuer: str = ""
    client_id: str = Field(min_length=1)
    client_secret: SecretStr
    redirect_uri: str = Field(min_length=1)
    scopes: tuple[str, ...] = ()
    hosted_domains: tuple[str, ...] = ()
    saml2_login_url: str = ""
    prompt_type: str = "consent"
    iam_url: AnyHttpUrl | None = None
    idm_url: AnyHttpUrl
    introspection_endpoint: str = ""
    tenant_map: dict[str, str] = Field(default_factory=dict)
    enable_group_claim: bool = False
    enable_role_claim: bool = False
    role_as_group_claim: bool = False
    basic_auth_unsupported: bool | None = None
    # The IdP does not reliably emit email_verified; see DESIGN.md.
    insecure_skip_email_verified: bool = True
    allowed_subject_token_types: tuple[str, ...] = ()
    request_timeout_seconds: float = Field(default=10.0, gt=0)

    @field_validator("prompt_type")
    @classmethod
    def default_prompt_type(cls, value: str) -> str:
        """Fall back to consent when the prompt type is blank."""
        return value.strip() or "consent"

    @field_validator("role_as_group_claim")
    @classmethod
    def require_role_claim(cls, value: bool, info: ValidationInfo) -> bool:
        """Roles can only be mapped to groups when role claims are enabled."""
        if value and not info.data.get("enable_role_claim", False):
            raise ValueError("connector.role_as_group_claim requires enable_role_claim.")
        return value

    @property
    def is_saml(self) -> bool:
        """Return True when logins go through the SAML2 bearer exchange."""
        return bool(self.saml2_login_url)

    @property
    def oauth_scopes(self) -> list[str]:
        """Return the scope list sent upstream, openid first."""
        if not self.scopes:
            return [SCOPE_OPENID, *DEFAULT_SCOPES]
        filtered = [scope for scope in self.scopes if scope not in UNSUPPORTED_SCOPES]
        return [SCOPE_OPENID, *filtered]

    @property
    def default_introspection_endpoint(self) -> str:
        """Return the IAM introspection URL used when discovery omits one."""
        if self.iam_url is None:
            return ""
        return str(self.iam_url).rstrip("/") + "/authorize/oauth2/introspect"

    @property
    def issuer_url(self) -> str:
        """Return the issuer without a trailing slash."""
        return str(self.issuer).rstrip("/")


class Settings(BaseSettings):
    """Root settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=AppSettings)
    connector: ConnectorSettings


def _standard_log_fields(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Inject required structured logging fields."""
    context_vars = structlog.contextvars.get_contextvars()
    event_dict.setdefault("correlation_id", str(context_vars.get("correlation_id", "unknown")))
    event_dict.setdefault("environment", _LOG_CONTEXT["environment"])
    event_dict.setdefault("service", _LOG_CONTEXT["service"])
    event_dict.setdefault("timestamp", datetime.now(UTC).isoformat())
    return event_dict


def configure_structlog(settings: Settings) -> None:
    """Configure structlog for JSON output with required fields."""
    _LOG_CONTEXT["environment"] = settings.app.environment
    _LOG_CONTEXT["service"] = settings.app.service

    log_level = getattr(logging, settings.app.log_level, logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            _standard_log_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@lru_cache
def get_settings() -> Settings:
    """Load and cache application settings from environment variables."""
    return Settings()
