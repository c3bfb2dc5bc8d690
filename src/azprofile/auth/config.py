from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Final

from pydantic import AliasChoices, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .environments import AzureEnvironment, get_environment

# Public client registered for Azure PowerShell; works in every tenant.
DEFAULT_CLIENT_ID: Final[str] = "1950a258-227b-4e31-a9cf-717495945fc2"


class Strategy(str, Enum):
    """Supported ways of signing in the principal."""

    INTERACTIVE_BROWSER = "interactive_browser"
    USERNAME_PASSWORD = "username_password"
    CLIENT_SECRET = "client_secret"
    CLIENT_CERTIFICATE = "client_certificate"


class TokenMode(str, Enum):
    """Whether token acquisition may prompt the user."""

    INTERACTIVE = "interactive"
    CACHED_ONLY = "cached_only"


class DiscoveryScope(str, Enum):
    """Which subscription APIs a discovery pass queries."""

    RESOURCE_MANAGER = "resource_manager"
    CLASSIC = "classic"
    ALL = "all"


class AuthSettings(BaseSettings):
    """Settings for authentication and subscription discovery.

    Values are read from keyword arguments or from environment variables.

    Environment variables (aliases supported where noted):
        - AZURE_AUTH_STRATEGY
        - AZURE_CLIENT_ID
        - AZURE_TENANT_ID
        - AZURE_CLIENT_SECRET
        - AZURE_CLIENT_CERTIFICATE_PATH
        - AZURE_CLIENT_CERTIFICATE_PASSWORD
        - AZURE_USERNAME
        - AZURE_PASSWORD
        - AZURE_ENVIRONMENT
        - AZURE_DISCOVERY_SCOPE
        - AZURE_RECOVERY_SCOPE
        - AZURE_PARALLEL_DISCOVERY
        - AZURE_HTTP_TIMEOUT
        - AZURE_CERTIFICATE_DIRECTORY
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
    )

    # With validation_alias set, the field name itself is only accepted when
    # it is listed among the alias choices.

    strategy: Strategy = Field(
        default=Strategy.INTERACTIVE_BROWSER,
        validation_alias=AliasChoices("strategy", "AZURE_AUTH_STRATEGY"),
    )
    client_id: str = Field(
        default=DEFAULT_CLIENT_ID,
        validation_alias=AliasChoices("client_id", "AZURE_CLIENT_ID"),
    )
    tenant_id: str | None = Field(
        default=None, validation_alias=AliasChoices("tenant_id", "AZURE_TENANT_ID")
    )
    client_secret: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("client_secret", "AZURE_CLIENT_SECRET"),
    )
    certificate_path: Path | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "certificate_path", "AZURE_CLIENT_CERTIFICATE_PATH"
        ),
    )
    certificate_password: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "certificate_password", "AZURE_CLIENT_CERTIFICATE_PASSWORD"
        ),
    )
    username: str | None = Field(
        default=None,
        validation_alias=AliasChoices("username", "AZURE_USERNAME"),
    )
    password: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("password", "AZURE_PASSWORD"),
    )
    environment: str = Field(
        default="AzureCloud",
        validation_alias=AliasChoices("environment", "AZURE_ENVIRONMENT"),
    )
    scope: DiscoveryScope = Field(
        default=DiscoveryScope.ALL,
        validation_alias=AliasChoices("scope", "AZURE_DISCOVERY_SCOPE"),
    )
    recovery_scope: DiscoveryScope = Field(
        default=DiscoveryScope.ALL,
        validation_alias=AliasChoices("recovery_scope", "AZURE_RECOVERY_SCOPE"),
    )
    parallel_discovery: bool = Field(
        default=False,
        validation_alias=AliasChoices("parallel_discovery", "AZURE_PARALLEL_DISCOVERY"),
    )
    http_timeout: float = Field(
        default=30.0,
        gt=0,
        validation_alias=AliasChoices("http_timeout", "AZURE_HTTP_TIMEOUT"),
    )
    certificate_directory: Path | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "certificate_directory", "AZURE_CERTIFICATE_DIRECTORY"
        ),
    )

    @field_validator("certificate_path", "certificate_directory")
    @classmethod
    def _ensure_existing_path(cls, v: Path | None) -> Path | None:
        """Ensure configured paths exist if provided."""
        if v is not None and not v.exists():
            raise ValueError(f"Path does not exist: {v}")
        return v

    @model_validator(mode="after")
    def _cross_field_validation(self) -> "AuthSettings":
        """Validate required fields for the selected strategy."""
        s = self.strategy
        if s is Strategy.CLIENT_SECRET:
            if not (self.tenant_id and self.client_secret):
                raise ValueError("client_secret requires tenant_id and client_secret.")
        elif s is Strategy.CLIENT_CERTIFICATE:
            if not (self.tenant_id and self.certificate_path):
                raise ValueError(
                    "client_certificate requires tenant_id and certificate_path."
                )
        elif s is Strategy.USERNAME_PASSWORD:
            if not (self.username and self.password):
                raise ValueError("username_password requires username and password.")
        return self

    @property
    def is_service_principal(self) -> bool:
        return self.strategy in (Strategy.CLIENT_SECRET, Strategy.CLIENT_CERTIFICATE)

    def resolve_environment(self) -> AzureEnvironment:
        return get_environment(self.environment)
