from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Final, Union
from uuid import UUID

from azure.core.credentials import AccessToken as CoreAccessToken
from cryptography import x509

from .environments import AzureEnvironment
from .scopes import resource_scope, tenant_authority

# Home tenant of consumer (Microsoft account) identities.
CONSUMER_TENANT_ID: Final[str] = "9188040d-6c67-4c5b-b112-36a304b66dad"


class LoginKind(str, Enum):
    """Class of authenticated principal.

    ``INTERACTIVE`` identities (consumer Microsoft accounts) receive tokens
    that are only valid for the tenant they were issued for.
    ``ORGANIZATIONAL`` identities (work or school accounts and service
    principals) receive a common token that is valid across their tenants.
    """

    INTERACTIVE = "interactive"
    ORGANIZATIONAL = "organizational"


def login_kind_for_tenant(home_tenant_id: str | None) -> LoginKind:
    if home_tenant_id and home_tenant_id.lower() == CONSUMER_TENANT_ID:
        return LoginKind.INTERACTIVE
    return LoginKind.ORGANIZATIONAL


@dataclass(frozen=True)
class EndpointConfig:
    """Identity endpoint configuration for one tenant."""

    authority: str
    resource: str
    tenant: str

    @classmethod
    def for_tenant(cls, environment: AzureEnvironment, tenant: str) -> EndpointConfig:
        return cls(
            authority=environment.active_directory_endpoint,
            resource=environment.active_directory_service_endpoint_resource_id,
            tenant=tenant,
        )

    @property
    def authority_url(self) -> str:
        return tenant_authority(self.authority, self.tenant)

    @property
    def scopes(self) -> list[str]:
        return [resource_scope(self.resource)]


@dataclass(frozen=True)
class AccessToken:
    """Bearer token together with the identity it was issued to."""

    token: str
    user_id: str
    login_kind: LoginKind
    tenant_id: str
    expires_on: int = 0

    def authorization_header(self) -> str:
        return f"Bearer {self.token}"

    def __repr__(self) -> str:
        # Keep the raw token out of logs and tracebacks.
        return (
            f"AccessToken(user_id={self.user_id!r}, login_kind={self.login_kind.value!r}, "
            f"tenant_id={self.tenant_id!r}, expires_on={self.expires_on})"
        )


@dataclass(frozen=True)
class Subscription:
    """A subscription as reported by one of the listing APIs."""

    id: UUID
    name: str
    environment: str
    tenant_id: str | None = None
    account: str | None = None


@dataclass(frozen=True)
class AccessTokenCredential:
    """Bearer-token credential for one subscription.

    Implements the ``azure.core.credentials.TokenCredential`` protocol, so it
    can be handed to Azure SDK clients directly. The cached token was issued
    for the environment's management resource; requested scopes are ignored.
    """

    subscription_id: str
    access_token: AccessToken

    def get_token(self, *scopes: str, **kwargs: Any) -> CoreAccessToken:
        return CoreAccessToken(self.access_token.token, self.access_token.expires_on)

    def authorization_header(self) -> str:
        return self.access_token.authorization_header()


@dataclass(frozen=True)
class CertificateCredential:
    """Management-certificate credential for one subscription."""

    subscription_id: str
    certificate: x509.Certificate


ResolvedCredential = Union[AccessTokenCredential, CertificateCredential]


__all__ = [
    "CONSUMER_TENANT_ID",
    "LoginKind",
    "login_kind_for_tenant",
    "EndpointConfig",
    "AccessToken",
    "Subscription",
    "AccessTokenCredential",
    "CertificateCredential",
    "ResolvedCredential",
]
