"""Test doubles for the token provider and the HTTP session."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from azprofile.auth.config import TokenMode
from azprofile.auth.errors import AuthenticationError, NoCachedCredentialError
from azprofile.auth.models import AccessToken, EndpointConfig, LoginKind

RM = "https://management.azure.com"
TENANTS_URL = f"{RM}/tenants?api-version=2020-01-01"
RM_SUBSCRIPTIONS_URL = f"{RM}/subscriptions?api-version=2020-01-01"
CLASSIC_SUBSCRIPTIONS_URL = "https://management.core.windows.net/subscriptions"

T1 = "11111111-1111-1111-1111-111111111111"
T2 = "22222222-2222-2222-2222-222222222222"
S1 = UUID("aaaaaaaa-0000-0000-0000-000000000001")
S2 = UUID("aaaaaaaa-0000-0000-0000-000000000002")
S3 = UUID("aaaaaaaa-0000-0000-0000-000000000003")
USER = "someone@contoso.com"


class FakeTokenProvider:
    """Token provider that issues ``tok-<tenant>`` tokens and records calls."""

    def __init__(
        self,
        user_id: str = USER,
        login_kind: LoginKind = LoginKind.ORGANIZATIONAL,
        *,
        cached: bool = False,
        reject_tenants: tuple[str, ...] = (),
    ) -> None:
        self.user_id = user_id
        self.login_kind = login_kind
        self.cached = cached
        self.reject_tenants = reject_tenants
        self.calls: list[tuple[str, str | None, TokenMode]] = []
        self.issued: set[str] = set()

    @property
    def interactive_calls(self) -> int:
        return sum(1 for _, _, mode in self.calls if mode is TokenMode.INTERACTIVE)

    def acquire(
        self,
        config: EndpointConfig,
        user_id: str | None = None,
        secret: str | None = None,
        mode: TokenMode = TokenMode.INTERACTIVE,
    ) -> AccessToken:
        self.calls.append((config.tenant, user_id, mode))
        if config.tenant in self.reject_tenants:
            raise AuthenticationError(f"rejected by {config.tenant}")
        if mode is TokenMode.CACHED_ONLY and not (
            self.cached or config.tenant in self.issued
        ):
            raise NoCachedCredentialError(f"nothing cached for {config.tenant}")
        self.issued.add(config.tenant)
        return AccessToken(
            token=f"tok-{config.tenant}",
            user_id=self.user_id,
            login_kind=self.login_kind,
            tenant_id=config.tenant,
            expires_on=4102444800,
        )


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        json_body: Any = None,
        text: str = "",
    ) -> None:
        self.status_code = status_code
        self._json = json_body
        self.text = text

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("no JSON body")
        return self._json


class FakeSession:
    """Routes GET requests by URL and, optionally, by bearer token."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str | None], FakeResponse | Exception] = {}
        self.calls: list[tuple[str, dict[str, str]]] = []

    def add(
        self, url: str, response: FakeResponse | Exception, token: str | None = None
    ) -> None:
        self.routes[(url, token)] = response

    def get(self, url: str, headers: dict[str, str], timeout: float) -> FakeResponse:
        self.calls.append((url, dict(headers)))
        token = headers.get("Authorization", "").removeprefix("Bearer ")
        response = self.routes.get((url, token), self.routes.get((url, None)))
        if response is None:
            return FakeResponse(404)
        if isinstance(response, Exception):
            raise response
        return response


def classic_xml(*subscriptions: tuple[UUID, str, str]) -> str:
    items = "".join(
        "<Subscription>"
        f"<SubscriptionID>{sid}</SubscriptionID>"
        f"<SubscriptionName>{name}</SubscriptionName>"
        f"<SubscriptionStatus>Active</SubscriptionStatus>"
        f"<AADTenantID>{tenant}</AADTenantID>"
        "</Subscription>"
        for sid, name, tenant in subscriptions
    )
    return (
        '<Subscriptions xmlns="http://schemas.microsoft.com/windowsazure" '
        'xmlns:i="http://www.w3.org/2001/XMLSchema-instance">'
        f"{items}</Subscriptions>"
    )


def rm_subscriptions(*subscriptions: tuple[UUID, str]) -> FakeResponse:
    return FakeResponse(
        json_body={
            "value": [
                {"subscriptionId": str(sid), "displayName": name, "state": "Enabled"}
                for sid, name in subscriptions
            ]
        }
    )


