"""Subscription discovery through the resource manager and classic APIs.

Both discoverers are generators: the network calls for an element happen when
the element is pulled, so a failure can surface after earlier elements have
already been yielded. Callers must be prepared for partial results.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Final, Iterator, Protocol
from uuid import UUID

import requests

from .config import TokenMode
from .environments import AzureEnvironment
from .errors import DiscoveryError
from .models import AccessToken, EndpointConfig, LoginKind, Subscription
from .rest import DEFAULT_TIMEOUT, fetch_text, paged_fetch
from .scopes import join_endpoint
from .tenants import RESOURCE_MANAGER_API_VERSION, list_tenants
from .tokens import TokenProvider

logger = logging.getLogger(__name__)

CLASSIC_API_VERSION: Final[str] = "2013-08-01"

DiscoveredSubscription = tuple[Subscription, AccessToken]


def token_for_subscription(common: AccessToken, tenant_token: AccessToken) -> AccessToken:
    """Pick the token to cache for a subscription.

    Interactive identities need the tenant-scoped token; organizational
    identities can use the common token for every tenant.
    """
    if common.login_kind is LoginKind.INTERACTIVE:
        return tenant_token
    return common


def _parse_subscription_id(value: object, source: str) -> UUID:
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise DiscoveryError(f"Invalid subscription id {value!r} from {source}") from exc


class SubscriptionDiscoverer(Protocol):
    def discover(
        self,
        environment: AzureEnvironment,
        common_token: AccessToken,
        token_provider: TokenProvider,
        mode: TokenMode,
        secret: str | None = None,
    ) -> Iterator[DiscoveredSubscription]:
        """Yield each subscription together with the token that authorizes it."""
        raise NotImplementedError


class ResourceManagerDiscoverer:
    """Lists subscriptions tenant by tenant through the resource manager API."""

    name = "resource_manager"

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._session = session
        self._timeout = timeout

    def discover(
        self,
        environment: AzureEnvironment,
        common_token: AccessToken,
        token_provider: TokenProvider,
        mode: TokenMode,
        secret: str | None = None,
    ) -> Iterator[DiscoveredSubscription]:
        url = join_endpoint(
            environment.resource_manager_endpoint,
            f"subscriptions?api-version={RESOURCE_MANAGER_API_VERSION}",
        )
        tenants = list_tenants(
            environment, common_token, session=self._session, timeout=self._timeout
        )
        for tenant_id in tenants:
            tenant_token = token_provider.acquire(
                EndpointConfig.for_tenant(environment, tenant_id),
                common_token.user_id,
                secret,
                mode,
            )
            count = 0
            for item in paged_fetch(
                url, tenant_token, session=self._session, timeout=self._timeout
            ):
                if not isinstance(item, dict):
                    raise DiscoveryError(
                        f"Malformed subscription entry in response of {url}"
                    )
                subscription = Subscription(
                    id=_parse_subscription_id(item.get("subscriptionId"), url),
                    name=item.get("displayName") or "",
                    environment=environment.name,
                    tenant_id=item.get("tenantId") or tenant_id,
                )
                count += 1
                yield subscription, token_for_subscription(common_token, tenant_token)
            logger.info("Tenant %s has %d resource manager subscriptions", tenant_id, count)


class ClassicDiscoverer:
    """Lists subscriptions once through the classic service management API."""

    name = "classic"

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._session = session
        self._timeout = timeout

    def discover(
        self,
        environment: AzureEnvironment,
        common_token: AccessToken,
        token_provider: TokenProvider,
        mode: TokenMode,
        secret: str | None = None,
    ) -> Iterator[DiscoveredSubscription]:
        url = join_endpoint(environment.service_endpoint, "subscriptions")
        body = fetch_text(
            url,
            common_token,
            session=self._session,
            headers={"x-ms-version": CLASSIC_API_VERSION},
            timeout=self._timeout,
        )
        for subscription_id, name, tenant_id in parse_classic_subscriptions(body, url):
            subscription = Subscription(
                id=_parse_subscription_id(subscription_id, url),
                name=name,
                environment=environment.name,
                tenant_id=tenant_id,
            )
            if common_token.login_kind is LoginKind.INTERACTIVE:
                if not tenant_id:
                    raise DiscoveryError(
                        f"Classic subscription {subscription_id} has no tenant id"
                    )
                token = token_provider.acquire(
                    EndpointConfig.for_tenant(environment, tenant_id),
                    common_token.user_id,
                    secret,
                    mode,
                )
            else:
                token = common_token
            yield subscription, token


def _local_name(tag: str) -> str:
    return tag.rpartition("}")[2]


def parse_classic_subscriptions(
    body: str, source: str = "classic endpoint"
) -> list[tuple[str, str, str | None]]:
    """Parse a classic ``ListSubscriptions`` XML body.

    Returns:
        ``(subscription id, subscription name, AAD tenant id)`` triples.

    Raises:
        DiscoveryError: If the body is not a ``Subscriptions`` document or
            carries a document type declaration.
    """
    # The service never sends a DTD; refusing one keeps entity declarations
    # out of the parser.
    if "<!DOCTYPE" in body.upper():
        raise DiscoveryError(f"Unexpected document type declaration from {source}")
    try:
        root = ET.fromstring(body)
    except ET.ParseError as exc:
        raise DiscoveryError(f"Malformed XML from {source}: {exc}") from exc
    if _local_name(root.tag) != "Subscriptions":
        raise DiscoveryError(f"Unexpected root element {root.tag!r} from {source}")

    triples = []
    for element in root:
        if _local_name(element.tag) != "Subscription":
            continue
        fields = {_local_name(child.tag): (child.text or "").strip() for child in element}
        subscription_id = fields.get("SubscriptionID")
        if not subscription_id:
            raise DiscoveryError(f"Subscription without SubscriptionID from {source}")
        triples.append(
            (
                subscription_id,
                fields.get("SubscriptionName", ""),
                fields.get("AADTenantID") or None,
            )
        )
    return triples
