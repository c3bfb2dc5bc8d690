from __future__ import annotations

import pytest
import requests

from azprofile.auth.config import TokenMode
from azprofile.auth.discovery import (
    ClassicDiscoverer,
    ResourceManagerDiscoverer,
    parse_classic_subscriptions,
    token_for_subscription,
)
from azprofile.auth.environments import AzureEnvironment
from azprofile.auth.errors import DiscoveryError
from azprofile.auth.models import AccessToken, EndpointConfig, LoginKind
from azprofile.auth.tenants import list_tenants
from fakes import (
    CLASSIC_SUBSCRIPTIONS_URL,
    RM_SUBSCRIPTIONS_URL,
    S1,
    S2,
    S3,
    T1,
    T2,
    TENANTS_URL,
    USER,
    FakeResponse,
    FakeSession,
    FakeTokenProvider,
    classic_xml,
)


def _common(provider: FakeTokenProvider, environment: AzureEnvironment) -> AccessToken:
    return provider.acquire(EndpointConfig.for_tenant(environment, "common"))


def test_token_for_subscription__dispatches_on_login_kind() -> None:
    tenant = AccessToken("tenant", USER, LoginKind.ORGANIZATIONAL, T1)
    organizational = AccessToken("common", USER, LoginKind.ORGANIZATIONAL, "common")
    interactive = AccessToken("common", USER, LoginKind.INTERACTIVE, "common")

    assert token_for_subscription(organizational, tenant) is organizational
    assert token_for_subscription(interactive, tenant) is tenant


def test_list_tenants__follows_next_link(environment: AzureEnvironment) -> None:
    session = FakeSession()
    page2 = f"{TENANTS_URL}&$skiptoken=abc"
    session.add(
        TENANTS_URL,
        FakeResponse(json_body={"value": [{"tenantId": T1}], "nextLink": page2}),
    )
    session.add(page2, FakeResponse(json_body={"value": [{"tenantId": T2}]}))
    token = AccessToken("tok-common", USER, LoginKind.ORGANIZATIONAL, "common")

    assert list(list_tenants(environment, token, session=session)) == [T1, T2]
    assert session.calls[0][1]["Authorization"] == "Bearer tok-common"


def test_list_tenants__empty_is_valid(environment: AzureEnvironment) -> None:
    session = FakeSession()
    session.add(TENANTS_URL, FakeResponse(json_body={"value": []}))
    token = AccessToken("tok-common", USER, LoginKind.ORGANIZATIONAL, "common")

    assert list(list_tenants(environment, token, session=session)) == []


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(401),
        FakeResponse(text="<html/>"),
        FakeResponse(json_body=["not", "an", "object"]),
        FakeResponse(json_body={"value": [{"displayName": "no id"}]}),
        FakeResponse(json_body={"value": "oops"}),
        requests.Timeout("slow"),
    ],
)
def test_list_tenants__failures_raise_discovery_error(
    environment: AzureEnvironment, response: object
) -> None:
    session = FakeSession()
    session.add(TENANTS_URL, response)
    token = AccessToken("tok-common", USER, LoginKind.ORGANIZATIONAL, "common")

    with pytest.raises(DiscoveryError):
        list(list_tenants(environment, token, session=session))


def test_resource_manager__is_lazy(
    environment: AzureEnvironment, session: FakeSession
) -> None:
    provider = FakeTokenProvider()
    common = _common(provider, environment)

    stream = ResourceManagerDiscoverer(session=session).discover(
        environment, common, provider, TokenMode.INTERACTIVE
    )
    assert session.calls == []

    subscription, token = next(stream)
    assert subscription.id == S1
    assert token is common
    # T2 has not been touched yet
    assert [tenant for tenant, _, _ in provider.calls] == ["common", T1]


def test_resource_manager__partial_results_precede_failure(
    environment: AzureEnvironment, session: FakeSession
) -> None:
    session.add(RM_SUBSCRIPTIONS_URL, FakeResponse(502), token=f"tok-{T2}")
    provider = FakeTokenProvider()
    stream = ResourceManagerDiscoverer(session=session).discover(
        environment, _common(provider, environment), provider, TokenMode.INTERACTIVE
    )

    received = []
    with pytest.raises(DiscoveryError):
        for subscription, _ in stream:
            received.append(subscription.id)

    assert received == [S1]


def test_resource_manager__tenant_tokens_use_common_user_and_mode(
    environment: AzureEnvironment, session: FakeSession
) -> None:
    provider = FakeTokenProvider(login_kind=LoginKind.INTERACTIVE, cached=True)
    common = provider.acquire(
        EndpointConfig.for_tenant(environment, "common"), USER, None, TokenMode.CACHED_ONLY
    )

    pairs = list(
        ResourceManagerDiscoverer(session=session).discover(
            environment, common, provider, TokenMode.CACHED_ONLY
        )
    )

    assert [(s.id, t.token) for s, t in pairs] == [
        (S1, f"tok-{T1}"),
        (S2, f"tok-{T2}"),
        (S3, f"tok-{T2}"),
    ]
    assert provider.calls[1:] == [
        (T1, USER, TokenMode.CACHED_ONLY),
        (T2, USER, TokenMode.CACHED_ONLY),
    ]
    assert {s.tenant_id for s, _ in pairs} == {T1, T2}


def test_resource_manager__invalid_subscription_id(environment: AzureEnvironment) -> None:
    session = FakeSession()
    session.add(TENANTS_URL, FakeResponse(json_body={"value": [{"tenantId": T1}]}))
    session.add(
        RM_SUBSCRIPTIONS_URL,
        FakeResponse(json_body={"value": [{"subscriptionId": "nope", "displayName": "x"}]}),
    )
    provider = FakeTokenProvider()

    with pytest.raises(DiscoveryError, match="Invalid subscription id"):
        list(
            ResourceManagerDiscoverer(session=session).discover(
                environment, _common(provider, environment), provider, TokenMode.INTERACTIVE
            )
        )


def test_classic__single_call_with_version_header(
    environment: AzureEnvironment, session: FakeSession
) -> None:
    provider = FakeTokenProvider()
    common = _common(provider, environment)

    pairs = list(
        ClassicDiscoverer(session=session).discover(
            environment, common, provider, TokenMode.INTERACTIVE
        )
    )

    assert [(s.id, s.name, s.tenant_id) for s, _ in pairs] == [(S3, "Classic three", T2)]
    assert pairs[0][1] is common
    assert len(session.calls) == 1
    url, headers = session.calls[0]
    assert url == CLASSIC_SUBSCRIPTIONS_URL
    assert headers["x-ms-version"] == "2013-08-01"
    assert headers["Authorization"] == "Bearer tok-common"


def test_classic__interactive_without_tenant_fails(environment: AzureEnvironment) -> None:
    session = FakeSession()
    session.add(
        CLASSIC_SUBSCRIPTIONS_URL,
        FakeResponse(text=classic_xml((S1, "one", T1), (S2, "two", ""))),
    )
    provider = FakeTokenProvider(login_kind=LoginKind.INTERACTIVE)
    stream = ClassicDiscoverer(session=session).discover(
        environment, _common(provider, environment), provider, TokenMode.INTERACTIVE
    )

    subscription, token = next(stream)
    assert subscription.id == S1
    assert token.token == f"tok-{T1}"
    with pytest.raises(DiscoveryError, match="no tenant id"):
        next(stream)


def test_parse_classic_subscriptions__without_namespace() -> None:
    body = (
        "<Subscriptions><Subscription>"
        f"<SubscriptionID>{S1}</SubscriptionID><SubscriptionName>one</SubscriptionName>"
        "</Subscription></Subscriptions>"
    )

    assert parse_classic_subscriptions(body) == [(str(S1), "one", None)]


@pytest.mark.parametrize(
    "body",
    [
        "not xml",
        "<Other/>",
        "<Subscriptions><Subscription>"
        "<SubscriptionName>x</SubscriptionName>"
        "</Subscription></Subscriptions>",
    ],
)
def test_parse_classic_subscriptions__malformed(body: str) -> None:
    with pytest.raises(DiscoveryError):
        parse_classic_subscriptions(body)


@pytest.mark.parametrize("payload", [{"value": ["oops"]}, {"value": {"id": "x"}}])
def test_resource_manager__malformed_listing_raises_discovery_error(
    environment: AzureEnvironment, payload: object
) -> None:
    session = FakeSession()
    session.add(TENANTS_URL, FakeResponse(json_body={"value": [{"tenantId": T1}]}))
    session.add(RM_SUBSCRIPTIONS_URL, FakeResponse(json_body=payload))
    provider = FakeTokenProvider()

    with pytest.raises(DiscoveryError):
        list(
            ResourceManagerDiscoverer(session=session).discover(
                environment, _common(provider, environment), provider, TokenMode.INTERACTIVE
            )
        )


def test_parse_classic_subscriptions__rejects_document_type_declaration() -> None:
    body = (
        '<!DOCTYPE Subscriptions [<!ENTITY a "aaaaaaaaaa">]>'
        "<Subscriptions><Subscription>"
        f"<SubscriptionID>{S1}</SubscriptionID><SubscriptionName>&a;</SubscriptionName>"
        "</Subscription></Subscriptions>"
    )

    with pytest.raises(DiscoveryError, match="document type declaration"):
        parse_classic_subscriptions(body)
