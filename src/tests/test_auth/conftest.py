from __future__ import annotations

import os
from typing import Iterator

import pytest
import requests

from azprofile.auth.environments import AZURE_CLOUD, AzureEnvironment
from fakes import (
    CLASSIC_SUBSCRIPTIONS_URL,
    RM_SUBSCRIPTIONS_URL,
    S1,
    S2,
    S3,
    T1,
    T2,
    TENANTS_URL,
    FakeResponse,
    FakeSession,
    classic_xml,
    rm_subscriptions,
)


@pytest.fixture(autouse=True)
def clear_azure_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Remove environment variables to prevent cross-test leakage.

    Yields:
        Iterator[None]: Context manager semantics for pytest.
    """
    to_clear = [k for k in os.environ.keys()]
    for k in to_clear:
        monkeypatch.delenv(k, raising=False)
    yield


@pytest.fixture()
def environment() -> AzureEnvironment:
    return AZURE_CLOUD


@pytest.fixture()
def session() -> FakeSession:
    """Two resource manager tenants and one classic subscription.

    T1 owns S1; T2 owns S2 and S3; the classic API reports S3 under T2.
    Tokens are routed by value, so each tenant only sees its own list.
    """
    s = FakeSession()
    s.add(
        TENANTS_URL,
        FakeResponse(json_body={"value": [{"tenantId": T1}, {"tenantId": T2}]}),
    )
    s.add(RM_SUBSCRIPTIONS_URL, rm_subscriptions((S1, "Sub one")), token=f"tok-{T1}")
    s.add(
        RM_SUBSCRIPTIONS_URL,
        rm_subscriptions((S2, "Sub two"), (S3, "Sub three")),
        token=f"tok-{T2}",
    )
    s.add(
        CLASSIC_SUBSCRIPTIONS_URL,
        FakeResponse(text=classic_xml((S3, "Classic three", T2))),
    )
    return s


@pytest.fixture()
def broken_session() -> FakeSession:
    """Every listing endpoint fails."""
    s = FakeSession()
    s.add(TENANTS_URL, requests.ConnectionError("connection reset"))
    s.add(CLASSIC_SUBSCRIPTIONS_URL, FakeResponse(503))
    return s
