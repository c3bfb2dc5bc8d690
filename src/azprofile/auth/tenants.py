from __future__ import annotations

import logging
from typing import Final, Iterator

import requests

from .environments import AzureEnvironment
from .errors import DiscoveryError
from .models import AccessToken
from .rest import DEFAULT_TIMEOUT, paged_fetch
from .scopes import join_endpoint

logger = logging.getLogger(__name__)

RESOURCE_MANAGER_API_VERSION: Final[str] = "2020-01-01"


def list_tenants(
    environment: AzureEnvironment,
    token: AccessToken,
    *,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Iterator[str]:
    """Yield the ids of every resource manager tenant the principal belongs to.

    Args:
        environment: Cloud whose resource manager endpoint is queried.
        token: Common-tenant token of the principal.
        session: Optional HTTP session.
        timeout: Per-request timeout in seconds.

    Yields:
        Tenant ids. An empty sequence is a valid result.

    Raises:
        DiscoveryError: On transport failure or a malformed response.
    """
    url = join_endpoint(
        environment.resource_manager_endpoint,
        f"tenants?api-version={RESOURCE_MANAGER_API_VERSION}",
    )
    for item in paged_fetch(url, token, session=session, timeout=timeout):
        tenant_id = item.get("tenantId") if isinstance(item, dict) else None
        if not tenant_id:
            raise DiscoveryError(f"Tenant entry without tenantId in response of {url}")
        logger.debug("Found tenant %s", tenant_id)
        yield tenant_id
