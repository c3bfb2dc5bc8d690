from typing import Final
from urllib.parse import urlparse

COMMON_TENANT: Final[str] = "common"


def authority_from_url(url: str) -> str:
    """Return the URL authority (scheme + host).

    Args:
        url: Absolute endpoint URL (e.g., "https://login.microsoftonline.com/").

    Returns:
        The "<scheme>://<host>" portion of the URL.

    Raises:
        ValueError: If ``url`` is not absolute or lacks a host.
    """
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError("url must be an absolute URL")
    return f"{parsed.scheme}://{parsed.netloc}"


def tenant_authority(active_directory_endpoint: str, tenant: str) -> str:
    """Return the authority URL for ``tenant`` under an AD endpoint."""
    if not tenant:
        raise ValueError("tenant must not be empty")
    return f"{authority_from_url(active_directory_endpoint)}/{tenant}"


def resource_scope(resource: str) -> str:
    # The resource id is kept verbatim, so "https://x/" yields "https://x//.default".
    return f"{resource}/.default"


def join_endpoint(base: str, path: str) -> str:
    return f"{base.rstrip('/')}/{path.lstrip('/')}"
