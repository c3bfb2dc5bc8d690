"""Bearer-authorized GET helpers shared by the listing endpoints."""

from __future__ import annotations

import logging
from typing import Any, Iterator

import requests

from .errors import DiscoveryError
from .models import AccessToken

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def _get(
    url: str,
    token: AccessToken,
    *,
    session: requests.Session | None = None,
    headers: dict[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> requests.Response:
    request_headers = {"Authorization": token.authorization_header()}
    if headers:
        request_headers.update(headers)
    http = session or requests
    try:
        response = http.get(url, headers=request_headers, timeout=timeout)
    except requests.RequestException as exc:
        raise DiscoveryError(f"GET {url} failed: {exc}") from exc
    if response.status_code >= 400:
        raise DiscoveryError(
            f"GET {url} returned HTTP {response.status_code}",
            status_code=response.status_code,
        )
    return response


def fetch_text(
    url: str,
    token: AccessToken,
    *,
    session: requests.Session | None = None,
    headers: dict[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> str:
    return _get(url, token, session=session, headers=headers, timeout=timeout).text


def fetch_json(
    url: str,
    token: AccessToken,
    *,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict[str, Any]:
    response = _get(url, token, session=session, timeout=timeout)
    try:
        body = response.json()
    except ValueError as exc:
        raise DiscoveryError(f"GET {url} returned a non-JSON body") from exc
    if not isinstance(body, dict):
        raise DiscoveryError(f"GET {url} returned an unexpected payload")
    return body


def paged_fetch(
    url: str,
    token: AccessToken,
    *,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Iterator[dict[str, Any]]:
    """Yield the items of a resource manager list, following ``nextLink``.

    Yields:
        Individual items from each page's ``value`` array.
    """
    page_number = 1
    page = fetch_json(url, token, session=session, timeout=timeout)
    while True:
        items = page.get("value", [])
        if not isinstance(items, list):
            raise DiscoveryError(f"GET {url} returned a malformed 'value' field")
        logger.debug("Fetched page %s of %s", page_number, url)
        yield from items

        next_link: str | None = page.get("nextLink")
        if not next_link:
            break
        page = fetch_json(next_link, token, session=session, timeout=timeout)
        page_number += 1
