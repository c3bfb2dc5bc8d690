from __future__ import annotations

import threading
from typing import Iterable
from uuid import UUID

from .models import AccessToken


class CredentialCache:
    """Maps subscription ids to the token that authorizes them.

    Entries are only added or overwritten, never removed; the cache lives as
    long as the process and is rebuilt by running discovery again. All access
    goes through one lock so concurrent discovery passes cannot lose updates.
    """

    def __init__(self) -> None:
        self._tokens: dict[UUID, AccessToken] = {}
        self._lock = threading.Lock()

    def get(self, subscription_id: UUID) -> AccessToken | None:
        with self._lock:
            return self._tokens.get(subscription_id)

    def put(self, subscription_id: UUID, token: AccessToken) -> None:
        with self._lock:
            self._tokens[subscription_id] = token

    def update(self, entries: Iterable[tuple[UUID, AccessToken]]) -> None:
        """Install several entries under a single lock acquisition."""
        entries = list(entries)
        with self._lock:
            for subscription_id, token in entries:
                self._tokens[subscription_id] = token

    def snapshot(self) -> dict[UUID, AccessToken]:
        with self._lock:
            return dict(self._tokens)

    def __contains__(self, subscription_id: object) -> bool:
        with self._lock:
            return subscription_id in self._tokens

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)
