from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol
from uuid import UUID

from .environments import KNOWN_ENVIRONMENTS, AzureEnvironment
from .models import Subscription


@dataclass
class ProfileEntry:
    """What a stored profile knows about one subscription."""

    subscription_id: UUID
    environment: str
    user_id: str | None = None
    thumbprint: str | None = None


class ProfileStore(Protocol):
    """Read access to stored subscriptions and environments."""

    def get_subscription(self, subscription_id: UUID) -> ProfileEntry | None:
        """Return the stored entry for ``subscription_id``, if any."""
        raise NotImplementedError

    def get_environment(self, name: str) -> AzureEnvironment | None:
        """Return the environment registered under ``name``, if any."""
        raise NotImplementedError


class InMemoryProfile:
    """Dict-backed :class:`ProfileStore` seeded with the built-in clouds."""

    def __init__(
        self,
        entries: Iterable[ProfileEntry] = (),
        environments: Iterable[AzureEnvironment] = (),
    ) -> None:
        self._environments: dict[str, AzureEnvironment] = dict(KNOWN_ENVIRONMENTS)
        for env in environments:
            self._environments[env.name] = env
        self._entries: dict[UUID, ProfileEntry] = {
            entry.subscription_id: entry for entry in entries
        }

    def get_subscription(self, subscription_id: UUID) -> ProfileEntry | None:
        return self._entries.get(subscription_id)

    def get_environment(self, name: str) -> AzureEnvironment | None:
        return self._environments.get(name)

    def add_entry(self, entry: ProfileEntry) -> None:
        self._entries[entry.subscription_id] = entry

    def add_environment(self, environment: AzureEnvironment) -> None:
        self._environments[environment.name] = environment

    def add_subscriptions(self, subscriptions: Iterable[Subscription]) -> None:
        """Record subscriptions returned by an authentication pass.

        A thumbprint already on record for a subscription is kept.
        """
        for subscription in subscriptions:
            previous = self._entries.get(subscription.id)
            self._entries[subscription.id] = ProfileEntry(
                subscription_id=subscription.id,
                environment=subscription.environment,
                user_id=subscription.account,
                thumbprint=previous.thumbprint if previous else None,
            )
