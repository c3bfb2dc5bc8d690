from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Mapping
from uuid import UUID

import requests

from .cache import CredentialCache
from .certificate import CertificateStore, DirectoryCertificateStore
from .config import AuthSettings, DiscoveryScope, Strategy, TokenMode
from .discovery import (
    ClassicDiscoverer,
    DiscoveredSubscription,
    ResourceManagerDiscoverer,
    SubscriptionDiscoverer,
)
from .environments import AzureEnvironment
from .errors import (
    AmbiguousResult,
    AuthenticationError,
    AzureProfileError,
    DiscoveryError,
    InvalidSubscriptionState,
)
from .models import (
    AccessToken,
    AccessTokenCredential,
    CertificateCredential,
    EndpointConfig,
    ResolvedCredential,
    Subscription,
)
from .profile import InMemoryProfile, ProfileEntry, ProfileStore
from .scopes import COMMON_TENANT
from .tokens import TokenProvider, build_token_provider

logger = logging.getLogger(__name__)


class AuthState(str, Enum):
    """Stages of one :meth:`AuthenticationFactory.authenticate` call."""

    IDLE = "idle"
    ACQUIRING_COMMON_TOKEN = "acquiring_common_token"
    DISCOVERING = "discovering"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


@dataclass
class _DiscoveryOutcome:
    name: str
    results: list[DiscoveredSubscription] = field(default_factory=list)
    error: AzureProfileError | None = None


class AuthenticationFactory:
    """Authenticates a principal, discovers its subscriptions and resolves
    per-subscription credentials.

    The factory owns the :class:`CredentialCache`. :meth:`authenticate` fills
    it; :meth:`resolve_credential` reads it and falls back to a silent
    re-authentication or a management certificate when the subscription is
    only known from the profile.
    """

    def __init__(
        self,
        profile: ProfileStore | None = None,
        *,
        token_provider: TokenProvider | None = None,
        cache: CredentialCache | None = None,
        settings: AuthSettings | None = None,
        discoverers: Mapping[DiscoveryScope, SubscriptionDiscoverer] | None = None,
        certificate_store: CertificateStore | None = None,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the factory.

        Args:
            profile: Stored subscriptions consulted by :meth:`resolve_credential`.
                Defaults to an empty :class:`InMemoryProfile`.
            token_provider: Token source. Built from ``settings`` if omitted.
            cache: Credential cache. A fresh one is created if omitted.
            settings: Auth settings. Read from the environment if omitted.
            discoverers: Discoverer per scope, ``RESOURCE_MANAGER`` and
                ``CLASSIC`` keys. Defaults to the HTTP implementations.
            certificate_store: Lookup for management certificates. Defaults to
                a :class:`DirectoryCertificateStore` on
                ``settings.certificate_directory`` when that is set.
            session: Optional HTTP session for the default discoverers.
        """
        self.settings = settings if settings is not None else AuthSettings()
        self.profile = profile if profile is not None else InMemoryProfile()
        self.token_provider = (
            token_provider
            if token_provider is not None
            else build_token_provider(self.settings)
        )
        self.cache = cache if cache is not None else CredentialCache()

        if discoverers is None:
            timeout = self.settings.http_timeout
            discoverers = {
                DiscoveryScope.RESOURCE_MANAGER: ResourceManagerDiscoverer(
                    session=session, timeout=timeout
                ),
                DiscoveryScope.CLASSIC: ClassicDiscoverer(session=session, timeout=timeout),
            }
        self._discoverers = dict(discoverers)

        if certificate_store is None and self.settings.certificate_directory:
            certificate_store = DirectoryCertificateStore(self.settings.certificate_directory)
        self.certificate_store = certificate_store

        self.state = AuthState.IDLE

    def authenticate(
        self,
        environment: AzureEnvironment,
        scope: DiscoveryScope | None = None,
        mode: TokenMode = TokenMode.INTERACTIVE,
        user_id: str | None = None,
        secret: str | None = None,
    ) -> tuple[list[Subscription], str]:
        """Sign in and discover every subscription the principal can access.

        Args:
            environment: Cloud to authenticate against.
            scope: Subscription APIs to query. Defaults to ``settings.scope``.
            mode: Whether token acquisition may prompt.
            user_id: Known user id, used as login hint or cache key.
            secret: Password of ``user_id``, if signing in without a prompt.

        Returns:
            The deduplicated subscriptions and the resolved user id.

        Raises:
            AuthenticationError: The common-tenant token could not be obtained.
                The cache is left untouched.
            DiscoveryError: Discovery produced nothing and a discoverer failed.

        Any exception leaves :attr:`state` at ``FAILED``. ``state`` is shared by
        every call on this factory and reflects the most recent one only.
        """
        scope = scope or self.settings.scope
        if (
            user_id is None
            and mode is TokenMode.INTERACTIVE
            and self.settings.strategy is Strategy.USERNAME_PASSWORD
        ):
            user_id = self.settings.username
            secret = self.settings.password.get_secret_value()

        try:
            return self._run(environment, scope, mode, user_id, secret)
        except BaseException:
            self.state = AuthState.FAILED
            raise

    def _run(
        self,
        environment: AzureEnvironment,
        scope: DiscoveryScope,
        mode: TokenMode,
        user_id: str | None,
        secret: str | None,
    ) -> tuple[list[Subscription], str]:
        self.state = AuthState.ACQUIRING_COMMON_TOKEN
        common_token = self.token_provider.acquire(
            EndpointConfig.for_tenant(environment, self._home_tenant()),
            user_id,
            secret,
            mode,
        )
        user_id = common_token.user_id
        logger.info(
            "Signed in %s to %s (%s identity)",
            user_id,
            environment.name,
            common_token.login_kind.value,
        )

        self.state = AuthState.DISCOVERING
        selected = self._select_discoverers(scope)
        if self.settings.parallel_discovery and len(selected) > 1:
            with ThreadPoolExecutor(max_workers=len(selected)) as pool:
                futures = [
                    pool.submit(
                        self._drain,
                        name,
                        discoverer,
                        environment,
                        common_token,
                        mode,
                        secret,
                    )
                    for name, discoverer in selected
                ]
                outcomes = [future.result() for future in futures]
        else:
            outcomes = [
                self._drain(name, discoverer, environment, common_token, mode, secret)
                for name, discoverer in selected
            ]

        self.state = AuthState.MERGING
        merged: dict[UUID, DiscoveredSubscription] = {}
        for outcome in outcomes:
            for subscription, token in outcome.results:
                merged[subscription.id] = (replace(subscription, account=user_id), token)

        failures = [outcome for outcome in outcomes if outcome.error is not None]
        if failures and (len(outcomes) == 1 or not merged):
            raise failures[0].error
        for outcome in failures:
            logger.warning(
                "%s discovery failed after %d subscriptions: %s",
                outcome.name,
                len(outcome.results),
                outcome.error,
            )

        self.cache.update(
            (subscription_id, token) for subscription_id, (_, token) in merged.items()
        )
        self.state = AuthState.DONE
        logger.info("Discovered %d subscriptions for %s", len(merged), user_id)
        return [subscription for subscription, _ in merged.values()], user_id

    def resolve_credential(self, subscription_id: UUID | str) -> ResolvedCredential:
        """Return usable credentials for a subscription.

        Resolution order: cached token, silent re-authentication for a user
        on record, management certificate on record.

        Raises:
            InvalidSubscriptionState: No credential could be resolved.
        """
        sid = _as_uuid(subscription_id)

        token = self.cache.get(sid)
        if token is not None:
            return AccessTokenCredential(str(sid), token)

        entry = self.profile.get_subscription(sid)
        if entry is None:
            raise InvalidSubscriptionState(f"Subscription {sid} has not been loaded.")

        if entry.user_id:
            return self._reauthenticate(entry)

        if entry.thumbprint:
            certificate = (
                self.certificate_store.find(entry.thumbprint)
                if self.certificate_store is not None
                else None
            )
            if certificate is None:
                raise InvalidSubscriptionState(
                    f"Management certificate {entry.thumbprint} for subscription "
                    f"{sid} was not found."
                )
            return CertificateCredential(str(sid), certificate)

        raise InvalidSubscriptionState(
            f"Subscription {sid} has neither a user nor a management certificate."
        )

    def _reauthenticate(self, entry: ProfileEntry) -> AccessTokenCredential:
        sid = entry.subscription_id
        environment = self.profile.get_environment(entry.environment)
        if environment is None:
            raise InvalidSubscriptionState(
                f"Environment {entry.environment!r} of subscription {sid} is unknown."
            )
        logger.info("Recovering credentials for subscription %s without prompting", sid)
        try:
            self.authenticate(
                environment,
                self.settings.recovery_scope,
                TokenMode.CACHED_ONLY,
                entry.user_id,
            )
        except (AuthenticationError, DiscoveryError) as exc:
            raise InvalidSubscriptionState(
                f"Credentials for subscription {sid} could not be recovered: {exc}"
            ) from exc

        token = self.cache.get(sid)
        if token is None:
            raise InvalidSubscriptionState(
                f"Subscription {sid} is not accessible to {entry.user_id}."
            )
        return AccessTokenCredential(str(sid), token)

    def _home_tenant(self) -> str:
        if self.settings.is_service_principal:
            return self.settings.tenant_id
        return COMMON_TENANT

    def _select_discoverers(
        self, scope: DiscoveryScope
    ) -> list[tuple[str, SubscriptionDiscoverer]]:
        if scope is DiscoveryScope.ALL:
            wanted = [DiscoveryScope.RESOURCE_MANAGER, DiscoveryScope.CLASSIC]
        else:
            wanted = [scope]
        missing = [s.value for s in wanted if s not in self._discoverers]
        if missing:
            raise ValueError(f"No discoverer configured for {', '.join(missing)}")
        return [(s.value, self._discoverers[s]) for s in wanted]

    def _drain(
        self,
        name: str,
        discoverer: SubscriptionDiscoverer,
        environment: AzureEnvironment,
        common_token: AccessToken,
        mode: TokenMode,
        secret: str | None,
    ) -> _DiscoveryOutcome:
        outcome = _DiscoveryOutcome(name)
        try:
            for pair in discoverer.discover(
                environment, common_token, self.token_provider, mode, secret
            ):
                outcome.results.append(pair)
        except (DiscoveryError, AuthenticationError) as exc:
            outcome.error = exc
        return outcome


def select_subscription(
    subscriptions: Iterable[Subscription], name_or_id: str
) -> Subscription:
    """Return the one subscription whose id or (case-insensitive) name matches.

    Raises:
        AmbiguousResult: Nothing or more than one subscription matched.
    """
    wanted = name_or_id.strip().casefold()
    matches = [
        s for s in subscriptions if str(s.id) == wanted or s.name.casefold() == wanted
    ]
    if len(matches) != 1:
        raise AmbiguousResult(
            f"{len(matches)} subscriptions match {name_or_id!r}; expected exactly one."
        )
    return matches[0]


def _as_uuid(value: UUID | str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(value)
    except (TypeError, ValueError) as exc:
        raise InvalidSubscriptionState(f"{value!r} is not a subscription id.") from exc
