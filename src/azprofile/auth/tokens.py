"""Token acquisition against the Azure AD identity endpoint.

Two implementations of :class:`TokenProvider` exist: :class:`MsalTokenProvider`
signs in users through MSAL public client flows and
:class:`ServicePrincipalTokenProvider` signs in an application with a client
secret or certificate through ``azure.identity``. Use
:func:`build_token_provider` to pick one from :class:`AuthSettings`.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Any, Protocol

import msal
import requests
from azure.core.credentials import TokenCredential
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import CertificateCredential, ClientSecretCredential

from .config import AuthSettings, Strategy, TokenMode
from .errors import AuthenticationError, NoCachedCredentialError
from .models import AccessToken, EndpointConfig, LoginKind, login_kind_for_tenant
from .scopes import COMMON_TENANT, authority_from_url

logger = logging.getLogger(__name__)


class TokenProvider(Protocol):
    """Exchanges an endpoint configuration and identity for an access token."""

    def acquire(
        self,
        config: EndpointConfig,
        user_id: str | None = None,
        secret: str | None = None,
        mode: TokenMode = TokenMode.INTERACTIVE,
    ) -> AccessToken:
        """Return a token for ``config``.

        Raises:
            NoCachedCredentialError: ``mode`` is cached-only and nothing is cached.
            AuthenticationError: The identity provider rejected the request.
        """
        raise NotImplementedError


class MsalTokenProvider:
    """User sign-in through an MSAL public client application.

    One application is kept per authority URL; all of them share a single
    token cache so a refresh token obtained for the common tenant can be
    redeemed silently for every other tenant of the same account.
    """

    def __init__(
        self,
        client_id: str,
        *,
        token_cache: msal.SerializableTokenCache | None = None,
    ) -> None:
        self._client_id = client_id
        self._cache = token_cache or msal.SerializableTokenCache()
        self._apps: dict[str, msal.PublicClientApplication] = {}
        self._lock = threading.RLock()

    @property
    def token_cache(self) -> msal.SerializableTokenCache:
        return self._cache

    def acquire(
        self,
        config: EndpointConfig,
        user_id: str | None = None,
        secret: str | None = None,
        mode: TokenMode = TokenMode.INTERACTIVE,
    ) -> AccessToken:
        with self._lock:
            app = self._app_for(config.authority_url)
            try:
                if mode is TokenMode.CACHED_ONLY:
                    result = self._acquire_silent(app, config, user_id)
                elif user_id and secret:
                    logger.debug("Username/password sign-in for tenant %s", config.tenant)
                    result = app.acquire_token_by_username_password(
                        user_id, secret, scopes=config.scopes
                    )
                else:
                    result = self._try_silent(app, config, user_id)
                    if result is None:
                        logger.debug("Interactive sign-in for tenant %s", config.tenant)
                        result = app.acquire_token_interactive(
                            config.scopes,
                            login_hint=user_id,
                            prompt=None if user_id else "select_account",
                        )
            except requests.RequestException as exc:
                raise AuthenticationError(
                    f"Identity endpoint {config.authority_url} is unreachable: {exc}"
                ) from exc
            return self._process_result(app, config, result, user_id)

    def _app_for(self, authority_url: str) -> msal.PublicClientApplication:
        app = self._apps.get(authority_url)
        if app is not None:
            return app
        try:
            app = msal.PublicClientApplication(
                self._client_id,
                authority=authority_url,
                token_cache=self._cache,
            )
        except ValueError as exc:
            raise AuthenticationError(f"Invalid authority {authority_url}: {exc}") from exc
        self._apps[authority_url] = app
        return app

    def _acquire_silent(
        self,
        app: msal.PublicClientApplication,
        config: EndpointConfig,
        user_id: str | None,
    ) -> dict[str, Any]:
        account = self._find_account(app, user_id)
        if account is None:
            raise NoCachedCredentialError(
                f"No cached credential for user {user_id or '<any>'} "
                f"in tenant {config.tenant}; interactive sign-in required."
            )
        result = app.acquire_token_silent_with_error(config.scopes, account=account)
        if not result:
            raise NoCachedCredentialError(
                f"No cached token for user {user_id or account.get('username')} "
                f"in tenant {config.tenant}; interactive sign-in required."
            )
        if "error" in result:
            raise NoCachedCredentialError(
                f"Cached credential could not be refreshed for tenant {config.tenant}: "
                f"{result.get('error_description', result['error'])}"
            )
        return result

    def _try_silent(
        self,
        app: msal.PublicClientApplication,
        config: EndpointConfig,
        user_id: str | None,
    ) -> dict[str, Any] | None:
        """Redeem the shared cache before prompting; ``None`` means prompt."""
        account = self._find_account(app, user_id)
        if account is None:
            return None
        result = app.acquire_token_silent_with_error(config.scopes, account=account)
        if not result or "error" in result:
            logger.debug(
                "Silent token acquisition failed for tenant %s; prompting", config.tenant
            )
            return None
        return result

    @staticmethod
    def _find_account(
        app: msal.PublicClientApplication, user_id: str | None
    ) -> dict[str, Any] | None:
        accounts = app.get_accounts(username=user_id) if user_id else app.get_accounts()
        return accounts[0] if accounts else None

    def _process_result(
        self,
        app: msal.PublicClientApplication,
        config: EndpointConfig,
        result: dict[str, Any] | None,
        user_id: str | None,
    ) -> AccessToken:
        if not result:
            raise AuthenticationError("Identity endpoint returned no result")
        if "error" in result:
            error_desc = result.get("error_description", result["error"])
            raise AuthenticationError(f"MSAL error: {error_desc}")

        access_token = result.get("access_token")
        if not isinstance(access_token, str):
            raise AuthenticationError("MSAL response missing access token")

        claims = result.get("id_token_claims") or {}
        resolved_user = (
            claims.get("preferred_username")
            or claims.get("upn")
            or claims.get("email")
            or user_id
        )
        account = self._find_account(app, resolved_user)
        if resolved_user is None and account is not None:
            resolved_user = account.get("username")
        if not resolved_user:
            raise AuthenticationError("Could not determine the signed-in user")

        expires_in = result.get("expires_in")
        expires_on = (
            int(time.time()) + int(expires_in)
            if isinstance(expires_in, (int, str))
            else int(time.time()) + 3600
        )
        return AccessToken(
            token=access_token,
            user_id=resolved_user,
            login_kind=self._login_kind(claims, account),
            tenant_id=claims.get("tid") or config.tenant,
            expires_on=expires_on,
        )

    @staticmethod
    def _login_kind(claims: dict[str, Any], account: dict[str, Any] | None) -> LoginKind:
        # home_account_id is "<object id>.<home tenant id>"
        if account and account.get("home_account_id"):
            return login_kind_for_tenant(account["home_account_id"].rpartition(".")[2])
        if "live.com" in str(claims.get("idp", "")):
            return LoginKind.INTERACTIVE
        return login_kind_for_tenant(claims.get("tid"))


class ServicePrincipalTokenProvider:
    """Application sign-in with a client secret or certificate.

    Service principal tokens are always organizational and are reported under
    the client id as user id. Cached-only mode serves only tenants for which
    a token was already issued by this instance.
    """

    def __init__(
        self,
        client_id: str,
        *,
        client_secret: str | None = None,
        certificate_path: Path | None = None,
        certificate_password: str | None = None,
    ) -> None:
        if not (client_secret or certificate_path):
            raise ValueError("A client secret or a certificate path is required.")
        self._client_id = client_id
        self._client_secret = client_secret
        self._certificate_path = certificate_path
        self._certificate_password = certificate_password
        self._credentials: dict[str, TokenCredential] = {}
        self._issued: set[tuple[str, str]] = set()
        self._lock = threading.Lock()

    def acquire(
        self,
        config: EndpointConfig,
        user_id: str | None = None,
        secret: str | None = None,
        mode: TokenMode = TokenMode.INTERACTIVE,
    ) -> AccessToken:
        if config.tenant.lower() == COMMON_TENANT:
            raise AuthenticationError(
                "Service principals must sign in to a specific tenant, not 'common'."
            )
        key = (config.authority_url, config.resource)
        with self._lock:
            if mode is TokenMode.CACHED_ONLY and key not in self._issued:
                raise NoCachedCredentialError(
                    f"No token was issued to {self._client_id} for tenant {config.tenant}."
                )
            credential = self._credential_for(config)

        try:
            token = credential.get_token(*config.scopes)
        except ClientAuthenticationError as exc:
            raise AuthenticationError(
                f"Service principal {self._client_id} was rejected by tenant "
                f"{config.tenant}: {exc.message}"
            ) from exc

        with self._lock:
            self._issued.add(key)
        return AccessToken(
            token=token.token,
            user_id=self._client_id,
            login_kind=LoginKind.ORGANIZATIONAL,
            tenant_id=config.tenant,
            expires_on=token.expires_on,
        )

    def _credential_for(self, config: EndpointConfig) -> TokenCredential:
        credential = self._credentials.get(config.authority_url)
        if credential is not None:
            return credential
        authority = authority_from_url(config.authority)
        if self._client_secret:
            credential = ClientSecretCredential(
                tenant_id=config.tenant,
                client_id=self._client_id,
                client_secret=self._client_secret,
                authority=authority,
            )
        else:
            credential = CertificateCredential(
                tenant_id=config.tenant,
                client_id=self._client_id,
                certificate_path=str(self._certificate_path),
                password=self._certificate_password,
                authority=authority,
            )
        self._credentials[config.authority_url] = credential
        return credential


def build_token_provider(settings: AuthSettings | None = None) -> TokenProvider:
    """Construct a :class:`TokenProvider` based on :class:`AuthSettings`.

    Args:
        settings: Auth settings. If ``None``, settings are read from the environment.

    Returns:
        A concrete :class:`TokenProvider`.
    """
    cfg = settings or AuthSettings()

    match cfg.strategy:
        case Strategy.CLIENT_SECRET:
            return ServicePrincipalTokenProvider(
                cfg.client_id,
                client_secret=cfg.client_secret.get_secret_value(),
            )
        case Strategy.CLIENT_CERTIFICATE:
            return ServicePrincipalTokenProvider(
                cfg.client_id,
                certificate_path=cfg.certificate_path,
                certificate_password=(
                    cfg.certificate_password.get_secret_value()
                    if cfg.certificate_password
                    else None
                ),
            )
        case _:
            return MsalTokenProvider(cfg.client_id)
