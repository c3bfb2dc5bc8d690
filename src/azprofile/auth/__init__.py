"""Authentication, subscription discovery and credential resolution for Azure.

Public API:
- AuthenticationFactory (authenticate(), resolve_credential())
- AuthSettings, Strategy, TokenMode, DiscoveryScope (settings)
- AzureEnvironment and the built-in clouds
- CredentialCache, InMemoryProfile, ProfileEntry
- AccessToken, Subscription, AccessTokenCredential, CertificateCredential
- the error hierarchy rooted at AzureProfileError
"""

from .cache import CredentialCache
from .config import AuthSettings, DiscoveryScope, Strategy, TokenMode
from .environments import (
    AZURE_CHINA_CLOUD,
    AZURE_CLOUD,
    AZURE_US_GOVERNMENT,
    AzureEnvironment,
    get_environment,
)
from .errors import (
    AmbiguousResult,
    AuthenticationError,
    AzureProfileError,
    DiscoveryError,
    InvalidSubscriptionState,
    NoCachedCredentialError,
)
from .factory import AuthenticationFactory, AuthState, select_subscription
from .models import (
    AccessToken,
    AccessTokenCredential,
    CertificateCredential,
    EndpointConfig,
    LoginKind,
    Subscription,
)
from .profile import InMemoryProfile, ProfileEntry
from .tokens import build_token_provider

__all__ = [
    "AuthenticationFactory",
    "AuthState",
    "select_subscription",
    "AuthSettings",
    "DiscoveryScope",
    "Strategy",
    "TokenMode",
    "AzureEnvironment",
    "AZURE_CLOUD",
    "AZURE_CHINA_CLOUD",
    "AZURE_US_GOVERNMENT",
    "get_environment",
    "CredentialCache",
    "InMemoryProfile",
    "ProfileEntry",
    "AccessToken",
    "AccessTokenCredential",
    "CertificateCredential",
    "EndpointConfig",
    "LoginKind",
    "Subscription",
    "build_token_provider",
    "AzureProfileError",
    "AuthenticationError",
    "NoCachedCredentialError",
    "DiscoveryError",
    "InvalidSubscriptionState",
    "AmbiguousResult",
]
