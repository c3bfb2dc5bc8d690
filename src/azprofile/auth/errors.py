from __future__ import annotations


class AzureProfileError(Exception):
    """Base class for authentication and discovery failures."""


class AuthenticationError(AzureProfileError):
    """The identity provider rejected the request or could not be reached."""


class NoCachedCredentialError(AuthenticationError):
    """No token is cached for the requested tenant and user.

    Raised in cached-only mode instead of prompting, so callers can decide
    whether an interactive sign-in should be offered.
    """


class DiscoveryError(AzureProfileError):
    """A tenant or subscription listing endpoint failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidSubscriptionState(AzureProfileError):
    """No credential can be resolved for the subscription."""


class AmbiguousResult(AzureProfileError):
    """A lookup by name matched zero or several results."""


__all__ = [
    "AzureProfileError",
    "AuthenticationError",
    "NoCachedCredentialError",
    "DiscoveryError",
    "InvalidSubscriptionState",
    "AmbiguousResult",
]
