"""Contracts and shared error types for the Battle.net auth strategy."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .models import Credentials, Extra, Info

if TYPE_CHECKING:
    from .conn import Conn


class ProviderError(Exception):
    """Standardized provider error with HTTP-style status information."""

    def __init__(self, error: str, description: str | None = None, status_code: int = 400):
        super().__init__(description or error)
        self.error = error
        self.description = description
        self.status_code = status_code


class MissingCode(ProviderError):
    """The callback request carried no authorization code."""

    def __init__(self) -> None:
        super().__init__("missing_code", "No code received", status_code=400)


class ProviderTokenError(ProviderError):
    """The token endpoint answered without an access token."""


class UnauthorizedToken(ProviderError):
    """The provider rejected the access token (HTTP 401)."""

    def __init__(self, description: str = "unauthorized") -> None:
        super().__init__("token", description, status_code=401)


class TransportError(ProviderError):
    """Network failure or unexpected HTTP status talking to the provider."""

    def __init__(self, reason: str, status_code: int = 502) -> None:
        super().__init__("OAuth2", reason, status_code=status_code)
        self.reason = reason


class InvalidRegion(ProviderError):
    """The requested region is not a known Battle.net region."""

    def __init__(self, region: str) -> None:
        super().__init__("invalid_region", f"Unsupported region {region!r}", status_code=400)
        self.region = region


class MissingProfileField(ProviderError):
    """The configured uid field is absent from the fetched user profile."""

    def __init__(self, field: str) -> None:
        super().__init__(
            "missing_profile_field", f"Profile has no field {field!r}", status_code=500
        )
        self.field = field


@runtime_checkable
class AuthStrategy(Protocol):
    """Interface the host invokes on every authentication strategy."""

    provider_name: str

    def handle_request(self, conn: Conn) -> None:
        """Redirect the user agent to the provider."""

    async def handle_callback(self, conn: Conn) -> None:
        """Process the provider callback, storing results or errors on `conn`."""

    def handle_cleanup(self, conn: Conn) -> None:
        """Erase request-scoped provider data from `conn`."""

    def uid(self, conn: Conn) -> Any:
        """Return the user identifier."""

    def credentials(self, conn: Conn) -> Credentials | None:
        """Return the credentials section of the auth record."""

    def info(self, conn: Conn) -> Info:
        """Return the info section of the auth record."""

    def extra(self, conn: Conn) -> Extra:
        """Return the extra section of the auth record."""


__all__ = [
    "AuthStrategy",
    "InvalidRegion",
    "MissingCode",
    "MissingProfileField",
    "ProviderError",
    "ProviderTokenError",
    "TransportError",
    "UnauthorizedToken",
]
