"""Pydantic models for the Battle.net auth strategy.

These types cover provider configuration, OAuth tokens and responses, and the
canonical auth record handed back to the host.

## Security-relevant configuration fields

- `client_secret`: sent to the token endpoint and, as a Battle.net quirk, on every
  authenticated API request. Never log it.
- `default_scope`: affects what permissions are requested from Battle.net.
- `callback_path`: controls which HTTP route receives provider callbacks.
"""

from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field

# Battle.net regions; the region is interpolated into OAuth and API hostnames.
Region = Literal["us", "eu", "kr", "tw", "cn"]
REGIONS: frozenset[str] = frozenset(get_args(Region))


class BlizzardBaseModel(BaseModel):
    """Base model for all blizzard_auth models.

    - extra="forbid": Rejects any fields not defined in the model
    - frozen=True: Makes instances immutable so they can be shared across requests
    """

    model_config = ConfigDict(extra="forbid", frozen=True)


class HttpTransportConfigModel(BlizzardBaseModel):
    """HTTP transport settings used to build absolute callback URLs."""

    port: int | None = None
    host: str | None = None
    scheme: Literal["http", "https"] | None = None
    base_url: str | None = None
    trust_proxy: bool | None = None


class BlizzardAuthConfigModel(BlizzardBaseModel):
    """Battle.net OAuth provider configuration.

    Loaded once at startup and shared read-only by every request.
    """

    client_id: str
    client_secret: str
    uid_field: str = "id"
    # Comma-separated, the same separator Battle.net uses for granted scopes.
    default_scope: str = "user,public_repo"
    default_region: Region = "us"
    callback_path: str = "/auth/blizzard/callback"
    http_timeout: float = Field(default=30.0, gt=0)
    transport: HttpTransportConfigModel | None = None


class Token(BlizzardBaseModel):
    """Token returned by the Battle.net token endpoint.

    `access_token` is None when the provider answered with an OAuth error; the
    `error` and `error_description` fields are then kept in `other_params`.
    """

    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: int | None = None
    token_type: str = "Bearer"
    other_params: dict[str, Any] = Field(default_factory=dict)

    @property
    def scope(self) -> str:
        value = self.other_params.get("scope")
        return value if isinstance(value, str) else ""


class OAuthResponse(BlizzardBaseModel):
    """Parsed response of an authenticated API request."""

    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None


class StrategyError(BlizzardBaseModel):
    """A single error recorded on a connection during the callback phase."""

    message_key: str
    message: str | None = None


class Credentials(BlizzardBaseModel):
    token: str | None = None
    refresh_token: str | None = None
    expires_at: int | None = None
    token_type: str | None = None
    expires: bool = False
    scopes: list[str] = Field(default_factory=list)


class Info(BlizzardBaseModel):
    battletag: str | None = None


class Extra(BlizzardBaseModel):
    raw_info: dict[str, Any] = Field(default_factory=dict)


class Auth(BlizzardBaseModel):
    """Canonical auth record produced by a successful callback."""

    provider: str
    strategy: str
    uid: Any = None
    credentials: Credentials
    info: Info
    extra: Extra


class Failure(BlizzardBaseModel):
    """Failure record produced when the callback recorded errors."""

    provider: str
    strategy: str
    errors: list[StrategyError]


__all__ = [
    "Auth",
    "BlizzardAuthConfigModel",
    "BlizzardBaseModel",
    "Credentials",
    "Extra",
    "Failure",
    "HttpTransportConfigModel",
    "Info",
    "OAuthResponse",
    "REGIONS",
    "Region",
    "StrategyError",
    "Token",
]
