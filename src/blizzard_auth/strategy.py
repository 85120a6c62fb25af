"""Battle.net authentication strategy.

The host drives a strategy through three phases:

1. **Request**: `handle_request` redirects the user agent to Battle.net.
2. **Callback**: `handle_callback` exchanges the code for a token and fetches the
   user profile, storing both on the connection (or recording errors).
   The host then reads `uid`, `credentials`, `info` and `extra` into an `Auth`
   record, or turns the recorded errors into a `Failure`.
3. **Cleanup**: `handle_cleanup` erases the provider data from the connection.

`run_request` and `run_callback` bundle these phases for hosts that do not need
finer control:

    strategy = BlizzardStrategy(config, uid_field="battletag")

    async def callback(request: Request) -> Response:
        conn = strategy.conn_for(request)
        result = await strategy.run_callback(conn)
        if isinstance(result, Failure):
            ...
        return login(result.uid, result.info.battletag)

## Security invariants

- Never log tokens, secrets or profile contents.
- Errors from Battle.net are recorded on the connection, never raised to the host.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any
from urllib.parse import urlencode

from starlette.requests import Request
from starlette.responses import RedirectResponse

from .conn import Conn
from .contracts import (
    InvalidRegion,
    MissingCode,
    MissingProfileField,
    ProviderError,
    TransportError,
    UnauthorizedToken,
)
from .models import (
    Auth,
    BlizzardAuthConfigModel,
    BlizzardBaseModel,
    Credentials,
    Extra,
    Failure,
    Info,
    StrategyError,
    Token,
)
from .oauth import BlizzardOAuth, resolve_api_host, token_error, validate_region
from .telemetry import set_span_attribute, traced_operation
from .url_utils import URLBuilder

logger = logging.getLogger(__name__)


class Strategy(ABC):
    """Host-side machinery shared by OAuth strategies.

    Options passed to the constructor override the same-named fields of the
    provider configuration, so one configuration can back several registrations.
    """

    provider_name = ""

    def __init__(
        self,
        config: BlizzardBaseModel,
        *,
        url_builder: URLBuilder | None = None,
        **options: Any,
    ):
        unknown = set(options) - set(type(config).model_fields)
        if unknown:
            raise ValueError(f"Unknown strategy options: {', '.join(sorted(unknown))}")
        self.config = config
        self.options = dict(options)
        self.url_builder = url_builder or URLBuilder()

    def option(self, key: str) -> Any:
        if key in self.options:
            return self.options[key]
        return getattr(self.config, key)

    # ── phases ───────────────────────────────────────────────────────────────
    @abstractmethod
    def handle_request(self, conn: Conn) -> None:
        """Redirect the user agent to the provider."""

    @abstractmethod
    async def handle_callback(self, conn: Conn) -> None:
        """Process the provider callback, storing results or errors on `conn`."""

    def handle_cleanup(self, conn: Conn) -> None:
        pass

    def uid(self, conn: Conn) -> Any:
        return None

    def credentials(self, conn: Conn) -> Credentials | None:
        return None

    def info(self, conn: Conn) -> Info:
        return Info()

    def extra(self, conn: Conn) -> Extra:
        return Extra()

    # ── host helpers ─────────────────────────────────────────────────────────
    def conn_for(self, request: Request) -> Conn:
        """Build a connection for `request` using this strategy's `callback_path`."""
        return Conn.from_request(
            request, callback_path=self.option("callback_path"), url_builder=self.url_builder
        )

    def callback_url(self, conn: Conn) -> str:
        if conn.callback_url:
            return conn.callback_url
        return self.url_builder.build_callback_url(self.option("callback_path"))

    def redirect(self, conn: Conn, url: str) -> None:
        conn.response = RedirectResponse(url, status_code=302)

    @staticmethod
    def error(message_key: str, message: str | None) -> StrategyError:
        return StrategyError(message_key=message_key, message=message)

    def set_errors(self, conn: Conn, errors: Iterable[StrategyError]) -> None:
        conn.errors.extend(errors)

    def record_error(self, conn: Conn, exc: ProviderError) -> None:
        logger.warning(
            "Authentication failed",
            extra={
                "provider": self.provider_name,
                "provider_error": exc.error,
                "status_code": exc.status_code,
            },
        )
        self.set_errors(conn, [self.error(exc.error, exc.description)])

    def auth(self, conn: Conn) -> Auth:
        return Auth(
            provider=self.provider_name,
            strategy=type(self).__name__,
            uid=self.uid(conn),
            credentials=self.credentials(conn) or Credentials(),
            info=self.info(conn),
            extra=self.extra(conn),
        )

    def failure(self, conn: Conn) -> Failure:
        return Failure(
            provider=self.provider_name,
            strategy=type(self).__name__,
            errors=list(conn.errors),
        )

    def run_request(self, conn: Conn) -> Conn:
        """Run the request phase; `conn.response` holds the redirect unless `conn.failed`."""
        with traced_operation(
            "blizzard_auth.request", attributes={"blizzard_auth.provider": self.provider_name}
        ):
            self.handle_request(conn)
        return conn

    async def run_callback(self, conn: Conn) -> Auth | Failure:
        """Run the callback phase, build the result and always clean up."""
        with traced_operation(
            "blizzard_auth.callback", attributes={"blizzard_auth.provider": self.provider_name}
        ) as span:
            try:
                await self.handle_callback(conn)
                if not conn.failed:
                    try:
                        return self.auth(conn)
                    except ProviderError as exc:
                        self.record_error(conn, exc)
                set_span_attribute(
                    span, "blizzard_auth.errors", [e.message_key for e in conn.errors]
                )
                return self.failure(conn)
            finally:
                self.handle_cleanup(conn)


class BlizzardStrategy(Strategy):
    """Strategy for authenticating with Battle.net.

    To request other permissions include them in the request URL:

        /auth/blizzard?scope=wow.profile,sc2.profile

    A `state` param is forwarded to Battle.net unchanged and comes back on the
    callback. A `region` param selects the Battle.net region (default: the
    configured `default_region`). It must be one of `us`, `eu`, `kr`, `tw` or `cn`
    and is carried on the `redirect_uri` so the callback talks to the same region.
    """

    provider_name = "blizzard"
    token_key = "blizzard_token"
    user_key = "blizzard_user"

    config: BlizzardAuthConfigModel

    def __init__(
        self,
        config: BlizzardAuthConfigModel,
        *,
        oauth: BlizzardOAuth | None = None,
        url_builder: URLBuilder | None = None,
        **options: Any,
    ):
        super().__init__(
            config, url_builder=url_builder or URLBuilder(config.transport), **options
        )
        self.oauth = oauth or BlizzardOAuth(config)

    def handle_request(self, conn: Conn) -> None:
        """Redirect to the Battle.net authorize page.

        An unsupported region is recorded on `conn.errors` and no redirect is set.
        """
        scope = conn.params.get("scope") or self.option("default_scope")
        state = conn.params.get("state")
        try:
            region = self._region(conn)
        except InvalidRegion as exc:
            self.record_error(conn, exc)
            return

        url = self.oauth.authorize_url(
            redirect_uri=self._redirect_uri(conn),
            scope=scope,
            state=state,
            region=region,
        )
        logger.info(
            "Redirecting to Battle.net authorize endpoint",
            extra={"provider": self.provider_name, "region": region, "has_state": bool(state)},
        )
        self.redirect(conn, url)

    async def handle_callback(self, conn: Conn) -> None:
        """Handle the callback from Battle.net.

        Failures are recorded on `conn.errors`; on success the token and user
        profile are stored in `conn.private`.
        """
        code = conn.params.get("code")
        if not code:
            self.record_error(conn, MissingCode())
            return

        try:
            region = self._region(conn)
        except InvalidRegion as exc:
            self.record_error(conn, exc)
            return

        try:
            token = await self.oauth.get_token(
                code=code, redirect_uri=self._redirect_uri(conn), region=region
            )
        except TransportError as exc:
            self.record_error(conn, exc)
            return

        if token.access_token is None:
            self.record_error(conn, token_error(token))
            return

        await self._fetch_user(conn, token, region)

    def handle_cleanup(self, conn: Conn) -> None:
        """Clear the raw Battle.net data kept on the connection during the callback."""
        conn.put_private(self.user_key, None)
        conn.put_private(self.token_key, None)

    def uid(self, conn: Conn) -> Any:
        """Return the configured `uid_field` (default `id`) of the Battle.net profile.

        Returns None when no profile is stored on the connection.

        Raises:
            MissingProfileField: the stored profile has no such field.
        """
        user = conn.get_private(self.user_key)
        if user is None:
            return None
        field = str(self.option("uid_field"))
        if field not in user:
            raise MissingProfileField(field)
        return user[field]

    def credentials(self, conn: Conn) -> Credentials | None:
        token: Token | None = conn.get_private(self.token_key)
        if token is None:
            return None
        return Credentials(
            token=token.access_token,
            refresh_token=token.refresh_token,
            expires_at=token.expires_at,
            token_type=token.token_type,
            expires=token.expires_at is not None,
            scopes=[scope for scope in token.scope.split(",") if scope],
        )

    def info(self, conn: Conn) -> Info:
        user = conn.get_private(self.user_key) or {}
        return Info(battletag=user.get("battletag"))

    def extra(self, conn: Conn) -> Extra:
        """Raw token and profile, for consumers that need more than `info`."""
        return Extra(
            raw_info={
                "token": conn.get_private(self.token_key),
                "user": conn.get_private(self.user_key),
            }
        )

    def _region(self, conn: Conn) -> str:
        return validate_region(conn.params.get("region") or self.option("default_region"))

    def _redirect_uri(self, conn: Conn) -> str:
        """Callback URL for the authorize and token requests.

        A region requested on the login URL is added as a query param so that
        Battle.net returns it on the callback, where the same URL is rebuilt for
        the token exchange.
        """
        url = self.callback_url(conn)
        region = conn.params.get("region")
        if not region:
            return url
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}{urlencode({'region': region})}"

    async def _fetch_user(self, conn: Conn, token: Token, region: str) -> None:
        conn.put_private(self.token_key, token)

        url = f"{resolve_api_host(region)}/account/user"
        try:
            response = await self.oauth.get(token, url)
        except (UnauthorizedToken, TransportError) as exc:
            self.record_error(conn, exc)
            return

        if not isinstance(response.body, dict):
            self.record_error(
                conn,
                TransportError("Invalid profile payload", status_code=response.status_code),
            )
            return

        conn.put_private(self.user_key, response.body)


__all__ = ["BlizzardStrategy", "Strategy"]
