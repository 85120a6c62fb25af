"""OAuth2 client for Battle.net.

Builds region-specific client configuration and performs the token exchange and
authenticated API requests. Battle.net expects `client_secret` as a request
parameter on both the token request and API requests, in addition to the usual
OAuth2 client credentials.

Example:
    oauth = BlizzardOAuth(BlizzardAuthConfigModel(client_id="cid", client_secret="secret"))
    url = oauth.authorize_url(redirect_uri="http://localhost:4000/auth/blizzard/callback",
                              scope="wow.profile")
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

import httpx
from mcp.shared._httpx_utils import create_mcp_http_client
from pydantic import ConfigDict, ValidationError

from .contracts import InvalidRegion, ProviderTokenError, TransportError, UnauthorizedToken
from .models import (
    REGIONS,
    BlizzardAuthConfigModel,
    BlizzardBaseModel,
    OAuthResponse,
    Token,
)
from .telemetry import SpanKind, set_span_attribute, traced_operation

logger = logging.getLogger(__name__)

CHINA_REGION = "cn"
CHINA_HOST = "https://www.battlenet.com.cn"
CHINA_API_HOST = "https://api.battlenet.com.cn"

DEFAULTS: dict[str, Any] = {
    "strategy": "blizzard",
    "site": "https://battle.net",
    "authorize_url": "https://blizzard.com/login/oauth/authorize",
    "token_url": "https://blizzard.com/login/oauth/access_token",
}

_TOKEN_FIELDS = frozenset(
    {"access_token", "refresh_token", "expires_in", "expires_at", "token_type"}
)


# A region is interpolated as a single two-letter hostname label.
_REGION_LABEL = re.compile(r"[A-Za-z]{2}")


def validate_region(region: str) -> str:
    """Return `region` if it is a supported Battle.net region.

    Raises:
        InvalidRegion: unknown region.
    """
    if region not in REGIONS:
        raise InvalidRegion(region)
    return region


def resolve_host(region: str) -> str:
    """Return the OAuth host for a Battle.net region."""
    if region == CHINA_REGION:
        return CHINA_HOST
    if not _REGION_LABEL.fullmatch(region):
        raise InvalidRegion(region)
    return f"https://{region}.battle.net"


def resolve_api_host(region: str) -> str:
    """Return the API host for a Battle.net region."""
    if region == CHINA_REGION:
        return CHINA_API_HOST
    if not _REGION_LABEL.fullmatch(region):
        raise InvalidRegion(region)
    return f"https://{region}.api.battle.net"


class ClientConfig(BlizzardBaseModel):
    """Merged OAuth2 client configuration for one Battle.net call."""

    strategy: str
    site: str
    authorize_url: str
    token_url: str
    client_id: str
    client_secret: str
    redirect_uri: str | None = None
    scope: str | None = None
    token: Token | None = None


class _BlizzardTokenResponse(BlizzardBaseModel):
    """Token endpoint response (successful or error)."""

    model_config = ConfigDict(extra="allow", frozen=True)

    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: float | None = None
    expires_at: float | None = None
    token_type: str | None = None

    error: str | None = None
    error_description: str | None = None


class BlizzardOAuth:
    """OAuth2 client adapter bound to one immutable provider configuration."""

    provider_name = "blizzard"

    def __init__(self, config: BlizzardAuthConfigModel):
        self.config = config

    def client(self, region: str | None = None, **overrides: Any) -> ClientConfig:
        """Construct a client for requests to Battle.net.

        Precedence, lowest first: compiled-in defaults, provider configuration,
        region-resolved endpoints, then `overrides` (e.g. `redirect_uri`, `scope`).

        Raises:
            InvalidRegion: the region is not a supported Battle.net region.
        """
        host = resolve_host(validate_region(region or self.config.default_region))
        merged: dict[str, Any] = dict(DEFAULTS)
        merged.update(client_id=self.config.client_id, client_secret=self.config.client_secret)
        merged.update(authorize_url=f"{host}/oauth/authorize", token_url=f"{host}/oauth/token")
        merged.update(overrides)
        return ClientConfig.model_validate(merged)

    def authorize_url(
        self,
        *,
        redirect_uri: str,
        scope: str,
        state: str | None = None,
        region: str | None = None,
        extra_params: Mapping[str, str] | None = None,
    ) -> str:
        """Build the authorization-code grant URL for the request phase."""
        client = self.client(region, redirect_uri=redirect_uri, scope=scope)
        params: list[tuple[str, str]] = [
            ("client_id", client.client_id),
            ("redirect_uri", redirect_uri),
            ("response_type", "code"),
            ("scope", scope),
        ]
        if state is not None:
            params.append(("state", state))
        if extra_params:
            params.extend(extra_params.items())
        return f"{client.authorize_url}?{urlencode(params)}"

    async def get_token(
        self, *, code: str, redirect_uri: str, region: str | None = None
    ) -> Token:
        """Exchange an authorization code for a token.

        A provider error answer yields a `Token` without `access_token`; callers
        decide how to report it. Use `get_token_or_raise` to fail instead.
        """
        client = self.client(region, redirect_uri=redirect_uri)
        payload = {
            "grant_type": "authorization_code",
            "client_id": client.client_id,
            "client_secret": client.client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
        }
        return await self._request_token(client, payload=payload, context="exchange_code")

    async def get_token_or_raise(
        self, *, code: str, redirect_uri: str, region: str | None = None
    ) -> Token:
        token = await self.get_token(code=code, redirect_uri=redirect_uri, region=region)
        if token.access_token is None:
            raise token_error(token)
        return token

    async def refresh_token(self, token: Token, *, region: str | None = None) -> Token:
        """Use the token's refresh token to obtain a new access token."""
        if not token.refresh_token:
            raise ProviderTokenError("invalid_request", "Token has no refresh_token")

        client = self.client(region)
        payload = {
            "grant_type": "refresh_token",
            "client_id": client.client_id,
            "client_secret": client.client_secret,
            "refresh_token": token.refresh_token,
        }
        refreshed = await self._request_token(client, payload=payload, context="refresh_token")
        if refreshed.access_token is None:
            raise token_error(refreshed)
        if refreshed.refresh_token is None:
            # Battle.net may omit the refresh token; keep the one we have.
            refreshed = refreshed.model_copy(update={"refresh_token": token.refresh_token})
        return refreshed

    async def get(
        self,
        token: Token,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> OAuthResponse:
        """GET `url` with the token as bearer credential and `client_secret` as a param.

        Raises:
            UnauthorizedToken: the provider answered 401.
            TransportError: network failure or any status outside 2xx/3xx.
        """
        if not token.access_token:
            raise UnauthorizedToken("No access token")

        client = self.client(token=token)
        query = dict(params or {})
        query["client_secret"] = client.client_secret
        request_headers = {"Accept": "application/json", **(headers or {})}
        request_headers["Authorization"] = f"Bearer {token.access_token}"

        with traced_operation(
            "blizzard_auth.oauth.get",
            attributes={"http.method": "GET", "http.url": url},
            kind=SpanKind.CLIENT,
        ) as span:
            try:
                async with create_mcp_http_client(timeout=self._timeout()) as http:
                    resp = await http.get(url, params=query, headers=request_headers)
            except httpx.HTTPError as exc:
                logger.warning(
                    "Battle.net API request failed",
                    extra={"provider": self.provider_name, "endpoint": url, "error": str(exc)},
                )
                raise TransportError(_reason(exc)) from exc

            set_span_attribute(span, "http.status_code", resp.status_code)
            if resp.status_code == 401:
                logger.warning(
                    "Battle.net API rejected access token",
                    extra={"provider": self.provider_name, "endpoint": url, "status_code": 401},
                )
                raise UnauthorizedToken()
            if not 200 <= resp.status_code < 400:
                logger.warning(
                    "Battle.net API returned unexpected status",
                    extra={
                        "provider": self.provider_name,
                        "endpoint": url,
                        "status_code": resp.status_code,
                    },
                )
                raise TransportError(
                    f"Unexpected HTTP status {resp.status_code}", status_code=resp.status_code
                )

            return OAuthResponse(
                status_code=resp.status_code,
                headers=dict(resp.headers),
                body=_parse_body(resp),
            )

    # ── helpers ──────────────────────────────────────────────────────────────
    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.config.http_timeout)

    async def _request_token(
        self, client: ClientConfig, *, payload: Mapping[str, str], context: str
    ) -> Token:
        with traced_operation(
            "blizzard_auth.oauth.token",
            attributes={"blizzard_auth.context": context, "http.url": client.token_url},
            kind=SpanKind.CLIENT,
        ) as span:
            try:
                async with create_mcp_http_client(timeout=self._timeout()) as http:
                    resp = await http.post(
                        client.token_url,
                        data=payload,
                        headers={
                            "Content-Type": "application/x-www-form-urlencoded",
                            "Accept": "application/json",
                        },
                    )
            except httpx.HTTPError as exc:
                logger.warning(
                    "Battle.net token request failed",
                    extra={
                        "provider": self.provider_name,
                        "endpoint": "token",
                        "context": context,
                        "error": str(exc),
                    },
                )
                raise TransportError(_reason(exc)) from exc

            set_span_attribute(span, "http.status_code", resp.status_code)
            return self._parse_token_response(resp, context=context)

    def _parse_token_response(self, resp: Any, *, context: str) -> Token:
        try:
            data = resp.json()
        except Exception as exc:
            logger.warning(
                "Battle.net token endpoint returned invalid JSON",
                extra={
                    "provider": self.provider_name,
                    "endpoint": "token",
                    "context": context,
                    "status_code": resp.status_code,
                },
            )
            raise TransportError(
                f"Invalid token response (HTTP {resp.status_code})",
                status_code=resp.status_code,
            ) from exc

        if not isinstance(data, dict):
            raise TransportError(
                f"Invalid token response (HTTP {resp.status_code})",
                status_code=resp.status_code,
            )

        try:
            parsed = _BlizzardTokenResponse.model_validate(data)
        except ValidationError as exc:
            raise TransportError(
                "Invalid token response payload", status_code=resp.status_code
            ) from exc

        ok = 200 <= resp.status_code < 300
        if not ok and parsed.error is None:
            logger.warning(
                "Battle.net token endpoint returned non-2xx",
                extra={
                    "provider": self.provider_name,
                    "endpoint": "token",
                    "context": context,
                    "status_code": resp.status_code,
                },
            )
            raise TransportError(
                f"Unexpected HTTP status {resp.status_code}", status_code=resp.status_code
            )

        if parsed.error is not None:
            logger.warning(
                "Battle.net token endpoint returned OAuth error",
                extra={
                    "provider": self.provider_name,
                    "endpoint": "token",
                    "context": context,
                    "status_code": resp.status_code,
                    "provider_error": parsed.error,
                },
            )

        return _token_from_payload(data, parsed)


def _token_from_payload(data: dict[str, Any], parsed: _BlizzardTokenResponse) -> Token:
    expires_at: int | None = None
    if parsed.expires_in is not None:
        expires_at = int(time.time()) + int(parsed.expires_in)
    elif parsed.expires_at is not None:
        expires_at = int(parsed.expires_at)

    return Token(
        access_token=parsed.access_token or None,
        refresh_token=parsed.refresh_token,
        expires_at=expires_at,
        token_type=_normalize_token_type(parsed.token_type),
        other_params={k: v for k, v in data.items() if k not in _TOKEN_FIELDS},
    )


def _normalize_token_type(token_type: str | None) -> str:
    if token_type is None or token_type.lower() == "bearer":
        return "Bearer"
    return token_type


def token_error(token: Token) -> ProviderTokenError:
    error = token.other_params.get("error")
    description = token.other_params.get("error_description")
    return ProviderTokenError(
        error if isinstance(error, str) and error else "invalid_grant",
        description if isinstance(description, str) else None,
    )


def _parse_body(resp: Any) -> Any:
    try:
        return resp.json()
    except Exception:
        return resp.text


def _reason(exc: httpx.HTTPError) -> str:
    return str(exc) or exc.__class__.__name__


__all__ = [
    "BlizzardOAuth",
    "ClientConfig",
    "resolve_api_host",
    "resolve_host",
    "token_error",
    "validate_region",
]
