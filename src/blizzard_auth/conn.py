"""Request-scoped connection state shared between the host and a strategy.

A `Conn` lives for exactly one inbound request. Strategies read query params
from it, stash provider data in `private`, record errors and set the response.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from starlette.requests import Request
from starlette.responses import Response

from .models import StrategyError
from .url_utils import URLBuilder


@dataclass
class Conn:
    """Connection for one request/response cycle."""

    params: dict[str, str] = field(default_factory=dict)
    callback_url: str = ""
    private: dict[str, Any] = field(default_factory=dict)
    errors: list[StrategyError] = field(default_factory=list)
    response: Response | None = None

    @classmethod
    def from_request(
        cls,
        request: Request,
        *,
        callback_path: str,
        url_builder: URLBuilder | None = None,
    ) -> Conn:
        """Build a connection from a Starlette request."""
        builder = url_builder or URLBuilder()
        return cls(
            params=dict(request.query_params),
            callback_url=builder.build_callback_url(callback_path, request=request),
        )

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    def put_private(self, key: str, value: Any) -> None:
        self.private[key] = value

    def get_private(self, key: str) -> Any:
        return self.private.get(key)


__all__ = ["Conn"]
