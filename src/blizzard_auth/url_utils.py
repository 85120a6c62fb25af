"""URL generation utilities for OAuth callbacks with reverse proxy support."""

import logging

from starlette.requests import Request

from .models import HttpTransportConfigModel

logger = logging.getLogger(__name__)


class URLBuilder:
    """Build absolute callback URLs with proper scheme detection.

    Handles:
    - Explicit scheme configuration (http/https)
    - Base URL override
    - Reverse proxy header detection (X-Forwarded-Proto, X-Forwarded-Scheme)
    - Fallback to the request's own scheme, host and port
    """

    def __init__(self, transport_config: HttpTransportConfigModel | None = None):
        self.transport_config = transport_config or HttpTransportConfigModel()

    def get_base_url(self, request: Request | None = None) -> str:
        """Get the base URL of the server (e.g. 'https://api.example.com:8000')."""
        if self.transport_config.base_url:
            logger.debug(f"Using explicit base_url from config: {self.transport_config.base_url}")
            return self.transport_config.base_url.rstrip("/")

        scheme = self._detect_scheme(request)

        host = self.transport_config.host
        port = self.transport_config.port
        if request is not None:
            host = host or request.url.hostname
            port = port or request.url.port
        host = host or "localhost"

        if port is None or (scheme, port) in {("https", 443), ("http", 80)}:
            base_url = f"{scheme}://{host}"
        else:
            base_url = f"{scheme}://{host}:{port}"

        logger.debug(f"Built base URL: {base_url} (scheme={scheme}, host={host}, port={port})")
        return base_url

    def build_callback_url(self, callback_path: str, request: Request | None = None) -> str:
        """Build a complete callback URL for `callback_path`."""
        base_url = self.get_base_url(request)
        return f"{base_url}/{callback_path.lstrip('/')}"

    def _detect_scheme(self, request: Request | None = None) -> str:
        """Detect the URL scheme.

        Priority order:
        1. Explicit scheme in transport config
        2. X-Forwarded-Proto header (if trust_proxy enabled)
        3. X-Forwarded-Scheme header (if trust_proxy enabled)
        4. Request scheme (if available)
        5. Default to 'http'
        """
        if self.transport_config.scheme:
            return self.transport_config.scheme

        if self.transport_config.trust_proxy and request is not None:
            forwarded_proto = request.headers.get("x-forwarded-proto")
            if forwarded_proto:
                # Comma-separated when chained through several proxies; take the first.
                scheme = forwarded_proto.split(",")[0].strip().lower()
                if scheme in ("http", "https"):
                    return scheme

            forwarded_scheme = request.headers.get("x-forwarded-scheme")
            if forwarded_scheme:
                scheme = forwarded_scheme.strip().lower()
                if scheme in ("http", "https"):
                    return scheme

        if request is not None:
            scheme = request.url.scheme.lower()
            if scheme in ("http", "https"):
                return scheme

        return "http"


__all__ = ["URLBuilder"]
