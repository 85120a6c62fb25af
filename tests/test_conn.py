"""Tests for request-scoped connections and callback URL building."""

from starlette.requests import Request

from blizzard_auth.conn import Conn
from blizzard_auth.models import HttpTransportConfigModel, StrategyError
from blizzard_auth.url_utils import URLBuilder


def make_request(
    query_string: bytes = b"",
    host: str = "testserver:8000",
    scheme: str = "http",
    headers: dict[str, str] | None = None,
) -> Request:
    raw_headers = [(b"host", host.encode())]
    for name, value in (headers or {}).items():
        raw_headers.append((name.lower().encode(), value.encode()))
    return Request(
        {
            "type": "http",
            "method": "GET",
            "scheme": scheme,
            "server": ("testserver", 8000),
            "path": "/auth/blizzard",
            "root_path": "",
            "query_string": query_string,
            "headers": raw_headers,
        }
    )


class TestConn:
    """Test connection state handling."""

    def test_from_request_copies_params_and_builds_callback_url(self):
        request = make_request(b"scope=sc2_profile&state=abc123&region=eu")

        conn = Conn.from_request(request, callback_path="/auth/blizzard/callback")

        assert conn.params == {"scope": "sc2_profile", "state": "abc123", "region": "eu"}
        assert conn.callback_url == "http://testserver:8000/auth/blizzard/callback"
        assert conn.errors == []
        assert conn.response is None

    def test_from_request_uses_given_url_builder(self):
        builder = URLBuilder(HttpTransportConfigModel(base_url="https://auth.example.com/"))

        conn = Conn.from_request(
            make_request(), callback_path="auth/blizzard/callback", url_builder=builder
        )

        assert conn.callback_url == "https://auth.example.com/auth/blizzard/callback"

    def test_private_storage(self):
        conn = Conn()
        assert conn.get_private("blizzard_user") is None

        conn.put_private("blizzard_user", {"id": 1})
        assert conn.get_private("blizzard_user") == {"id": 1}

        conn.put_private("blizzard_user", None)
        assert conn.get_private("blizzard_user") is None

    def test_failed_reflects_recorded_errors(self):
        conn = Conn()
        assert not conn.failed

        conn.errors.append(StrategyError(message_key="missing_code", message="No code received"))
        assert conn.failed


class TestURLBuilder:
    """Test callback URL generation."""

    def test_defaults_without_request(self):
        builder = URLBuilder()
        assert builder.get_base_url() == "http://localhost"
        assert builder.build_callback_url("/cb") == "http://localhost/cb"

    def test_explicit_base_url_wins(self):
        builder = URLBuilder(
            HttpTransportConfigModel(base_url="https://auth.example.com/", scheme="http")
        )
        assert builder.get_base_url(make_request()) == "https://auth.example.com"

    def test_configured_host_port_and_scheme(self):
        builder = URLBuilder(
            HttpTransportConfigModel(host="auth.internal", port=8443, scheme="https")
        )
        assert builder.get_base_url() == "https://auth.internal:8443"

    def test_default_ports_are_omitted(self):
        https = URLBuilder(HttpTransportConfigModel(host="example.com", port=443, scheme="https"))
        http = URLBuilder(HttpTransportConfigModel(host="example.com", port=80, scheme="http"))

        assert https.get_base_url() == "https://example.com"
        assert http.get_base_url() == "http://example.com"

    def test_request_host_and_port_are_used(self):
        builder = URLBuilder()
        assert builder.get_base_url(make_request()) == "http://testserver:8000"

    def test_forwarded_proto_ignored_without_trust_proxy(self):
        builder = URLBuilder()
        request = make_request(host="app.example.com", headers={"X-Forwarded-Proto": "https"})

        assert builder.get_base_url(request) == "http://app.example.com"

    def test_forwarded_proto_honoured_with_trust_proxy(self):
        builder = URLBuilder(HttpTransportConfigModel(trust_proxy=True))
        request = make_request(
            host="app.example.com", headers={"X-Forwarded-Proto": "HTTPS, http"}
        )

        assert builder.get_base_url(request) == "https://app.example.com"

    def test_forwarded_scheme_fallback(self):
        builder = URLBuilder(HttpTransportConfigModel(trust_proxy=True))
        request = make_request(host="app.example.com", headers={"X-Forwarded-Scheme": "https"})

        assert builder.get_base_url(request) == "https://app.example.com"

    def test_invalid_forwarded_value_falls_back_to_request_scheme(self):
        builder = URLBuilder(HttpTransportConfigModel(trust_proxy=True))
        request = make_request(host="app.example.com", headers={"X-Forwarded-Proto": "gopher"})

        assert builder.get_base_url(request) == "http://app.example.com"
