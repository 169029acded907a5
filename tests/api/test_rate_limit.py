"""Tests for client resolution and the shared rate limiter."""

import pytest
from starlette.requests import Request

from dayjobs.api.config import Settings
from dayjobs.api.rate_limit import (
    configure_limiter,
    get_client_ip,
    limiter,
    parse_networks,
    resolve_client,
)

API = "/api/v1"


def _request(peer, forwarded_for=None):
    headers = []
    if forwarded_for is not None:
        headers.append((b"x-forwarded-for", forwarded_for.encode()))
    return Request({"type": "http", "headers": headers, "client": (peer, 52000)})


def _settings(**overrides):
    return Settings(jwt_secret_key="rate-limit-tests", **overrides)


class TestClientResolution:
    """Tests for which address a request is charged to."""

    def test_forwarded_from_trusted_proxy(self):
        assert get_client_ip(_request("10.0.0.5", "203.0.113.9, 10.0.0.5")) == "203.0.113.9"

    def test_spoofed_header_from_untrusted_peer(self):
        assert get_client_ip(_request("198.51.100.7", "203.0.113.9")) == "198.51.100.7"

    def test_no_header_uses_peer(self):
        assert get_client_ip(_request("10.0.0.5")) == "10.0.0.5"

    def test_empty_first_hop_uses_peer(self):
        trusted = parse_networks(("10.0.0.0/8",))
        assert resolve_client("10.0.0.5", " , 203.0.113.9", trusted) == "10.0.0.5"

    def test_custom_proxy_list(self):
        trusted = parse_networks(("192.0.2.0/24",))
        assert resolve_client("192.0.2.10", "203.0.113.9", trusted) == "203.0.113.9"
        assert resolve_client("10.0.0.5", "203.0.113.9", trusted) == "10.0.0.5"

    def test_invalid_cidrs_are_skipped(self):
        assert parse_networks(("not-a-network", "::1/128")) == parse_networks(("::1/128",))

    def test_trusted_cidrs_from_settings(self):
        settings = _settings(trusted_proxy_cidrs=["192.0.2.0/24"])
        assert [str(n) for n in parse_networks(tuple(settings.trusted_proxy_cidrs))] == [
            "192.0.2.0/24"
        ]


class TestLimiterConfiguration:
    """Tests for enabling and disabling the limiter from settings."""

    @pytest.fixture(autouse=True)
    def _restore_limiter(self):
        enabled = limiter.enabled
        limiter.reset()
        yield
        limiter.enabled = enabled
        limiter.reset()

    def test_disabled_by_settings(self):
        assert configure_limiter(_settings(rate_limit_enabled=False)).enabled is False

    def test_disabled_limiter_never_rejects(self, client, admin_headers):
        configure_limiter(_settings(rate_limit_enabled=False))
        codes = {
            client.post(f"{API}/maintenance/sweep", json={}, headers=admin_headers).status_code
            for _ in range(12)
        }
        assert codes == {200}

    def test_enabled_limiter_rejects_over_limit(self, client, admin_headers):
        configure_limiter(_settings(rate_limit_enabled=True))
        codes = [
            client.post(f"{API}/maintenance/sweep", json={}, headers=admin_headers).status_code
            for _ in range(11)
        ]
        assert codes[:10] == [200] * 10
        assert codes[10] == 429
