"""
Tests for gateway configuration and gateway construction.
"""

import pytest

from request_gateway.app.adapters.auth_client import SessionAuthClient
from request_gateway.app.adapters.transport import HttpxTransport
from request_gateway.app.gateway import create_gateway
from request_gateway.app.ratelimit.fixed_window import RateLimitConfig
from shared.config import GatewayConfig, get_config
from shared.errors import RateLimitError
from shared.test_helpers import ScriptedTransport, json_response


def test_defaults(monkeypatch):
    monkeypatch.delenv("GATEWAY_DEFAULT_RETRIES", raising=False)
    config = GatewayConfig()

    assert config.default_timeout_ms == 30_000
    assert config.default_retries == 3
    assert config.cache_ttl_ms == 300_000
    assert config.backoff_base_ms == 1_000
    assert config.default_headers == {"Content-Type": "application/json"}


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("GATEWAY_BASE_URL", "https://api.example.test")
    monkeypatch.setenv("GATEWAY_DEFAULT_RETRIES", "5")

    config = get_config()

    assert config.base_url == "https://api.example.test"
    assert config.default_retries == 5


def test_explicit_overrides_win(monkeypatch):
    monkeypatch.setenv("GATEWAY_DEFAULT_RETRIES", "5")

    assert get_config(default_retries=1).default_retries == 1


@pytest.mark.asyncio
async def test_create_gateway_builds_default_collaborators():
    gateway = create_gateway(GatewayConfig(auth_service_url="http://auth.test"))

    assert isinstance(gateway.transport, HttpxTransport)
    assert isinstance(gateway.auth_provider, SessionAuthClient)
    assert gateway.auth_provider.auth_service_url == "http://auth.test"
    await gateway.aclose()


@pytest.mark.asyncio
async def test_create_gateway_merges_rate_limit_policies(tmp_path):
    policy_file = tmp_path / "limits.yaml"
    policy_file.write_text("/emissions:\n  max_requests: 1\n  window_ms: 60000\n/reports:\n  max_requests: 9\n  window_ms: 1000\n")
    transport = ScriptedTransport([json_response(200, {})])

    gateway = create_gateway(
        GatewayConfig(rate_limits_file=str(policy_file)),
        transport=transport,
        rate_limits={"/reports": RateLimitConfig(max_requests=2, window_ms=1_000)},
    )

    assert gateway.rate_limits["/reports"].max_requests == 2
    await gateway.post("/emissions")
    with pytest.raises(RateLimitError):
        await gateway.post("/emissions")
    await gateway.aclose()
