"""
Pytest configuration and shared fixtures.
"""

import json

import pytest

from caesarbot_gateway.config.models import (
    BirdeyeConfig,
    GatewayConfig,
    HeliusConfig,
    HttpConfig,
    OpenAIConfig,
    PumpPortalConfig,
    SupabaseConfig,
)


class FakeResponse:
    """Stands in for ``aiohttp.ClientResponse`` inside ``session.request``."""

    def __init__(self, status=200, body=None, headers=None):
        self.status = status
        if body is None:
            self._text = ""
        elif isinstance(body, str):
            self._text = body
        else:
            self._text = json.dumps(body)
        self.headers = headers or {}

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """
    Minimal session replaying queued responses in order.

    Queue items are ``FakeResponse`` objects or exceptions to raise.
    Every request is recorded in ``calls``.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def close(self):
        self.closed = True


@pytest.fixture
def make_session():
    """
    Build a fake session from ``(status, body)`` or ``(status, body, headers)``
    tuples, ``FakeResponse`` objects or exceptions.
    """
    def _make(*responses):
        queued = []
        for item in responses:
            if isinstance(item, tuple):
                queued.append(FakeResponse(*item))
            else:
                queued.append(item)
        return FakeSession(queued)
    return _make


@pytest.fixture
def http_config():
    return HttpConfig(timeout=5)


@pytest.fixture
def birdeye_config():
    return BirdeyeConfig(api_key="birdeye-test-key")


@pytest.fixture
def helius_config():
    return HeliusConfig(api_key="helius-test-key")


@pytest.fixture
def supabase_config():
    return SupabaseConfig(url="https://project.supabase.co", anon_key="anon-test-key")


@pytest.fixture
def pumpportal_config():
    return PumpPortalConfig(api_key="pump-test-key")


@pytest.fixture
def openai_config():
    return OpenAIConfig(api_key="sk-test")


@pytest.fixture
def gateway_config(birdeye_config, helius_config, supabase_config, pumpportal_config, openai_config):
    """Gateway configuration with every credential present."""
    config = GatewayConfig(
        birdeye=birdeye_config,
        helius=helius_config,
        supabase=supabase_config,
        pumpportal=pumpportal_config,
        openai=openai_config,
    )
    config.retry.base_delay_ms = 1
    return config


@pytest.fixture
def clean_env(monkeypatch):
    """Remove gateway environment variables so tests see only what they set."""
    from caesarbot_gateway.config.validation import get_env_var_mappings

    for name in get_env_var_mappings():
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
