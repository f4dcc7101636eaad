"""
Shared fixtures for the Bitget MCP Bridge test suite.

Reliability Level: SOVEREIGN TIER

- FakeClock: deterministic monotonic clock with an async sleep that advances it
- make_config / make_client: BitgetConfig and BitgetRestClient backed by
  httpx.MockTransport, with every outgoing request recorded
"""

import json
from typing import Any, Callable, List, Optional

import httpx
import pytest

from bitget_mcp.config import BitgetConfig
from bitget_mcp.exchange.rate_limiter import RateLimiter
from bitget_mcp.exchange.rest_client import BitgetRestClient

TEST_BASE_URL = "https://api.bitget.test"


class FakeClock:
    """Monotonic clock in seconds; sleep() advances it instead of waiting."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_config(with_auth: bool = True, **overrides: Any) -> BitgetConfig:
    values = {
        "base_url": TEST_BASE_URL,
        "modules": ["spot", "futures", "account", "earn"],
    }
    if with_auth:
        values.update(api_key="test-api-key-1234", secret_key="test-secret", passphrase="test-pass")
    values.update(overrides)
    return BitgetConfig(**values)


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode("utf-8"))


def ok_response(data: Any = None) -> httpx.Response:
    return json_response({"code": "00000", "msg": "success", "requestTime": 1, "data": data})


class RecordingTransport:
    """httpx.MockTransport wrapper that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.requests: List[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    config: Optional[BitgetConfig] = None,
    rate_limiter: Optional[RateLimiter] = None,
):
    """Build a client whose HTTP layer is served by handler."""
    recorder = RecordingTransport(handler)
    client = BitgetRestClient(
        config or make_config(),
        rate_limiter=rate_limiter,
        http_client=httpx.AsyncClient(transport=recorder.transport),
    )
    return client, recorder


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config_factory() -> Callable[..., BitgetConfig]:
    return make_config


@pytest.fixture
def client_factory():
    return make_client


@pytest.fixture
def responses():
    """Response builders: responses.ok(data), responses.json(payload, status)."""
    class _Responses:
        ok = staticmethod(ok_response)
        json = staticmethod(json_response)
    return _Responses
