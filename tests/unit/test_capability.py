"""
Unit Tests for Capability Probing

Reliability Level: SOVEREIGN TIER

Tests the capability layer:
- Candidate order and endpoint caching
- 404 fallback; any other error propagates
- Monotone status transitions
- Unsupported groups fail without network
- Warm-up shared between concurrent callers
"""

import asyncio

import httpx
import pytest

from bitget_mcp.exchange.capability import (
    EARN_GROUP,
    CapabilityProbe,
    CapabilityRegistry,
    CapabilityStatus,
)
from bitget_mcp.exchange.errors import BitgetMcpError, ErrorKind

PRODUCTS_V2 = "/api/v2/earn/product/list"
PRODUCTS_SAVING = "/api/v2/earn/saving/product/list"


def _not_found(request):
    return httpx.Response(404, content=b'{"code":"40404","msg":"Request URL NOT FOUND"}')


def _route(mapping):
    """Answer by path; unknown paths are 404."""
    def handler(request):
        factory = mapping.get(request.url.path)
        return factory(request) if factory else _not_found(request)
    return handler


def _products_ok(request):
    return httpx.Response(200, content=b'{"code":"00000","data":[{"productId":"1"}]}')


@pytest.fixture
def registry():
    return CapabilityRegistry()


# =============================================================================
# Registry
# =============================================================================

class TestRegistry:

    def test_unregistered_group_is_unknown(self, registry):
        assert registry.get_status("earn") is CapabilityStatus.UNKNOWN

    def test_transition_from_unknown(self, registry):
        registry.register("earn")
        assert registry.mark("earn", CapabilityStatus.SUPPORTED) is CapabilityStatus.SUPPORTED
        assert registry.snapshot() == {"earn": "supported"}

    def test_settled_status_never_changes(self, registry):
        registry.register("earn")
        registry.mark("earn", CapabilityStatus.UNSUPPORTED)
        assert registry.mark("earn", CapabilityStatus.SUPPORTED) is CapabilityStatus.UNSUPPORTED
        assert registry.mark("earn", CapabilityStatus.UNKNOWN) is CapabilityStatus.UNSUPPORTED

    def test_registries_are_independent(self):
        first, second = CapabilityRegistry(), CapabilityRegistry()
        first.register("earn")
        first.mark("earn", CapabilityStatus.UNSUPPORTED)
        assert second.get_status("earn") is CapabilityStatus.UNKNOWN


# =============================================================================
# Resolution
# =============================================================================

class TestResolve:

    @pytest.mark.asyncio
    async def test_falls_back_on_404_and_caches(self, registry, client_factory):
        client, recorder = client_factory(_route({PRODUCTS_SAVING: _products_ok}))
        probe = CapabilityProbe(EARN_GROUP, registry, client)

        result = await probe.resolve("products", lambda path: client.private_get(path))

        assert result.data == [{"productId": "1"}]
        assert recorder.paths == [PRODUCTS_V2, PRODUCTS_SAVING]
        assert registry.cached_endpoint("earn", "products") == PRODUCTS_SAVING
        assert probe.status is CapabilityStatus.SUPPORTED
        assert probe.candidates("products") == [PRODUCTS_SAVING, PRODUCTS_V2]

    @pytest.mark.asyncio
    async def test_second_call_uses_cached_endpoint_first(self, registry, client_factory):
        client, recorder = client_factory(_route({PRODUCTS_SAVING: _products_ok}))
        probe = CapabilityProbe(EARN_GROUP, registry, client)

        await probe.resolve("products", lambda path: client.private_get(path))
        await probe.resolve("products", lambda path: client.private_get(path))

        assert recorder.paths == [PRODUCTS_V2, PRODUCTS_SAVING, PRODUCTS_SAVING]

    @pytest.mark.asyncio
    async def test_non_404_error_propagates_without_fallback(self, registry, client_factory):
        def auth_failure(request):
            return httpx.Response(200, content=b'{"code":"40018","msg":"Invalid IP"}')

        client, recorder = client_factory(_route({PRODUCTS_V2: auth_failure}))
        probe = CapabilityProbe(EARN_GROUP, registry, client)

        with pytest.raises(BitgetMcpError) as exc_info:
            await probe.resolve("products", lambda path: client.private_get(path))

        assert exc_info.value.kind is ErrorKind.AUTHENTICATION
        assert recorder.paths == [PRODUCTS_V2]
        assert probe.status is CapabilityStatus.UNKNOWN

    @pytest.mark.asyncio
    async def test_all_404_marks_unsupported(self, registry, client_factory):
        client, recorder = client_factory(_not_found)
        probe = CapabilityProbe(EARN_GROUP, registry, client)

        with pytest.raises(BitgetMcpError) as exc_info:
            await probe.resolve("holdings", lambda path: client.private_get(path))

        error = exc_info.value
        assert error.kind is ErrorKind.BITGET_API
        assert error.code == "EARN_UNAVAILABLE"
        assert "holdings" in error.message
        assert probe.status is CapabilityStatus.UNSUPPORTED
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_unsupported_group_fails_without_network(self, registry, client_factory):
        client, recorder = client_factory(_products_ok)
        registry.register("earn")
        registry.mark("earn", CapabilityStatus.UNSUPPORTED)
        probe = CapabilityProbe(EARN_GROUP, registry, client)

        with pytest.raises(BitgetMcpError) as exc_info:
            await probe.resolve("products", lambda path: client.private_get(path))
        with pytest.raises(BitgetMcpError):
            await probe.ensure_supported()

        assert exc_info.value.code == "EARN_UNAVAILABLE"
        assert recorder.requests == []

    def test_unknown_operation_is_programming_error(self, registry, client_factory):
        client, _ = client_factory(_products_ok)
        probe = CapabilityProbe(EARN_GROUP, registry, client)
        with pytest.raises(ValueError):
            probe.candidates("transfer")


# =============================================================================
# Warm-Up and ensure_supported
# =============================================================================

class TestWarmUp:

    @pytest.mark.asyncio
    async def test_concurrent_warm_ups_share_one_probe(self, registry, client_factory):
        client, recorder = client_factory(_route({PRODUCTS_V2: _products_ok}))
        probe = CapabilityProbe(EARN_GROUP, registry, client)

        statuses = await asyncio.gather(probe.warm_up(), probe.warm_up(), probe.warm_up())

        assert statuses == [CapabilityStatus.SUPPORTED] * 3
        assert recorder.paths == [PRODUCTS_V2]
        assert str(recorder.requests[0].url).endswith("?coin=USDT")

    @pytest.mark.asyncio
    async def test_warm_up_failure_is_swallowed(self, registry, client_factory):
        def server_error(request):
            return httpx.Response(500, content=b"Internal Server Error")

        client, _ = client_factory(server_error)
        probe = CapabilityProbe(EARN_GROUP, registry, client)

        assert await probe.warm_up() is CapabilityStatus.UNKNOWN

    @pytest.mark.asyncio
    async def test_ensure_supported_probes_when_unknown(self, registry, client_factory):
        client, recorder = client_factory(_route({PRODUCTS_V2: _products_ok}))
        probe = CapabilityProbe(EARN_GROUP, registry, client)

        await probe.ensure_supported()
        await probe.ensure_supported()

        assert probe.status is CapabilityStatus.SUPPORTED
        assert recorder.paths == [PRODUCTS_V2]

    @pytest.mark.asyncio
    async def test_ensure_supported_raises_after_unsupported_probe(self, registry, client_factory):
        client, _ = client_factory(_not_found)
        probe = CapabilityProbe(EARN_GROUP, registry, client)

        with pytest.raises(BitgetMcpError) as exc_info:
            await probe.ensure_supported()
        assert exc_info.value.code == "EARN_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_untyped_warm_up_failure_is_swallowed(self, registry, client_factory):
        def broken(request):
            raise RuntimeError("transport misconfigured")

        client, _ = client_factory(broken)
        probe = CapabilityProbe(EARN_GROUP, registry, client)

        assert await probe.warm_up() is CapabilityStatus.UNKNOWN
        assert await probe.warm_up() is CapabilityStatus.UNKNOWN

    @pytest.mark.asyncio
    async def test_concurrent_ensure_supported_after_failed_warm_up_share_one_probe(
        self, registry, client_factory
    ):
        calls = []

        async def flaky(request):
            calls.append(request.url.path)
            await asyncio.sleep(0)
            if len(calls) == 1:
                return httpx.Response(500, content=b"Internal Server Error")
            return _products_ok(request)

        client, _ = client_factory(flaky)
        probe = CapabilityProbe(EARN_GROUP, registry, client)
        assert await probe.warm_up() is CapabilityStatus.UNKNOWN

        await asyncio.gather(*(probe.ensure_supported() for _ in range(5)))

        assert probe.status is CapabilityStatus.SUPPORTED
        assert calls == [PRODUCTS_V2, PRODUCTS_V2]
