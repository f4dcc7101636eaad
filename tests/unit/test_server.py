"""
Unit Tests for the MCP Tool Server

Reliability Level: SOVEREIGN TIER

Tests BitgetToolServer dispatch:
- Success and error payload shapes
- Unknown tools
- Capability snapshot per module
- Earn warm-up and hiding of unsupported earn tools
- MCP and SSE wiring
"""

import json

import httpx
import pytest
from mcp.types import CallToolRequest, CallToolRequestParams
from starlette.testclient import TestClient

from bitget_mcp.exchange.capability import CapabilityRegistry
from bitget_mcp.server import (
    SYSTEM_CAPABILITIES_TOOL_NAME,
    BitgetToolServer,
    create_mcp_server,
    create_sse_app,
)


def _ok(request):
    return httpx.Response(200, content=b'{"code":"00000","data":[{"symbol":"BTCUSDT"}]}')


def _earn_missing(request):
    if "/earn/" in request.url.path:
        return httpx.Response(404, content=b'{"code":"40404","msg":"NOT FOUND"}')
    return _ok(request)


@pytest.fixture
def server_factory(client_factory, config_factory):
    def build(handler=_ok, **config_overrides):
        config = config_factory(**config_overrides)
        client, recorder = client_factory(handler, config=config)
        return BitgetToolServer(config, client=client, registry=CapabilityRegistry()), recorder
    return build


# =============================================================================
# Dispatch
# =============================================================================

class TestCallTool:

    @pytest.mark.asyncio
    async def test_success_payload(self, server_factory):
        server, _ = server_factory(modules=["spot"])
        payload = await server.call_tool("spot_get_ticker", {"symbol": "BTCUSDT"})

        assert payload["tool"] == "spot_get_ticker"
        assert payload["ok"] is True
        assert payload["data"]["data"] == [{"symbol": "BTCUSDT"}]
        assert payload["timestamp"].endswith("Z")
        assert payload["capabilities"]["moduleAvailability"]["spot"] == {"status": "enabled"}

    @pytest.mark.asyncio
    async def test_validation_error_payload(self, server_factory):
        server, recorder = server_factory(modules=["spot"])
        payload = await server.call_tool("spot_get_depth", {})

        assert payload["error"] is True
        assert payload["type"] == "ValidationError"
        assert payload["tool"] == "spot_get_depth"
        assert "capabilities" in payload
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_none_arguments_treated_as_empty(self, server_factory):
        server, _ = server_factory(modules=["spot"])
        payload = await server.call_tool("spot_get_ticker", None)
        assert payload["ok"] is True

    @pytest.mark.asyncio
    async def test_unknown_tool(self, server_factory):
        server, _ = server_factory(modules=["spot"])
        payload = await server.call_tool("futures_get_ticker", {})

        assert payload["error"] is True
        assert payload["type"] == "BitgetApiError"
        assert payload["code"] == "TOOL_NOT_AVAILABLE"

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_internal_error(self, server_factory, monkeypatch):
        server, _ = server_factory(modules=["spot"])

        async def explode(path, *args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(server.client, "public_get", explode)
        payload = await server.call_tool("spot_get_ticker", {})
        assert payload["type"] == "InternalError"

    @pytest.mark.asyncio
    async def test_system_capabilities(self, server_factory):
        server, _ = server_factory(modules=["spot", "account"], read_only=True)
        payload = await server.call_tool(SYSTEM_CAPABILITIES_TOOL_NAME, {})

        data = payload["data"]
        assert data["server"] == {"name": "bitget-mcp-server", "version": "1.0.0"}
        assert data["capabilities"]["readOnly"] is True
        assert data["capabilities"]["hasAuth"] is True


# =============================================================================
# Capability Snapshot
# =============================================================================

class TestCapabilitySnapshot:

    def test_filtered_modules_are_disabled(self, server_factory):
        server, _ = server_factory(modules=["spot"])
        availability = server.capability_snapshot()["moduleAvailability"]
        assert availability["futures"] == {"status": "disabled", "reasonCode": "MODULE_FILTERED"}
        assert availability["earn"] == {"status": "disabled", "reasonCode": "MODULE_FILTERED"}

    def test_earn_without_credentials_requires_auth(self, server_factory):
        server, _ = server_factory(with_auth=False)
        availability = server.capability_snapshot()["moduleAvailability"]
        assert availability["earn"] == {"status": "requires_auth", "reasonCode": "AUTH_MISSING"}

    def test_earn_unknown_before_probe(self, server_factory):
        server, _ = server_factory()
        availability = server.capability_snapshot()["moduleAvailability"]
        assert availability["earn"] == {"status": "unknown", "reasonCode": "CAPABILITY_PROBING"}


# =============================================================================
# Earn Warm-Up
# =============================================================================

class TestEarnWarmUp:

    @pytest.mark.asyncio
    async def test_list_tools_hides_unsupported_earn(self, server_factory):
        server, recorder = server_factory(handler=_earn_missing)
        tools = await server.list_tools()
        names = [tool.name for tool in tools]

        assert not any(name.startswith("earn_") for name in names)
        assert names[-1] == SYSTEM_CAPABILITIES_TOOL_NAME
        assert server.capability_snapshot()["moduleAvailability"]["earn"] == {
            "status": "unsupported",
            "reasonCode": "EARN_UNAVAILABLE",
        }

        await server.list_tools()
        assert sum("/earn/" in path for path in recorder.paths) == 2

    @pytest.mark.asyncio
    async def test_list_tools_keeps_supported_earn(self, server_factory):
        server, _ = server_factory()
        names = [tool.name for tool in await server.list_tools()]
        assert "earn_get_products" in names
        assert server.capability_snapshot()["moduleAvailability"]["earn"] == {"status": "enabled"}

    @pytest.mark.asyncio
    async def test_no_warm_up_without_credentials(self, server_factory):
        server, recorder = server_factory(with_auth=False)
        await server.list_tools()
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_untyped_warm_up_failure_does_not_break_later_calls(self, server_factory):
        def earn_broken(request):
            if "/earn/" in request.url.path:
                raise RuntimeError("transport misconfigured")
            return _ok(request)

        server, _ = server_factory(handler=earn_broken)

        names = [tool.name for tool in await server.list_tools()]
        payload = await server.call_tool("spot_get_ticker", {"symbol": "BTCUSDT"})

        assert "earn_get_products" in names
        assert payload["ok"] is True
        assert payload["capabilities"]["moduleAvailability"]["earn"]["status"] == "unknown"

    @pytest.mark.asyncio
    async def test_unsupported_earn_call_fails_without_network(self, server_factory):
        server, recorder = server_factory(handler=_earn_missing)
        await server.list_tools()
        probed = len(recorder.requests)

        payload = await server.call_tool("earn_get_holdings", {})

        assert payload["code"] == "EARN_UNAVAILABLE"
        assert len(recorder.requests) == probed


# =============================================================================
# Wiring
# =============================================================================

class TestWiring:

    def test_create_mcp_server(self, server_factory):
        server, _ = server_factory()
        mcp_server = create_mcp_server(server)
        assert mcp_server.name == "bitget-mcp-server"

    def test_health_route(self, server_factory):
        server, _ = server_factory(modules=["spot"])
        client = TestClient(create_sse_app(server))

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["capabilities"]["moduleAvailability"]["spot"]["status"] == "enabled"

    def test_unknown_route_is_404(self, server_factory):
        server, _ = server_factory()
        client = TestClient(create_sse_app(server))
        response = client.get("/nope")
        assert response.status_code == 404
        assert json.loads(response.text)["path"] == "/nope"

    @pytest.mark.asyncio
    async def test_mcp_error_result_is_flagged(self, server_factory):
        def auth_failure(request):
            return httpx.Response(200, content=b'{"code":"40017","msg":"Parameter verification failed"}')

        server, _ = server_factory(handler=auth_failure, modules=["account"])
        mcp_server = create_mcp_server(server)
        request = CallToolRequest(
            method="tools/call",
            params=CallToolRequestParams(name="get_account_assets", arguments={}),
        )

        result = (await mcp_server.request_handlers[CallToolRequest](request)).root

        assert result.isError is True
        assert result.structuredContent["type"] == "AuthenticationError"
        assert result.structuredContent["error"] is True
        assert json.loads(result.content[0].text) == result.structuredContent

    @pytest.mark.asyncio
    async def test_mcp_success_result_is_not_flagged(self, server_factory):
        server, _ = server_factory(modules=["spot"])
        mcp_server = create_mcp_server(server)
        request = CallToolRequest(
            method="tools/call",
            params=CallToolRequestParams(name="spot_get_ticker", arguments={"symbol": "BTCUSDT"}),
        )

        result = (await mcp_server.request_handlers[CallToolRequest](request)).root

        assert result.isError is False
        assert result.structuredContent["ok"] is True
        assert result.structuredContent["tool"] == "spot_get_ticker"
