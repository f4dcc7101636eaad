"""
============================================================================
Bitget MCP Bridge v1.0.0
MCP Server - Tool Dispatch over stdio or SSE
============================================================================

Reliability Level: SOVEREIGN TIER (Mission-Critical)
Input Constraints: MCP JSON-RPC over stdio or SSE
Side Effects: Signed Bitget REST calls, including order placement unless
              started with --read-only

TRANSPORT
---------
- stdio: default, one MCP session over stdin/stdout
- sse:   /sse (Server-Sent Events), /messages (JSON-RPC POST), /health

SOVEREIGN MANDATE
-----------------
- Every tool result is a JSON document; failures never escape as exceptions
- Earn tools are hidden once the earn capability is known to be unsupported
- Every call carries a correlation_id through the request pipeline

ERROR CODES
-----------
- BG-SRV-001: Unknown tool requested
- BG-SRV-002: Tool call failed (payload returned to the caller)

============================================================================
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import uvicorn
from mcp.server import Server
from mcp.server.sse import SseServerTransport
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult, TextContent, Tool, ToolAnnotations
from starlette.responses import JSONResponse

from bitget_mcp.config import MODULES, SERVER_NAME, SERVER_VERSION, BitgetConfig
from bitget_mcp.exchange.capability import (
    EARN_GROUP,
    CapabilityProbe,
    CapabilityRegistry,
    CapabilityStatus,
)
from bitget_mcp.exchange.errors import BitgetMcpError, to_tool_error_payload
from bitget_mcp.exchange.rest_client import BitgetRestClient
from bitget_mcp.observability import metrics
from bitget_mcp.tools import ToolContext, ToolSpec, build_tools

logger = logging.getLogger(__name__)

SYSTEM_CAPABILITIES_TOOL_NAME = "system_get_capabilities"

SYSTEM_CAPABILITIES_TOOL = Tool(
    name=SYSTEM_CAPABILITIES_TOOL_NAME,
    description=(
        "Return machine-readable server capabilities and module availability "
        "for agent planning."
    ),
    inputSchema={"type": "object", "additionalProperties": False},
    annotations=ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    ),
)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ============================================================================
# TOOL SERVER
# ============================================================================

class BitgetToolServer:
    """
    Transport-independent tool dispatcher.

    Owns the REST client, the capability registry and one probe per
    capability group. The MCP wiring below only translates its dict results
    into CallToolResult.

    Example Usage:
        tool_server = BitgetToolServer(BitgetConfig.from_environment())
        tools = await tool_server.list_tools()
        payload = await tool_server.call_tool("spot_get_ticker", {"symbol": "BTCUSDT"})
    """

    def __init__(
        self,
        config: BitgetConfig,
        client: Optional[BitgetRestClient] = None,
        registry: Optional[CapabilityRegistry] = None,
    ):
        self.config = config
        self.client = client or BitgetRestClient(config)
        self.registry = registry or CapabilityRegistry()
        self.probes: Dict[str, CapabilityProbe] = {
            EARN_GROUP.name: CapabilityProbe(EARN_GROUP, self.registry, self.client),
        }
        self.tools: List[ToolSpec] = build_tools(config)
        self._tool_map: Dict[str, ToolSpec] = {tool.name: tool for tool in self.tools}
        self._has_earn_tools = any(tool.module == EARN_GROUP.name for tool in self.tools)

        logger.info(
            f"[BG-SRV] Tool server ready | tools={len(self.tools)} | "
            f"modules={','.join(config.modules)} | read_only={config.read_only} | "
            f"has_auth={config.has_auth}"
        )

    async def ensure_warm_up(self) -> None:
        """Probe earn availability once, when earn tools can be used at all."""
        if not self._has_earn_tools or not self.config.has_auth:
            return
        await self.probes[EARN_GROUP.name].warm_up()

    def visible_tools(self) -> List[ToolSpec]:
        if self.registry.get_status(EARN_GROUP.name) is not CapabilityStatus.UNSUPPORTED:
            return list(self.tools)
        return [tool for tool in self.tools if tool.module != EARN_GROUP.name]

    async def list_tools(self) -> List[Tool]:
        await self.ensure_warm_up()
        return [tool.to_mcp_tool() for tool in self.visible_tools()] + [SYSTEM_CAPABILITIES_TOOL]

    def capability_snapshot(self) -> Dict[str, Any]:
        """
        Per-module availability for agent planning.

        Returns:
            Dict with readOnly, hasAuth and moduleAvailability; each module
            maps to {"status": ..., "reasonCode": ...} (reasonCode omitted
            for enabled modules)
        """
        enabled = set(self.config.modules)
        earn_status = self.registry.get_status(EARN_GROUP.name)
        availability: Dict[str, Dict[str, str]] = {}

        for module_id in MODULES:
            if module_id not in enabled:
                availability[module_id] = {"status": "disabled", "reasonCode": "MODULE_FILTERED"}
            elif module_id != EARN_GROUP.name:
                availability[module_id] = {"status": "enabled"}
            elif not self.config.has_auth:
                availability[module_id] = {"status": "requires_auth", "reasonCode": "AUTH_MISSING"}
            elif earn_status is CapabilityStatus.UNSUPPORTED:
                availability[module_id] = {
                    "status": "unsupported",
                    "reasonCode": EARN_GROUP.error_code(),
                }
            elif earn_status is CapabilityStatus.SUPPORTED:
                availability[module_id] = {"status": "enabled"}
            else:
                availability[module_id] = {"status": "unknown", "reasonCode": "CAPABILITY_PROBING"}

        return {
            "readOnly": self.config.read_only,
            "hasAuth": self.config.has_auth,
            "moduleAvailability": availability,
        }

    def _success(self, tool_name: str, data: Any) -> Dict[str, Any]:
        return {
            "tool": tool_name,
            "ok": True,
            "data": data,
            "capabilities": self.capability_snapshot(),
            "timestamp": _utc_now_iso(),
        }

    def _failure(self, tool_name: str, error: BaseException) -> Dict[str, Any]:
        return {
            "tool": tool_name,
            **to_tool_error_payload(error).to_dict(),
            "capabilities": self.capability_snapshot(),
        }

    async def call_tool(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Dispatch one tool call.

        Args:
            name: Tool name
            arguments: Tool arguments (None treated as {})

        Returns:
            Success payload {tool, ok, data, capabilities, timestamp} or
            error payload {tool, error, type, message, ..., capabilities}
        """
        correlation_id = str(uuid.uuid4())
        await self.ensure_warm_up()

        if name == SYSTEM_CAPABILITIES_TOOL_NAME:
            metrics.record_tool_call(name, "ok")
            return self._success(
                name,
                {
                    "server": {"name": SERVER_NAME, "version": SERVER_VERSION},
                    "capabilities": self.capability_snapshot(),
                },
            )

        tool = self._tool_map.get(name)
        if tool is None:
            logger.warning(
                f"[BG-SRV-001] Unknown tool requested | tool={name} | "
                f"correlation_id={correlation_id}"
            )
            metrics.record_tool_call("<unknown>", "error")
            return self._failure(
                name,
                BitgetMcpError.bitget_api(
                    f'Tool "{name}" is not available in this server session.',
                    code="TOOL_NOT_AVAILABLE",
                    suggestion="Call list_tools again and choose from currently available tools.",
                ),
            )

        context = ToolContext(
            config=self.config,
            client=self.client,
            registry=self.registry,
            probes=self.probes,
            correlation_id=correlation_id,
        )
        logger.info(f"[BG-SRV] Tool called | tool={name} | correlation_id={correlation_id}")

        try:
            data = await tool.handler(arguments or {}, context)
        except Exception as exc:
            kind = exc.kind.value if isinstance(exc, BitgetMcpError) else "InternalError"
            logger.warning(
                f"[BG-SRV-002] Tool call failed | tool={name} | error_type={kind} | "
                f"correlation_id={correlation_id}"
            )
            metrics.record_tool_call(name, "error")
            return self._failure(name, exc)

        metrics.record_tool_call(name, "ok")
        return self._success(name, data)

    async def aclose(self) -> None:
        await self.client.aclose()


# ============================================================================
# MCP SERVER SETUP
# ============================================================================

def _to_text_content(payload: Dict[str, Any]) -> List[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload, indent=2, default=str))]


def to_call_tool_result(payload: Dict[str, Any]) -> CallToolResult:
    """Wrap a tool payload; error payloads are flagged isError for MCP clients."""
    return CallToolResult(
        content=_to_text_content(payload),
        structuredContent=json.loads(json.dumps(payload, default=str)),
        isError=payload.get("error") is True,
    )


def create_mcp_server(tool_server: BitgetToolServer) -> Server:
    """Wire a BitgetToolServer into a low-level MCP Server."""
    mcp_server = Server(SERVER_NAME, version=SERVER_VERSION)

    @mcp_server.list_tools()
    async def list_tools() -> List[Tool]:
        return await tool_server.list_tools()

    # Arguments are validated by the tool handlers so failures keep the
    # structured error payload shape.
    @mcp_server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: Dict[str, Any]) -> CallToolResult:
        return to_call_tool_result(await tool_server.call_tool(name, arguments))

    return mcp_server


async def run_stdio(tool_server: BitgetToolServer) -> None:
    mcp_server = create_mcp_server(tool_server)
    async with stdio_server() as (read_stream, write_stream):
        logger.info("[BG-SRV] stdio transport connected")
        await mcp_server.run(
            read_stream,
            write_stream,
            mcp_server.create_initialization_options(),
        )


# ============================================================================
# SSE TRANSPORT
# ============================================================================

def create_sse_app(tool_server: BitgetToolServer):
    """
    Raw ASGI app exposing /health, /sse and /messages.

    Reliability Level: SOVEREIGN TIER
    Input Constraints: ASGI interface
    Side Effects: Establishes SSE streams for MCP communication
    """
    mcp_server = create_mcp_server(tool_server)
    # message_path must match the POST route exactly
    sse_transport = SseServerTransport("/messages")

    async def handle_sse(scope, receive, send):
        # Disable proxy buffering for the event stream
        async def send_without_buffering(message):
            if message.get("type") == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((b"cache-control", b"no-cache, no-store, must-revalidate"))
                headers.append((b"x-accel-buffering", b"no"))
                message = {**message, "headers": headers}
            await send(message)

        logger.info("[BG-SRV] SSE connection request received")
        async with sse_transport.connect_sse(scope, receive, send_without_buffering) as streams:
            await mcp_server.run(
                streams[0],
                streams[1],
                mcp_server.create_initialization_options(),
            )

    async def handle_health(scope, receive, send):
        response = JSONResponse({
            "status": "healthy",
            "service": SERVER_NAME,
            "version": SERVER_VERSION,
            "capabilities": tool_server.capability_snapshot(),
        })
        await response(scope, receive, send)

    async def app(scope, receive, send):
        if scope["type"] != "http":
            return

        path = scope["path"]
        method = scope["method"]

        if path == "/health" and method == "GET":
            await handle_health(scope, receive, send)
        elif path == "/sse" and method == "GET":
            await handle_sse(scope, receive, send)
        elif path == "/messages" and method == "POST":
            await sse_transport.handle_post_message(scope, receive, send)
        else:
            response = JSONResponse({"error": "Not Found", "path": path}, status_code=404)
            await response(scope, receive, send)

    return app


async def run_sse(tool_server: BitgetToolServer, host: str, port: int) -> None:
    app = create_sse_app(tool_server)
    logger.info(f"[BG-SRV] SSE transport listening | host={host} | port={port}")
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="info"))
    await server.serve()


async def serve(config: BitgetConfig, transport: str = "stdio", host: str = "0.0.0.0", port: int = 8086) -> None:
    """Run the bridge on the chosen transport until the session ends."""
    tool_server = BitgetToolServer(config)
    try:
        if transport == "sse":
            await run_sse(tool_server, host, port)
        else:
            await run_stdio(tool_server)
    finally:
        await tool_server.aclose()
