"""
Tool descriptors and per-call context.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from mcp.types import Tool, ToolAnnotations

from bitget_mcp.config import BitgetConfig
from bitget_mcp.exchange.capability import CapabilityProbe, CapabilityRegistry
from bitget_mcp.exchange.rest_client import BitgetRestClient


@dataclass
class ToolContext:
    """Collaborators handed to every tool handler."""
    config: BitgetConfig
    client: BitgetRestClient
    registry: CapabilityRegistry
    probes: Dict[str, CapabilityProbe] = field(default_factory=dict)
    correlation_id: Optional[str] = None

    def probe(self, group_name: str) -> CapabilityProbe:
        return self.probes[group_name]


ToolHandler = Callable[[Dict[str, Any], ToolContext], Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class ToolSpec:
    """One MCP tool backed by a Bitget endpoint family."""
    name: str
    module: str
    description: str
    input_schema: Dict[str, Any]
    is_write: bool
    handler: ToolHandler

    def to_mcp_tool(self) -> Tool:
        return Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
            annotations=ToolAnnotations(
                readOnlyHint=not self.is_write,
                destructiveHint=self.is_write,
                idempotentHint=not self.is_write,
                openWorldHint=True,
            ),
        )
