"""
Tool catalogue.

build_tools() filters the full catalogue by the enabled modules and, in
read-only mode, drops every write tool.
"""

from typing import List

from bitget_mcp.config import BitgetConfig
from bitget_mcp.tools.account import register_account_tools
from bitget_mcp.tools.earn import register_earn_tools
from bitget_mcp.tools.futures import register_futures_tools
from bitget_mcp.tools.spot import register_spot_tools
from bitget_mcp.tools.types import ToolContext, ToolSpec


def all_tool_specs() -> List[ToolSpec]:
    return [
        *register_spot_tools(),
        *register_futures_tools(),
        *register_account_tools(),
        *register_earn_tools(),
    ]


def build_tools(config: BitgetConfig) -> List[ToolSpec]:
    enabled = set(config.modules)
    tools = [tool for tool in all_tool_specs() if tool.module in enabled]
    if config.read_only:
        tools = [tool for tool in tools if not tool.is_write]
    return tools


__all__ = ['ToolContext', 'ToolSpec', 'all_tool_specs', 'build_tools']
