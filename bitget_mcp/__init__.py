"""Bitget exchange REST API exposed as MCP tools."""

from bitget_mcp.config import SERVER_NAME, SERVER_VERSION

__version__ = SERVER_VERSION

__all__ = ['SERVER_NAME', 'SERVER_VERSION', '__version__']
