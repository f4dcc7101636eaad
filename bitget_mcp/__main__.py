"""
============================================================================
Bitget MCP Bridge v1.0.0
Command-Line Entry Point
============================================================================

USAGE
-----
    bitget-mcp                                 # spot,futures,account over stdio
    bitget-mcp --modules all --read-only       # every module, no write tools
    bitget-mcp --transport sse --port 8086     # SSE transport with /health

Logs go to stderr; stdout is reserved for the stdio MCP channel.
Startup failures print a JSON error payload to stderr and exit with 1.

============================================================================
"""

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

from bitget_mcp.config import SERVER_NAME, SERVER_VERSION, BitgetConfig
from bitget_mcp.exchange.errors import to_tool_error_payload
from bitget_mcp.observability import metrics
from bitget_mcp.server import serve

logger = logging.getLogger("bitget_mcp")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bitget-mcp",
        description="Bitget REST API exposed as MCP tools",
    )
    parser.add_argument(
        "--modules",
        type=str,
        default=None,
        help='Comma-separated modules (spot,futures,account,earn) or "all"',
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Hide every tool that places, cancels or moves funds",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="MCP transport (default: stdio)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Bind address for the SSE transport",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8086,
        help="Listen port for the SSE transport (default: 8086)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"{SERVER_NAME} {SERVER_VERSION}",
    )
    return parser


def main(argv=None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    try:
        config = BitgetConfig.from_environment(modules=args.modules, read_only=args.read_only)
        logging.getLogger().setLevel(config.log_level)

        if config.metrics_port is not None:
            metrics.start_metrics_server(config.metrics_port)

        logger.info(
            f"[BG-MAIN] Starting {SERVER_NAME} {SERVER_VERSION} | "
            f"transport={args.transport} | modules={','.join(config.modules)}"
        )
        asyncio.run(serve(config, transport=args.transport, host=args.host, port=args.port))
    except Exception as exc:
        payload = to_tool_error_payload(exc).to_dict()
        print(json.dumps(payload, indent=2), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
