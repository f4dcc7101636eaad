"""
Spot market data and spot trading tools.
"""

from typing import Any, Dict, List

from bitget_mcp.exchange.errors import BitgetMcpError
from bitget_mcp.tools.helpers import (
    GRANULARITIES,
    assert_enum,
    compact,
    ensure_one_of,
    normalize,
    private_rate_limit,
    public_rate_limit,
    read_boolean,
    read_number,
    read_string,
    read_string_array,
    require_object_array,
    require_string,
)
from bitget_mcp.tools.types import ToolContext, ToolSpec

DEPTH_TYPES = ("step0", "step1", "step2", "step3", "step4", "step5")
MAX_BATCH = 50


# ============================================================================
# Market Data (public)
# ============================================================================

async def spot_get_ticker(args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
    response = await context.client.public_get(
        "/api/v2/spot/market/tickers",
        compact(symbol=read_string(args, "symbol")),
        public_rate_limit("spot_get_ticker", 20),
        correlation_id=context.correlation_id,
    )
    return normalize(response)


async def spot_get_depth(args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
    symbol = require_string(args, "symbol")
    depth_type = read_string(args, "type") or "step0"
    assert_enum(depth_type, "type", DEPTH_TYPES)
    # step0 is the raw book; merged levels live on a separate route
    path = (
        "/api/v2/spot/market/orderbook"
        if depth_type == "step0"
        else "/api/v2/spot/market/merge-depth"
    )
    response = await context.client.public_get(
        path,
        compact(symbol=symbol, type=depth_type, limit=read_number(args, "limit")),
        public_rate_limit("spot_get_depth", 20),
        correlation_id=context.correlation_id,
    )
    return normalize(response)


async def spot_get_candles(args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
    symbol = require_string(args, "symbol")
    granularity = require_string(args, "granularity")
    assert_enum(granularity, "granularity", GRANULARITIES)
    start_time = read_string(args, "startTime")
    path = (
        "/api/v2/spot/market/history-candles"
        if start_time
        else "/api/v2/spot/market/candles"
    )
    response = await context.client.public_get(
        path,
        compact(
            symbol=symbol,
            granularity=granularity,
            startTime=start_time,
            endTime=read_string(args, "endTime"),
            limit=read_number(args, "limit"),
        ),
        public_rate_limit("spot_get_candles", 20),
        correlation_id=context.correlation_id,
    )
    return normalize(response)


# ============================================================================
# Trading (private)
# ============================================================================

async def spot_place_order(args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
    orders = require_object_array(args, "orders")
    if len(orders) > MAX_BATCH:
        raise BitgetMcpError.validation(f"orders supports at most {MAX_BATCH} items.")

    normalized: List[Dict[str, Any]] = []
    for order in orders:
        order_type = read_string(order, "orderType")
        force = read_string(order, "force") or ("gtc" if order_type == "limit" else None)
        normalized.append({
            **{key: value for key, value in order.items() if value is not None},
            **compact(force=force),
        })

    if len(normalized) == 1:
        path, body = "/api/v2/spot/trade/place-order", normalized[0]
    else:
        path, body = "/api/v2/spot/trade/batch-orders", {"orderList": normalized}

    response = await context.client.private_post(
        path,
        body,
        private_rate_limit("spot_place_order", 10),
        correlation_id=context.correlation_id,
    )
    return normalize(response)


async def spot_cancel_orders(args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
    symbol = require_string(args, "symbol")
    order_id = read_string(args, "orderId")
    order_ids = read_string_array(args, "orderIds")
    cancel_all = read_boolean(args, "cancelAll")
    ensure_one_of(
        args,
        ["orderId", "orderIds", "cancelAll"],
        'Provide one of "orderId", "orderIds", or "cancelAll=true".',
    )
    if order_ids and len(order_ids) > MAX_BATCH:
        raise BitgetMcpError.validation(f"orderIds supports at most {MAX_BATCH} items.")

    if order_id:
        path, body = "/api/v2/spot/trade/cancel-order", {"symbol": symbol, "orderId": order_id}
    elif order_ids:
        path, body = "/api/v2/spot/trade/batch-cancel-order", {"symbol": symbol, "orderIds": order_ids}
    elif cancel_all:
        path, body = "/api/v2/spot/trade/cancel-symbol-order", {"symbol": symbol}
    else:
        raise BitgetMcpError.validation(
            'Provide one of "orderId", "orderIds", or "cancelAll=true".'
        )

    response = await context.client.private_post(
        path,
        body,
        private_rate_limit("spot_cancel_orders", 10),
        correlation_id=context.correlation_id,
    )
    return normalize(response)


async def spot_get_orders(args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
    order_id = read_string(args, "orderId")
    status = read_string(args, "status") or "open"
    assert_enum(status, "status", ["open", "history"])
    if order_id:
        path = "/api/v2/spot/trade/orderInfo"
    elif status == "history":
        path = "/api/v2/spot/trade/history-orders"
    else:
        path = "/api/v2/spot/trade/unfilled-orders"
    response = await context.client.private_get(
        path,
        compact(
            symbol=read_string(args, "symbol"),
            orderId=order_id,
            startTime=read_string(args, "startTime"),
            endTime=read_string(args, "endTime"),
            limit=read_number(args, "limit"),
        ),
        private_rate_limit("spot_get_orders", 10),
        correlation_id=context.correlation_id,
    )
    return normalize(response)


def register_spot_tools() -> List[ToolSpec]:
    return [
        ToolSpec(
            name="spot_get_ticker",
            module="spot",
            description=(
                "Get real-time ticker data for spot trading pair(s). "
                "Public endpoint. Rate limit: 20 req/s per IP."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "symbol": {
                        "type": "string",
                        "description": "Trading pair symbol, e.g. BTCUSDT. Omit for all tickers.",
                    },
                },
            },
            is_write=False,
            handler=spot_get_ticker,
        ),
        ToolSpec(
            name="spot_get_depth",
            module="spot",
            description=(
                "Get orderbook depth for a spot trading pair. "
                "Public endpoint. Rate limit: 20 req/s per IP."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "symbol": {"type": "string", "description": "Trading pair symbol, e.g. BTCUSDT"},
                    "type": {
                        "type": "string",
                        "enum": list(DEPTH_TYPES),
                        "description": "Depth merge level. step0 means raw orderbook.",
                    },
                    "limit": {"type": "number", "description": "Depth levels, default 150, max 150."},
                },
                "required": ["symbol"],
            },
            is_write=False,
            handler=spot_get_depth,
        ),
        ToolSpec(
            name="spot_get_candles",
            module="spot",
            description=(
                "Get K-line data for spot trading pair. "
                "Public endpoint. Rate limit: 20 req/s per IP."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "symbol": {"type": "string", "description": "Trading pair symbol, e.g. BTCUSDT"},
                    "granularity": {
                        "type": "string",
                        "enum": list(GRANULARITIES),
                        "description": "Candlestick period.",
                    },
                    "startTime": {"type": "string", "description": "Start time in milliseconds."},
                    "endTime": {"type": "string", "description": "End time in milliseconds."},
                    "limit": {"type": "number", "description": "Result size, default 100, max 1000."},
                },
                "required": ["symbol", "granularity"],
            },
            is_write=False,
            handler=spot_get_candles,
        ),
        ToolSpec(
            name="spot_place_order",
            module="spot",
            description=(
                "Place one or more spot orders. [CAUTION] Executes real trades. "
                "Private endpoint. Rate limit: 10 req/s per UID."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "orders": {
                        "type": "array",
                        "description": (
                            "Array of order objects. Single order should still be "
                            "passed as an array with one item."
                        ),
                        "items": {"type": "object"},
                    },
                },
                "required": ["orders"],
            },
            is_write=True,
            handler=spot_place_order,
        ),
        ToolSpec(
            name="spot_cancel_orders",
            module="spot",
            description=(
                "Cancel one or more spot orders by id, batch ids, or symbol-wide cancel. "
                "Private endpoint. Rate limit: 10 req/s per UID."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "symbol": {"type": "string", "description": "Trading pair symbol."},
                    "orderId": {"type": "string", "description": "Single order id."},
                    "orderIds": {
                        "type": "array",
                        "description": "Multiple order ids. Max 50.",
                        "items": {"type": "string"},
                    },
                    "cancelAll": {
                        "type": "boolean",
                        "description": "If true, cancel all open orders for symbol.",
                    },
                },
                "required": ["symbol"],
            },
            is_write=True,
            handler=spot_cancel_orders,
        ),
        ToolSpec(
            name="spot_get_orders",
            module="spot",
            description=(
                "Query one spot order, open orders, or order history. "
                "Private endpoint. Rate limit: 10 req/s per UID."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "symbol": {"type": "string"},
                    "orderId": {"type": "string", "description": "Query a single order."},
                    "status": {"type": "string", "enum": ["open", "history"]},
                    "startTime": {"type": "string"},
                    "endTime": {"type": "string"},
                    "limit": {"type": "number"},
                },
            },
            is_write=False,
            handler=spot_get_orders,
        ),
    ]
