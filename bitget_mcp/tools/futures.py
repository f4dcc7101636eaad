"""
USDT/USDC/coin-margined futures tools.
"""

from typing import Any, Dict, List

from bitget_mcp.exchange.errors import BitgetMcpError
from bitget_mcp.tools.helpers import (
    PRODUCT_TYPES,
    assert_enum,
    compact,
    normalize,
    private_rate_limit,
    public_rate_limit,
    read_boolean,
    read_number,
    read_string,
    require_object_array,
    require_string,
)
from bitget_mcp.tools.types import ToolContext, ToolSpec

MAX_BATCH = 50
BATCH_SHARED_KEYS = ("symbol", "productType", "marginCoin", "marginMode")


async def futures_get_ticker(args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
    product_type = require_string(args, "productType")
    assert_enum(product_type, "productType", PRODUCT_TYPES)
    symbol = read_string(args, "symbol")
    path = "/api/v2/mix/market/ticker" if symbol else "/api/v2/mix/market/tickers"
    response = await context.client.public_get(
        path,
        compact(productType=product_type, symbol=symbol),
        public_rate_limit("futures_get_ticker", 20),
        correlation_id=context.correlation_id,
    )
    return normalize(response)


async def futures_get_depth(args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
    product_type = require_string(args, "productType")
    symbol = require_string(args, "symbol")
    assert_enum(product_type, "productType", PRODUCT_TYPES)
    response = await context.client.public_get(
        "/api/v2/mix/market/merge-depth",
        compact(
            productType=product_type,
            symbol=symbol,
            limit=read_number(args, "limit"),
            precision=read_string(args, "precision"),
        ),
        public_rate_limit("futures_get_depth", 20),
        correlation_id=context.correlation_id,
    )
    return normalize(response)


async def futures_get_positions(args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
    product_type = require_string(args, "productType")
    assert_enum(product_type, "productType", PRODUCT_TYPES)
    symbol = read_string(args, "symbol")
    history = read_boolean(args, "history") or False
    if history:
        path = "/api/v2/mix/position/history-position"
    elif symbol:
        path = "/api/v2/mix/position/single-position"
    else:
        path = "/api/v2/mix/position/all-position"
    margin_coin = read_string(args, "marginCoin") or ("USDT" if symbol else None)
    response = await context.client.private_get(
        path,
        compact(productType=product_type, symbol=symbol, marginCoin=margin_coin),
        private_rate_limit("futures_get_positions", 10),
        correlation_id=context.correlation_id,
    )
    return normalize(response)


def _batch_body(orders: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Hoist the keys a batch must share and strip them from each order."""
    first = orders[0]
    shared = {key: first.get(key) for key in BATCH_SHARED_KEYS}
    for order in orders[1:]:
        if any(order.get(key) != shared[key] for key in BATCH_SHARED_KEYS):
            raise BitgetMcpError.validation(
                "Batch futures orders must share symbol, productType, marginCoin, and marginMode."
            )
    return {
        **shared,
        "orderList": [
            {key: value for key, value in order.items() if key not in BATCH_SHARED_KEYS}
            for order in orders
        ],
    }


async def futures_place_order(args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
    orders = require_object_array(args, "orders")
    if len(orders) > MAX_BATCH:
        raise BitgetMcpError.validation(f"orders supports at most {MAX_BATCH} items.")

    normalized = []
    for order in orders:
        order_type = read_string(order, "orderType")
        normalized.append({
            **{key: value for key, value in order.items() if value is not None},
            **compact(
                marginMode=read_string(order, "marginMode") or "crossed",
                force=read_string(order, "force") or ("gtc" if order_type == "limit" else None),
            ),
        })

    if len(normalized) == 1:
        path, body = "/api/v2/mix/order/place-order", normalized[0]
    else:
        path, body = "/api/v2/mix/order/batch-place-order", _batch_body(normalized)

    response = await context.client.private_post(
        path,
        body,
        private_rate_limit("futures_place_order", 10),
        correlation_id=context.correlation_id,
    )
    return normalize(response)


def register_futures_tools() -> List[ToolSpec]:
    return [
        ToolSpec(
            name="futures_get_ticker",
            module="futures",
            description=(
                "Get futures ticker for one symbol or all symbols in product type. "
                "Public endpoint. Rate limit: 20 req/s per IP."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "productType": {
                        "type": "string",
                        "enum": list(PRODUCT_TYPES),
                        "description": "Futures product type.",
                    },
                    "symbol": {"type": "string", "description": "Contract symbol, e.g. BTCUSDT."},
                },
                "required": ["productType"],
            },
            is_write=False,
            handler=futures_get_ticker,
        ),
        ToolSpec(
            name="futures_get_depth",
            module="futures",
            description=(
                "Get futures orderbook depth with precision levels. "
                "Public endpoint. Rate limit: 20 req/s per IP."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "productType": {"type": "string", "enum": list(PRODUCT_TYPES)},
                    "symbol": {"type": "string", "description": "Contract symbol."},
                    "limit": {"type": "number", "description": "Depth levels, default 100."},
                    "precision": {"type": "string", "description": "Merge precision value."},
                },
                "required": ["productType", "symbol"],
            },
            is_write=False,
            handler=futures_get_depth,
        ),
        ToolSpec(
            name="futures_get_positions",
            module="futures",
            description=(
                "Get current or historical futures positions. "
                "Private endpoint. Rate limit: 10 req/s per UID."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "productType": {"type": "string", "enum": list(PRODUCT_TYPES)},
                    "symbol": {"type": "string"},
                    "marginCoin": {"type": "string"},
                    "history": {"type": "boolean"},
                },
                "required": ["productType"],
            },
            is_write=False,
            handler=futures_get_positions,
        ),
        ToolSpec(
            name="futures_place_order",
            module="futures",
            description=(
                "Place one or more futures orders with optional TP/SL. [CAUTION] Executes "
                "real trades. Private endpoint. Rate limit: 10 req/s per UID."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "orders": {
                        "type": "array",
                        "description": "Array of futures order objects.",
                        "items": {"type": "object"},
                    },
                },
                "required": ["orders"],
            },
            is_write=True,
            handler=futures_place_order,
        ),
    ]
