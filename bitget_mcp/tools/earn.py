"""
Earn (savings/staking) tools.

Earn endpoints moved between API revisions and are not exposed to every
account or region, so every call goes through the earn CapabilityProbe.
"""

from typing import Any, Dict, List, Mapping

from bitget_mcp.exchange.capability import EARN_GROUP
from bitget_mcp.exchange.rate_limiter import RateLimitConfig
from bitget_mcp.tools.helpers import (
    assert_enum,
    compact,
    normalize,
    private_rate_limit,
    read_string,
    require_string,
)
from bitget_mcp.tools.types import ToolContext, ToolSpec


async def _earn_get(
    context: ToolContext,
    operation: str,
    query: Mapping[str, Any],
    rate_limit: RateLimitConfig,
) -> Dict[str, Any]:
    probe = context.probe(EARN_GROUP.name)
    await probe.ensure_supported()
    response = await probe.resolve(
        operation,
        lambda path: context.client.private_get(
            path, query, rate_limit, correlation_id=context.correlation_id
        ),
    )
    return normalize(response)


async def _earn_post(
    context: ToolContext,
    operation: str,
    body: Dict[str, Any],
    rate_limit: RateLimitConfig,
) -> Dict[str, Any]:
    probe = context.probe(EARN_GROUP.name)
    await probe.ensure_supported()
    response = await probe.resolve(
        operation,
        lambda path: context.client.private_post(
            path, body, rate_limit, correlation_id=context.correlation_id
        ),
    )
    return normalize(response)


async def earn_get_products(args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
    return await _earn_get(
        context,
        "products",
        compact(coin=read_string(args, "coin"), productType=read_string(args, "productType")),
        private_rate_limit("earn_get_products", 10),
    )


async def earn_get_holdings(args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
    return await _earn_get(
        context,
        "holdings",
        compact(coin=read_string(args, "coin"), productId=read_string(args, "productId")),
        private_rate_limit("earn_get_holdings", 10),
    )


async def earn_subscribe_redeem(args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
    action = require_string(args, "action")
    assert_enum(action, "action", ["subscribe", "redeem"])
    body = {
        "productId": require_string(args, "productId"),
        "amount": require_string(args, "amount"),
        "coin": require_string(args, "coin"),
    }
    return await _earn_post(
        context,
        action,
        body,
        private_rate_limit("earn_subscribe_redeem", 5),
    )


def register_earn_tools() -> List[ToolSpec]:
    return [
        ToolSpec(
            name="earn_get_products",
            module="earn",
            description=(
                "Query available earn products such as savings and staking. "
                "Private endpoint. Rate limit: 10 req/s per UID."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "coin": {"type": "string"},
                    "productType": {"type": "string"},
                },
            },
            is_write=False,
            handler=earn_get_products,
        ),
        ToolSpec(
            name="earn_subscribe_redeem",
            module="earn",
            description=(
                "Subscribe or redeem earn products. [CAUTION] Locks/releases funds. "
                "Private endpoint. Rate limit: 5 req/s per UID."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "action": {"type": "string", "enum": ["subscribe", "redeem"]},
                    "productId": {"type": "string"},
                    "amount": {"type": "string"},
                    "coin": {"type": "string"},
                },
                "required": ["action", "productId", "amount", "coin"],
            },
            is_write=True,
            handler=earn_subscribe_redeem,
        ),
        ToolSpec(
            name="earn_get_holdings",
            module="earn",
            description=(
                "Get current earn holdings and earnings records. "
                "Private endpoint. Rate limit: 10 req/s per UID."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "coin": {"type": "string"},
                    "productId": {"type": "string"},
                },
            },
            is_write=False,
            handler=earn_get_holdings,
        ),
    ]
