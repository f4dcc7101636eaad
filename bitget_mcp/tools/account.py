"""
Account balance and bill tools.
"""

from typing import Any, Dict, List

from bitget_mcp.tools.helpers import (
    PRODUCT_TYPES,
    assert_enum,
    compact,
    normalize,
    private_rate_limit,
    read_number,
    read_string,
)
from bitget_mcp.tools.types import ToolContext, ToolSpec

ASSET_ROUTES = {
    "spot": "/api/v2/spot/account/assets",
    "futures": "/api/v2/mix/account/accounts",
    "funding": "/api/v2/account/funding-assets",
    "all": "/api/v2/account/all-account-balance",
}

BILL_ROUTES = {
    "spot": "/api/v2/spot/account/bills",
    "futures": "/api/v2/mix/account/bill",
}


async def get_account_assets(args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
    account_type = read_string(args, "accountType") or "all"
    assert_enum(account_type, "accountType", ASSET_ROUTES)
    product_type = read_string(args, "productType")
    assert_enum(product_type, "productType", PRODUCT_TYPES)
    response = await context.client.private_get(
        ASSET_ROUTES[account_type],
        compact(coin=read_string(args, "coin"), productType=product_type),
        private_rate_limit("get_account_assets", 10),
        correlation_id=context.correlation_id,
    )
    return normalize(response)


async def get_account_bills(args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
    account_type = read_string(args, "accountType") or "spot"
    assert_enum(account_type, "accountType", BILL_ROUTES)
    product_type = read_string(args, "productType")
    assert_enum(product_type, "productType", PRODUCT_TYPES)
    response = await context.client.private_get(
        BILL_ROUTES[account_type],
        compact(
            coin=read_string(args, "coin"),
            productType=product_type,
            businessType=read_string(args, "businessType"),
            startTime=read_string(args, "startTime"),
            endTime=read_string(args, "endTime"),
            limit=read_number(args, "limit"),
        ),
        private_rate_limit("get_account_bills", 10),
        correlation_id=context.correlation_id,
    )
    return normalize(response)


def register_account_tools() -> List[ToolSpec]:
    return [
        ToolSpec(
            name="get_account_assets",
            module="account",
            description=(
                "Get spot/futures/funding/all account balances. "
                "Private endpoint. Rate limit: 10 req/s per UID."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "accountType": {
                        "type": "string",
                        "enum": list(ASSET_ROUTES),
                        "description": "Target account type. Default all.",
                    },
                    "coin": {"type": "string", "description": "Optional coin filter."},
                    "productType": {
                        "type": "string",
                        "enum": list(PRODUCT_TYPES),
                        "description": "Required when accountType=futures.",
                    },
                },
            },
            is_write=False,
            handler=get_account_assets,
        ),
        ToolSpec(
            name="get_account_bills",
            module="account",
            description=(
                "Get account bill records for spot or futures account. "
                "Private endpoint. Rate limit: 10 req/s per UID."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "accountType": {"type": "string", "enum": list(BILL_ROUTES)},
                    "coin": {"type": "string"},
                    "productType": {"type": "string", "enum": list(PRODUCT_TYPES)},
                    "businessType": {"type": "string"},
                    "startTime": {"type": "string"},
                    "endTime": {"type": "string"},
                    "limit": {"type": "number"},
                },
            },
            is_write=False,
            handler=get_account_bills,
        ),
    ]
