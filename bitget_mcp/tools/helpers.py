"""
Argument readers for tool handlers.

Every reader returns None for a missing/None value and raises a
ValidationError when the value has the wrong type.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

from bitget_mcp.exchange.errors import BitgetMcpError
from bitget_mcp.exchange.rate_limiter import RateLimitConfig
from bitget_mcp.exchange.rest_client import RequestResult

PRODUCT_TYPES = ("USDT-FUTURES", "USDC-FUTURES", "COIN-FUTURES")

GRANULARITIES = (
    "1min", "5min", "15min", "30min", "1h", "4h",
    "6h", "12h", "1day", "3day", "1week", "1M",
)


def public_rate_limit(key: str, rps: float = 20) -> RateLimitConfig:
    return RateLimitConfig(key=f"public:{key}", capacity=rps, refill_per_second=rps)


def private_rate_limit(key: str, rps: float = 10) -> RateLimitConfig:
    return RateLimitConfig(key=f"private:{key}", capacity=rps, refill_per_second=rps)


def as_record(value: Any) -> Dict[str, Any]:
    if not isinstance(value, dict):
        return {}
    return value


def read_string(args: Mapping[str, Any], key: str) -> Optional[str]:
    value = args.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise BitgetMcpError.validation(f'Parameter "{key}" must be a string.')
    return value


def read_number(args: Mapping[str, Any], key: str) -> Optional[float]:
    value = args.get(key)
    if value is None:
        return None
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != value:
        raise BitgetMcpError.validation(f'Parameter "{key}" must be a number.')
    return value


def read_boolean(args: Mapping[str, Any], key: str) -> Optional[bool]:
    value = args.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise BitgetMcpError.validation(f'Parameter "{key}" must be a boolean.')
    return value


def read_string_array(args: Mapping[str, Any], key: str) -> Optional[List[str]]:
    value = args.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or any(not isinstance(item, str) for item in value):
        raise BitgetMcpError.validation(f'Parameter "{key}" must be an array of strings.')
    return value


def read_object_array(args: Mapping[str, Any], key: str) -> Optional[List[Dict[str, Any]]]:
    value = args.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or any(not isinstance(item, dict) for item in value):
        raise BitgetMcpError.validation(f'Parameter "{key}" must be an array of objects.')
    return value


def require_string(args: Mapping[str, Any], key: str) -> str:
    value = read_string(args, key)
    if not value:
        raise BitgetMcpError.validation(f'Missing required parameter "{key}".')
    return value


def require_object_array(args: Mapping[str, Any], key: str) -> List[Dict[str, Any]]:
    value = read_object_array(args, key)
    if not value:
        raise BitgetMcpError.validation(f'Missing required non-empty array "{key}".')
    return value


def ensure_one_of(args: Mapping[str, Any], keys: Iterable[str], message: str) -> None:
    if not any(args.get(key) is not None for key in keys):
        raise BitgetMcpError.validation(message)


def assert_enum(value: Optional[str], key: str, values: Iterable[str]) -> None:
    if value is None:
        return
    allowed = list(values)
    if value not in allowed:
        raise BitgetMcpError.validation(
            f'Parameter "{key}" must be one of: {", ".join(allowed)}.'
        )


def compact(**values: Any) -> Dict[str, Any]:
    """Keyword arguments with None values dropped, order kept."""
    return {key: value for key, value in values.items() if value is not None}


def normalize(response: RequestResult) -> Dict[str, Any]:
    return response.to_dict()
