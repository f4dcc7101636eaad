"""Prometheus metrics for the Bitget request pipeline."""

from bitget_mcp.observability.metrics import (
    record_request,
    record_rate_limit_wait,
    record_rate_limit_rejection,
    record_capability_status,
    record_tool_call,
    start_metrics_server,
)

__all__ = [
    'record_request',
    'record_rate_limit_wait',
    'record_rate_limit_rejection',
    'record_capability_status',
    'record_tool_call',
    'start_metrics_server',
]
