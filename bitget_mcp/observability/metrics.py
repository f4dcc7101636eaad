"""
============================================================================
Bitget MCP Bridge v1.0.0
Prometheus Metrics - Request Pipeline Observability
============================================================================

Reliability Level: SOVEREIGN TIER (Mission-Critical)
Input Constraints: Label values are short identifiers (endpoint, key, tool)
Side Effects: Updates Prometheus metrics registry

METRICS EXPOSED
---------------
- bitget_requests_total: Requests issued, by endpoint and outcome
- bitget_request_latency_seconds: Wall time of the HTTP exchange
- bitget_rate_limit_waits_total: Consumes that had to sleep for tokens
- bitget_rate_limit_rejections_total: Consumes rejected by the limiter
- bitget_capability_status: -1 unsupported, 0 unknown, 1 supported
- bitget_tool_calls_total: Tool invocations, by tool and outcome

============================================================================
"""

import logging
from typing import Optional

from prometheus_client import Counter, Gauge, Histogram, start_http_server

# Configure module logger
logger = logging.getLogger(__name__)


# ============================================================================
# PROMETHEUS METRICS DEFINITIONS
# ============================================================================

REQUESTS_TOTAL = Counter(
    "bitget_requests_total",
    "Total number of Bitget REST requests by outcome",
    ["endpoint", "outcome"]
)

REQUEST_LATENCY = Histogram(
    "bitget_request_latency_seconds",
    "Latency of Bitget REST requests",
    ["endpoint"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

RATE_LIMIT_WAITS = Counter(
    "bitget_rate_limit_waits_total",
    "Number of rate limiter consumes that waited for tokens",
    ["key"]
)

RATE_LIMIT_REJECTIONS = Counter(
    "bitget_rate_limit_rejections_total",
    "Number of rate limiter consumes rejected",
    ["key"]
)

CAPABILITY_STATUS = Gauge(
    "bitget_capability_status",
    "Capability probe status per group (-1 unsupported, 0 unknown, 1 supported)",
    ["group"]
)

TOOL_CALLS_TOTAL = Counter(
    "bitget_tool_calls_total",
    "Total number of MCP tool calls by outcome",
    ["tool", "outcome"]
)

CAPABILITY_STATUS_VALUES = {
    "unsupported": -1,
    "unknown": 0,
    "supported": 1,
}


# ============================================================================
# METRIC UPDATE FUNCTIONS
# ============================================================================

def record_request(endpoint: str, outcome: str, duration_seconds: Optional[float] = None) -> None:
    """
    Record one pipeline request.

    Args:
        endpoint: "METHOD path" without query string
        outcome: "ok" or the ErrorKind value that ended the request
        duration_seconds: HTTP exchange duration when a call was issued
    """
    REQUESTS_TOTAL.labels(endpoint=endpoint, outcome=outcome).inc()
    if duration_seconds is not None:
        REQUEST_LATENCY.labels(endpoint=endpoint).observe(duration_seconds)


def record_rate_limit_wait(key: str) -> None:
    RATE_LIMIT_WAITS.labels(key=key).inc()


def record_rate_limit_rejection(key: str) -> None:
    RATE_LIMIT_REJECTIONS.labels(key=key).inc()


def record_capability_status(group: str, status: str) -> None:
    CAPABILITY_STATUS.labels(group=group).set(CAPABILITY_STATUS_VALUES[status])


def record_tool_call(tool: str, outcome: str) -> None:
    TOOL_CALLS_TOTAL.labels(tool=tool, outcome=outcome).inc()


def start_metrics_server(port: int) -> None:
    """Expose the default registry over HTTP on the given port."""
    start_http_server(port)
    logger.info(f"[BG-METRICS] Prometheus exporter started | port={port}")
