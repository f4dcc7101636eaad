# ============================================================================
# Bitget MCP Bridge v1.0.0
# Exchange Integration Module - Bitget REST Connectivity
# ============================================================================
#
# Reliability Level: SOVEREIGN TIER (Mission-Critical)
# Purpose: Shared request pipeline for every Bitget tool
#
# Components:
#   - BitgetSigner: HMAC-SHA256 request signing
#   - RateLimiter: Per-key token buckets (async)
#   - BitgetMcpError: Tagged error taxonomy + tool boundary payloads
#   - BitgetRestClient: Signed request/response pipeline
#   - CapabilityProbe: Candidate endpoint discovery (earn)
#
# ============================================================================

from bitget_mcp.exchange.errors import (
    BitgetMcpError,
    ErrorKind,
    ToolErrorPayload,
    to_tool_error_payload,
)
from bitget_mcp.exchange.hmac_signer import BitgetSigner, sign_payload, build_signing_payload
from bitget_mcp.exchange.rate_limiter import RateLimiter, RateLimitConfig
from bitget_mcp.exchange.rest_client import (
    BitgetRestClient,
    RequestDescriptor,
    RequestResult,
)
from bitget_mcp.exchange.capability import (
    CapabilityGroup,
    CapabilityProbe,
    CapabilityRegistry,
    CapabilityStatus,
    EARN_GROUP,
)

__all__ = [
    # Errors
    'BitgetMcpError',
    'ErrorKind',
    'ToolErrorPayload',
    'to_tool_error_payload',
    # HMAC Signer
    'BitgetSigner',
    'sign_payload',
    'build_signing_payload',
    # Rate Limiter
    'RateLimiter',
    'RateLimitConfig',
    # REST Client
    'BitgetRestClient',
    'RequestDescriptor',
    'RequestResult',
    # Capability Probe
    'CapabilityGroup',
    'CapabilityProbe',
    'CapabilityRegistry',
    'CapabilityStatus',
    'EARN_GROUP',
]
