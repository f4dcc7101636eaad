# ============================================================================
# Bitget MCP Bridge v1.0.0
# Error Taxonomy - Typed Failures and Tool Boundary Payloads
# ============================================================================
#
# Reliability Level: SOVEREIGN TIER (Mission-Critical)
# Purpose: Single tagged error type for every failure in the request pipeline
#
# SOVEREIGN MANDATE:
#   - Every failure resolves to exactly one ErrorKind
#   - Errors are wrapped at most one level deep (raise ... from cause)
#   - Callers receive structured payloads, never stack traces
#
# Error Kinds:
#   - ConfigError: Missing/invalid deployment configuration
#   - ValidationError: Malformed caller input (before any network call)
#   - RateLimitError: Local throttle budget exceeded beyond allowed wait
#   - AuthenticationError: Vendor rejected credentials/permissions
#   - BitgetApiError: Vendor business failure or non-success HTTP status
#   - NetworkError: Transport failure or unparseable response
#   - InternalError: Anything uncaught (tool boundary only)
#
# ============================================================================

import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Error taxonomy exposed to tool callers."""
    CONFIG = "ConfigError"
    VALIDATION = "ValidationError"
    RATE_LIMIT = "RateLimitError"
    AUTHENTICATION = "AuthenticationError"
    BITGET_API = "BitgetApiError"
    NETWORK = "NetworkError"
    INTERNAL = "InternalError"


# Vendor codes denoting credential/permission failures
AUTH_ERROR_CODES = frozenset({"40017", "40018", "40036"})

# Fallback remediation per kind; every ErrorKind must have an entry
DEFAULT_SUGGESTIONS: Dict[ErrorKind, str] = {
    ErrorKind.CONFIG: (
        "Configure BITGET_API_KEY, BITGET_SECRET_KEY and BITGET_PASSPHRASE."
    ),
    ErrorKind.VALIDATION: "Check tool arguments against the input schema.",
    ErrorKind.RATE_LIMIT: "Reduce tool call frequency or retry later.",
    ErrorKind.AUTHENTICATION: (
        "Check API key, secret, passphrase and permissions."
    ),
    ErrorKind.BITGET_API: "Retry later or verify endpoint parameters.",
    ErrorKind.NETWORK: (
        "Please check network connectivity and retry the request in a few seconds."
    ),
    ErrorKind.INTERNAL: (
        "Unexpected server error. Check tool arguments and retry. "
        "If it persists, inspect server logs."
    ),
}

class BitgetMcpError(Exception):
    """
    Tagged error raised by every component of the request pipeline.

    The kind selects the externally visible error type; code, suggestion and
    endpoint are optional kind-specific details. Use the named constructors
    rather than instantiating directly.

    Example Usage:
        raise BitgetMcpError.network(
            "Failed to call Bitget endpoint GET /api/v2/spot/market/tickers.",
            endpoint="GET /api/v2/spot/market/tickers",
        ) from exc
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        code: Optional[str] = None,
        suggestion: Optional[str] = None,
        endpoint: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code
        self.suggestion = suggestion
        self.endpoint = endpoint

    def __repr__(self) -> str:
        return (
            f"BitgetMcpError(kind={self.kind.value}, code={self.code!r}, "
            f"message={self.message!r})"
        )

    @property
    def is_not_found(self) -> bool:
        """True for vendor errors carrying an HTTP 404 status code."""
        return self.kind is ErrorKind.BITGET_API and self.code == "404"

    # ------------------------------------------------------------------
    # Named constructors
    # ------------------------------------------------------------------

    @classmethod
    def config(cls, message: str, suggestion: Optional[str] = None) -> "BitgetMcpError":
        return cls(ErrorKind.CONFIG, message, suggestion=suggestion)

    @classmethod
    def validation(cls, message: str, suggestion: Optional[str] = None) -> "BitgetMcpError":
        return cls(ErrorKind.VALIDATION, message, suggestion=suggestion)

    @classmethod
    def rate_limit(
        cls,
        message: str,
        suggestion: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> "BitgetMcpError":
        return cls(ErrorKind.RATE_LIMIT, message, suggestion=suggestion, endpoint=endpoint)

    @classmethod
    def authentication(
        cls,
        message: str,
        suggestion: Optional[str] = None,
        endpoint: Optional[str] = None,
        code: Optional[str] = None,
    ) -> "BitgetMcpError":
        return cls(
            ErrorKind.AUTHENTICATION,
            message,
            code=code,
            suggestion=suggestion,
            endpoint=endpoint,
        )

    @classmethod
    def bitget_api(
        cls,
        message: str,
        code: Optional[str] = None,
        suggestion: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> "BitgetMcpError":
        return cls(
            ErrorKind.BITGET_API,
            message,
            code=code,
            suggestion=suggestion,
            endpoint=endpoint,
        )

    @classmethod
    def network(cls, message: str, endpoint: Optional[str] = None) -> "BitgetMcpError":
        return cls(
            ErrorKind.NETWORK,
            message,
            endpoint=endpoint,
            suggestion=DEFAULT_SUGGESTIONS[ErrorKind.NETWORK],
        )


@dataclass
class ToolErrorPayload:
    """Externally visible shape of any tool failure."""
    type: str
    message: str
    timestamp: str
    code: Optional[str] = None
    suggestion: Optional[str] = None
    endpoint: Optional[str] = None
    error: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize, dropping unset optional fields."""
        return {key: value for key, value in asdict(self).items() if value is not None}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def to_tool_error_payload(
    error: BaseException,
    fallback_endpoint: Optional[str] = None,
) -> ToolErrorPayload:
    """
    Convert any exception into the uniform tool error payload.

    Typed errors keep their kind and details. Anything else becomes an
    InternalError; the traceback goes to the log, not into the payload.

    Args:
        error: Exception caught at the tool boundary
        fallback_endpoint: Endpoint to report when the error carries none

    Returns:
        ToolErrorPayload ready for serialization
    """
    if isinstance(error, BitgetMcpError):
        return ToolErrorPayload(
            type=error.kind.value,
            code=error.code,
            message=error.message,
            suggestion=error.suggestion or DEFAULT_SUGGESTIONS[error.kind],
            endpoint=error.endpoint or fallback_endpoint,
            timestamp=_utc_now_iso(),
        )

    logger.error(
        f"[BG-INT-001] Unhandled error at tool boundary | "
        f"error_type={type(error).__name__} | endpoint={fallback_endpoint}",
        exc_info=error,
    )
    return ToolErrorPayload(
        type=ErrorKind.INTERNAL.value,
        message=str(error) or type(error).__name__,
        suggestion=DEFAULT_SUGGESTIONS[ErrorKind.INTERNAL],
        endpoint=fallback_endpoint,
        timestamp=_utc_now_iso(),
    )
