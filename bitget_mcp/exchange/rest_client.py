# ============================================================================
# Bitget MCP Bridge v1.0.0
# Bitget REST Client - Signed Request/Response Pipeline
# ============================================================================
#
# Reliability Level: SOVEREIGN TIER (Mission-Critical)
# Purpose: Single path every tool uses to reach the Bitget REST API
#
# SOVEREIGN MANDATE:
#   - Rate limiting via RateLimiter before every throttled call
#   - HMAC-SHA256 signing via BitgetSigner, timestamp taken after throttling
#   - Exactly one HTTP call per execute(); no retries (caller concern)
#   - Every failure classified into one ErrorKind
#
# Error Codes:
#   - BG-CLI-001: Bitget returned an error (HTTP status or vendor code)
#   - BG-CLI-002: Invalid (non-JSON) response body
#   - BG-CLI-003: Transport failure or timeout
#   - BG-SEC-001: Private endpoint called without credentials
#
# ============================================================================

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Union
from urllib.parse import urlencode

import httpx

from bitget_mcp.exchange.errors import AUTH_ERROR_CODES, BitgetMcpError
from bitget_mcp.exchange.hmac_signer import BitgetSigner
from bitget_mcp.exchange.rate_limiter import RateLimitConfig, RateLimiter
from bitget_mcp.observability import metrics

if TYPE_CHECKING:
    from bitget_mcp.config import BitgetConfig

logger = logging.getLogger(__name__)

SUCCESS_CODE = "00000"
PREVIEW_LENGTH = 160

JsonBody = Union[Dict[str, Any], List[Dict[str, Any]]]


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class RequestDescriptor:
    """One outgoing Bitget request."""
    method: str
    path: str
    auth: str = "public"
    query: Optional[Mapping[str, Any]] = None
    body: Optional[JsonBody] = None
    rate_limit: Optional[RateLimitConfig] = None
    correlation_id: Optional[str] = None

    @property
    def endpoint(self) -> str:
        return f"{self.method.upper()} {self.path}"


@dataclass
class RequestResult:
    """Successful pipeline result."""
    endpoint: str
    request_time: str
    data: Any
    raw: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "requestTime": self.request_time,
            "data": self.data,
        }


# ============================================================================
# Serialization Helpers
# ============================================================================

def _stringify_query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_stringify_query_value(item) for item in value)
    return str(value)


def build_query_string(query: Optional[Mapping[str, Any]]) -> str:
    """
    Serialize query parameters deterministically.

    Keeps the caller's key order, omits None values, joins sequences with
    commas and form-encodes the result.
    """
    if not query:
        return ""
    pairs = [
        (key, _stringify_query_value(value))
        for key, value in query.items()
        if value is not None
    ]
    return urlencode(pairs)


def serialize_body(body: Optional[JsonBody]) -> str:
    """Compact JSON body, or empty string when there is none."""
    if body is None:
        return ""
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False)


def preview_text(raw_text: str, limit: int = PREVIEW_LENGTH) -> str:
    """First `limit` characters of a body with whitespace collapsed."""
    return re.sub(r"\s+", " ", raw_text[:limit]).strip()


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ============================================================================
# Bitget REST Client
# ============================================================================

class BitgetRestClient:
    """
    Bitget Exchange REST Client.

    Builds, throttles, signs, sends and classifies requests. All tools funnel
    through execute(); public_get/private_get/private_post are shorthands.

    Example Usage:
        client = BitgetRestClient(config)
        result = await client.public_get(
            "/api/v2/spot/market/tickers",
            {"symbol": "BTCUSDT"},
            RateLimitConfig("public:spot_get_ticker", 20, 20),
        )
        print(result.data)
    """

    def __init__(
        self,
        config: "BitgetConfig",
        rate_limiter: Optional[RateLimiter] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Bitget REST Client.

        Args:
            config: Bridge configuration (credentials, base URL, timeout)
            rate_limiter: Shared limiter (one is created if omitted)
            http_client: httpx client to use (one is created if omitted)
        """
        self.config = config
        self.rate_limiter = rate_limiter or RateLimiter(
            max_wait_ms=config.rate_limit_max_wait_ms
        )
        self._timeout = httpx.Timeout(config.timeout_ms / 1000)
        # Overall deadline for one call; httpx.Timeout only bounds each phase
        self._deadline = config.timeout_ms / 1000
        self._http = http_client or httpx.AsyncClient(timeout=self._timeout)
        self._owns_http = http_client is None

        if config.has_auth:
            self.signer: Optional[BitgetSigner] = BitgetSigner(
                config.api_key, config.secret_key, config.passphrase
            )
        else:
            self.signer = None

        logger.info(
            f"[BG-CLI] Client initialized | "
            f"authenticated={self.signer is not None} | base_url={config.base_url}"
        )

    # ========================================================================
    # Shorthands
    # ========================================================================

    async def public_get(
        self,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        rate_limit: Optional[RateLimitConfig] = None,
        correlation_id: Optional[str] = None,
    ) -> RequestResult:
        return await self.execute(RequestDescriptor(
            method="GET",
            path=path,
            auth="public",
            query=query,
            rate_limit=rate_limit,
            correlation_id=correlation_id,
        ))

    async def private_get(
        self,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        rate_limit: Optional[RateLimitConfig] = None,
        correlation_id: Optional[str] = None,
    ) -> RequestResult:
        return await self.execute(RequestDescriptor(
            method="GET",
            path=path,
            auth="private",
            query=query,
            rate_limit=rate_limit,
            correlation_id=correlation_id,
        ))

    async def private_post(
        self,
        path: str,
        body: Optional[JsonBody] = None,
        rate_limit: Optional[RateLimitConfig] = None,
        correlation_id: Optional[str] = None,
    ) -> RequestResult:
        return await self.execute(RequestDescriptor(
            method="POST",
            path=path,
            auth="private",
            body=body,
            rate_limit=rate_limit,
            correlation_id=correlation_id,
        ))

    # ========================================================================
    # Pipeline
    # ========================================================================

    async def execute(self, request: RequestDescriptor) -> RequestResult:
        """
        Run one request through the pipeline.

        Reliability Level: SOVEREIGN TIER
        Rate Limiting: Consumes request.rate_limit before sending
        Side Effects: Exactly one HTTP call

        Returns:
            RequestResult with the vendor data field

        Raises:
            BitgetMcpError: ConfigError, RateLimitError, NetworkError,
                AuthenticationError or BitgetApiError
        """
        method = request.method.upper()
        query_string = build_query_string(request.query)
        path_with_query = f"{request.path}?{query_string}" if query_string else request.path
        url = f"{self.config.base_url}{path_with_query}"
        body_json = serialize_body(request.body)
        endpoint = request.endpoint

        if request.auth == "private" and self.signer is None:
            logger.error(
                f"[BG-SEC-001] Private endpoint without credentials | "
                f"endpoint={endpoint} | correlation_id={request.correlation_id}"
            )
            metrics.record_request(endpoint, "ConfigError")
            raise BitgetMcpError.config(
                "Private endpoint requires API credentials.",
                "Configure BITGET_API_KEY, BITGET_SECRET_KEY and BITGET_PASSPHRASE.",
            )

        if request.rate_limit is not None:
            try:
                await self.rate_limiter.consume(
                    request.rate_limit, correlation_id=request.correlation_id
                )
            except BitgetMcpError as exc:
                exc.endpoint = exc.endpoint or endpoint
                metrics.record_request(endpoint, exc.kind.value)
                raise

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "locale": "en-US",
        }
        if request.auth == "private":
            timestamp = str(int(time.time() * 1000))
            headers.update(self.signer.sign_request(
                method,
                path_with_query,
                body_json,
                timestamp=timestamp,
                correlation_id=request.correlation_id,
            ))

        logger.debug(
            f"[BG-CLI] Request sent | method={method} | path={path_with_query} | "
            f"auth={request.auth} | correlation_id={request.correlation_id}"
        )

        started = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._http.request(
                    method,
                    url,
                    headers=headers,
                    content=body_json.encode("utf-8") if method == "POST" else None,
                    timeout=self._timeout,
                ),
                timeout=self._deadline,
            )
            raw_text = response.text
        except (httpx.HTTPError, asyncio.TimeoutError) as exc:
            metrics.record_request(endpoint, "NetworkError", time.perf_counter() - started)
            logger.warning(
                f"[BG-CLI-003] Transport failure | endpoint={method} {path_with_query} | "
                f"error_type={type(exc).__name__} | correlation_id={request.correlation_id}"
            )
            raise BitgetMcpError.network(
                f"Failed to call Bitget endpoint {method} {path_with_query}.",
                endpoint=f"{method} {path_with_query}",
            ) from exc
        duration = time.perf_counter() - started

        try:
            result = self._classify(request, response.status_code, raw_text, path_with_query)
        except BitgetMcpError as exc:
            metrics.record_request(endpoint, exc.kind.value, duration)
            raise

        metrics.record_request(endpoint, "ok", duration)
        logger.debug(
            f"[BG-CLI] Response ok | endpoint={endpoint} | "
            f"status={response.status_code} | duration_ms={duration * 1000:.0f} | "
            f"correlation_id={request.correlation_id}"
        )
        return result

    def _classify(
        self,
        request: RequestDescriptor,
        status_code: int,
        raw_text: str,
        path_with_query: str,
    ) -> RequestResult:
        """Parse the response body and map failures to typed errors."""
        method = request.method.upper()
        endpoint = request.endpoint
        ok = 200 <= status_code < 300

        try:
            parsed = json.loads(raw_text) if raw_text else {}
        except ValueError as exc:
            if not ok:
                message_preview = preview_text(raw_text)
                logger.warning(
                    f"[BG-CLI-001] HTTP error with non-JSON body | "
                    f"endpoint={endpoint} | status={status_code} | "
                    f"correlation_id={request.correlation_id}"
                )
                raise BitgetMcpError.bitget_api(
                    f"HTTP {status_code} from Bitget: "
                    f"{message_preview or 'Non-JSON response body'}",
                    code=str(status_code),
                    endpoint=endpoint,
                    suggestion="Verify endpoint path and request parameters.",
                ) from exc
            logger.warning(
                f"[BG-CLI-002] Non-JSON response | endpoint={endpoint} | "
                f"status={status_code} | correlation_id={request.correlation_id}"
            )
            raise BitgetMcpError.network(
                f"Bitget returned non-JSON response for {method} {path_with_query}.",
                endpoint=f"{method} {path_with_query}",
            ) from exc

        if not isinstance(parsed, dict):
            parsed = {"data": parsed}

        if not ok:
            logger.warning(
                f"[BG-CLI-001] HTTP error | endpoint={endpoint} | status={status_code} | "
                f"vendor_code={parsed.get('code')} | correlation_id={request.correlation_id}"
            )
            raise BitgetMcpError.bitget_api(
                f"HTTP {status_code} from Bitget: {parsed.get('msg') or 'Unknown error'}",
                code=str(status_code),
                endpoint=endpoint,
                suggestion="Retry later or verify endpoint parameters.",
            )

        response_code = parsed.get("code")
        if response_code is not None and str(response_code) not in ("", SUCCESS_CODE):
            response_code = str(response_code)
            message = parsed.get("msg") or "Bitget API request failed."
            logger.warning(
                f"[BG-CLI-001] Vendor error | endpoint={endpoint} | "
                f"vendor_code={response_code} | correlation_id={request.correlation_id}"
            )
            if response_code in AUTH_ERROR_CODES:
                raise BitgetMcpError.authentication(
                    message,
                    "Check API key, secret, passphrase and permissions.",
                    endpoint=endpoint,
                    code=response_code,
                )
            raise BitgetMcpError.bitget_api(message, code=response_code, endpoint=endpoint)

        return RequestResult(
            endpoint=endpoint,
            request_time=_utc_now_iso(),
            data=parsed.get("data"),
            raw=parsed,
        )

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()
        logger.debug("[BG-CLI] Client closed")

    async def __aenter__(self) -> "BitgetRestClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def is_authenticated(self) -> bool:
        return self.signer is not None
