# ============================================================================
# Bitget MCP Bridge v1.0.0
# Token Bucket Rate Limiter - Per-Key Client Throttling
# ============================================================================
#
# Reliability Level: SOVEREIGN TIER (Mission-Critical)
# Purpose: Throttles tool calls before they reach the Bitget REST API
#
# SOVEREIGN MANDATE:
#   - One independent bucket per logical key (no cross-key interaction)
#   - Same-key consumers serialized by an asyncio.Lock
#   - Refill and deduct never separated by a suspension point
#   - Tokens deducted only after a completed wait (cancel-safe)
#
# Bitget Rate Limits (per endpoint family):
#   - Public market data: 10-20 req/s per IP
#   - Private trading/account: 1-10 req/s per UID
#
# Error Codes:
#   - BG-RATE-001: Queued plus required wait exceeds allowed maximum
#   - BG-RATE-002: Tokens still insufficient after waiting
#
# ============================================================================

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional

from bitget_mcp.exchange.errors import BitgetMcpError
from bitget_mcp.observability import metrics

logger = logging.getLogger(__name__)

# Absorbs float error between the computed wait and the refill after sleeping
TOKEN_EPSILON = 1e-9


@dataclass(frozen=True)
class RateLimitConfig:
    """
    Logical throttling domain and its steady-state budget.

    Several call sites may share a key; they then share one bucket.
    """
    key: str
    capacity: float
    refill_per_second: float


@dataclass
class Bucket:
    """Mutable bucket state, owned exclusively by RateLimiter."""
    tokens: float
    last_refill: float
    capacity: float
    refill_per_second: float
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)


class RateLimiter:
    """
    Async Token Bucket Rate Limiter keyed by RateLimitConfig.key.

    consume() returns once the requested tokens were debited, sleeping for the
    refill when needed. A wait longer than max_wait_ms fails fast with a
    RateLimitError instead of starving the caller.

    Example Usage:
        limiter = RateLimiter()
        await limiter.consume(RateLimitConfig("private:spot_place_order", 10, 10))
        response = await http.post(...)
    """

    DEFAULT_MAX_WAIT_MS = 30_000

    def __init__(
        self,
        max_wait_ms: int = DEFAULT_MAX_WAIT_MS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize RateLimiter.

        Args:
            max_wait_ms: Longest acceptable wait before failing fast
            clock: Monotonic clock in seconds
            sleep: Coroutine used to suspend the caller
        """
        if max_wait_ms < 0:
            raise ValueError("max_wait_ms must be non-negative")
        self.max_wait_ms = max_wait_ms
        self._clock = clock
        self._sleep = sleep
        # Not evicted: keys are bounded by the tool catalogue
        self._buckets: Dict[str, Bucket] = {}

    async def consume(
        self,
        config: RateLimitConfig,
        amount: float = 1,
        correlation_id: Optional[str] = None,
    ) -> None:
        """
        Debit tokens from the bucket for config.key, waiting if necessary.

        Args:
            config: Key and budget of the throttling domain
            amount: Tokens to debit (default: 1)
            correlation_id: Audit trail identifier

        Raises:
            BitgetMcpError(RateLimitError): If the time queued behind same-key
                callers plus the refill wait would exceed max_wait_ms, or tokens are still insufficient after waiting
        """
        if amount <= 0:
            raise ValueError("amount must be positive")

        bucket = self._get_bucket(config)
        entered = self._clock()

        async with bucket.lock:
            queued_ms = (self._clock() - entered) * 1000
            self._refill(bucket)

            if bucket.tokens >= amount:
                bucket.tokens -= amount
                logger.debug(
                    f"[BG-RATE] Token consumed | key={config.key} | "
                    f"remaining={bucket.tokens:.2f}/{bucket.capacity} | "
                    f"correlation_id={correlation_id}"
                )
                return

            if amount > bucket.capacity:
                metrics.record_rate_limit_rejection(config.key)
                raise BitgetMcpError.rate_limit(
                    f"Client-side rate limit for {config.key} cannot grant {amount} "
                    f"tokens; bucket capacity is {bucket.capacity}.",
                    "Reduce the request weight or raise the bucket capacity.",
                )

            missing = amount - bucket.tokens
            wait_ms = math.ceil(1000 * missing / bucket.refill_per_second)

            # Time spent queued behind same-key callers counts against the cap
            total_wait_ms = math.ceil(queued_ms + wait_ms)
            if total_wait_ms > self.max_wait_ms:
                metrics.record_rate_limit_rejection(config.key)
                logger.warning(
                    f"[BG-RATE-001] Rate limit - wait exceeds maximum | "
                    f"key={config.key} | required_wait_ms={wait_ms} | "
                    f"queued_ms={queued_ms:.0f} | max_wait_ms={self.max_wait_ms} | "
                    f"correlation_id={correlation_id}"
                )
                raise BitgetMcpError.rate_limit(
                    f"Client-side rate limit reached for {config.key}. "
                    f"Required wait {total_wait_ms}ms exceeds allowed max {self.max_wait_ms}ms.",
                    "Reduce tool call frequency or retry later.",
                )

            metrics.record_rate_limit_wait(config.key)
            logger.info(
                f"[BG-RATE] Waiting for tokens | key={config.key} | "
                f"wait_ms={wait_ms} | available={bucket.tokens:.2f} | "
                f"correlation_id={correlation_id}"
            )

            await self._sleep(wait_ms / 1000)

            self._refill(bucket)
            if bucket.tokens + TOKEN_EPSILON < amount:
                metrics.record_rate_limit_rejection(config.key)
                logger.error(
                    f"[BG-RATE-002] Tokens insufficient after wait | "
                    f"key={config.key} | available={bucket.tokens:.4f} | "
                    f"requested={amount} | correlation_id={correlation_id}"
                )
                raise BitgetMcpError.rate_limit(
                    f"Rate limiter failed to acquire enough tokens for {config.key}."
                )
            bucket.tokens = max(0.0, bucket.tokens - amount)

    def get_available_tokens(self, key: str) -> Optional[float]:
        """
        Get current tokens for a key after refill.

        Returns:
            Available tokens, or None if the key was never used
        """
        bucket = self._buckets.get(key)
        if bucket is None:
            return None
        self._refill(bucket)
        return bucket.tokens

    def get_status(self) -> Dict[str, Dict[str, float]]:
        """Snapshot of every known bucket (tokens, capacity, refill rate)."""
        status = {}
        for key, bucket in self._buckets.items():
            self._refill(bucket)
            status[key] = {
                "tokens": round(bucket.tokens, 4),
                "capacity": bucket.capacity,
                "refill_per_second": bucket.refill_per_second,
            }
        return status

    def _get_bucket(self, config: RateLimitConfig) -> Bucket:
        if config.capacity <= 0 or config.refill_per_second <= 0:
            raise ValueError(
                f"Invalid rate limit config for {config.key}: "
                f"capacity and refill_per_second must be positive"
            )

        existing = self._buckets.get(config.key)
        if existing is not None:
            if (
                existing.capacity != config.capacity
                or existing.refill_per_second != config.refill_per_second
            ):
                # Settle elapsed time at the old rate before switching
                self._refill(existing)
                existing.capacity = config.capacity
                existing.refill_per_second = config.refill_per_second
                existing.tokens = min(existing.tokens, config.capacity)
                logger.info(
                    f"[BG-RATE] Bucket reconfigured | key={config.key} | "
                    f"capacity={config.capacity} | "
                    f"refill_rate={config.refill_per_second}/s"
                )
            return existing

        created = Bucket(
            tokens=float(config.capacity),
            last_refill=self._clock(),
            capacity=config.capacity,
            refill_per_second=config.refill_per_second,
        )
        self._buckets[config.key] = created
        logger.debug(
            f"[BG-RATE] Bucket created | key={config.key} | "
            f"capacity={config.capacity} | refill_rate={config.refill_per_second}/s"
        )
        return created

    def _refill(self, bucket: Bucket) -> None:
        now = self._clock()
        elapsed = now - bucket.last_refill
        if elapsed <= 0:
            return
        bucket.tokens = min(bucket.capacity, bucket.tokens + elapsed * bucket.refill_per_second)
        bucket.last_refill = now
