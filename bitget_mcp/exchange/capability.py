# ============================================================================
# Bitget MCP Bridge v1.0.0
# Capability Probe - Endpoint Discovery for Ambiguous Operations
# ============================================================================
#
# Reliability Level: SOVEREIGN TIER (Mission-Critical)
# Purpose: Resolves which candidate endpoint an account/region supports
#
# SOVEREIGN MANDATE:
#   - Only a 404 advances to the next candidate; every other error propagates
#   - First successful path cached for the process lifetime
#   - Capability status is monotone: unknown -> supported | unsupported
#   - Warm-up runs at most once; concurrent callers share the in-flight task
#   - At most one probe in flight per group; concurrent callers await it
#
# Known Risk:
#   A cached endpoint is never re-validated. If it later fails with anything
#   other than 404, the failure surfaces without trying other candidates.
#
# Error Codes:
#   - BG-CAP-001: Every candidate endpoint returned 404 (group unsupported)
#   - BG-CAP-002: Warm-up probe failed (best-effort, status unchanged)
#
# ============================================================================

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from bitget_mcp.exchange.errors import BitgetMcpError
from bitget_mcp.exchange.rate_limiter import RateLimitConfig
from bitget_mcp.exchange.rest_client import BitgetRestClient, RequestResult
from bitget_mcp.observability import metrics

logger = logging.getLogger(__name__)

RequestFn = Callable[[str], Awaitable[RequestResult]]


class CapabilityStatus(str, Enum):
    """Availability of an ambiguous operation group."""
    UNKNOWN = "unknown"
    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class CapabilityGroup:
    """
    Operations whose endpoint path varies by account tier or region.

    endpoints maps each operation to its candidate paths in probe order.
    probe_operation/probe_query describe the read-only call used to decide
    availability before the first real invocation.
    """
    name: str
    endpoints: Mapping[str, Tuple[str, ...]]
    probe_operation: str
    probe_query: Mapping[str, Any] = field(default_factory=dict)
    unavailable_code: str = ""
    unavailable_suggestion: str = ""

    def error_code(self) -> str:
        return self.unavailable_code or f"{self.name.upper()}_UNAVAILABLE"


EARN_GROUP = CapabilityGroup(
    name="earn",
    endpoints={
        "products": ("/api/v2/earn/product/list", "/api/v2/earn/saving/product/list"),
        "holdings": ("/api/v2/earn/holding/list", "/api/v2/earn/saving/holding/list"),
        "subscribe": ("/api/v2/earn/subscribe",),
        "redeem": ("/api/v2/earn/redeem",),
    },
    probe_operation="products",
    probe_query={"coin": "USDT"},
    unavailable_code="EARN_UNAVAILABLE",
    unavailable_suggestion=(
        "Current Bitget environment does not expose earn endpoints for this account. "
        "Consider disabling earn module for this deployment."
    ),
)


# ============================================================================
# Capability Registry
# ============================================================================

class CapabilityRegistry:
    """
    Process-wide capability status and endpoint cache.

    Constructed once at server start and passed by reference to every
    component that needs it. Tests create independent instances.
    """

    def __init__(self) -> None:
        self._status: Dict[str, CapabilityStatus] = {}
        self._endpoints: Dict[Tuple[str, str], str] = {}

    def register(self, group_name: str) -> None:
        if group_name not in self._status:
            self._status[group_name] = CapabilityStatus.UNKNOWN
            metrics.record_capability_status(group_name, CapabilityStatus.UNKNOWN.value)

    def get_status(self, group_name: str) -> CapabilityStatus:
        return self._status.get(group_name, CapabilityStatus.UNKNOWN)

    def mark(self, group_name: str, status: CapabilityStatus) -> CapabilityStatus:
        """
        Transition a group out of UNKNOWN.

        Transitions from a settled status are ignored so the status never
        oscillates.

        Returns:
            The group's status after the call
        """
        current = self.get_status(group_name)
        if current is status:
            return current
        if current is not CapabilityStatus.UNKNOWN or status is CapabilityStatus.UNKNOWN:
            logger.warning(
                f"[BG-CAP] Ignored capability transition | group={group_name} | "
                f"current={current.value} | requested={status.value}"
            )
            return current

        self._status[group_name] = status
        metrics.record_capability_status(group_name, status.value)
        logger.info(
            f"[BG-CAP] Capability resolved | group={group_name} | status={status.value}"
        )
        return status

    def cached_endpoint(self, group_name: str, operation: str) -> Optional[str]:
        return self._endpoints.get((group_name, operation))

    def remember_endpoint(self, group_name: str, operation: str, path: str) -> None:
        if self._endpoints.get((group_name, operation)) != path:
            self._endpoints[(group_name, operation)] = path
            logger.info(
                f"[BG-CAP] Endpoint cached | group={group_name} | "
                f"operation={operation} | path={path}"
            )

    def snapshot(self) -> Dict[str, str]:
        return {name: status.value for name, status in self._status.items()}


# ============================================================================
# Capability Probe
# ============================================================================

class CapabilityProbe:
    """
    Candidate-endpoint resolver for one CapabilityGroup.

    Example Usage:
        probe = CapabilityProbe(EARN_GROUP, registry, client)
        await probe.ensure_supported()
        result = await probe.resolve(
            "products",
            lambda path: client.private_get(path, {"coin": "USDT"}, rate_limit),
        )
    """

    PROBE_RATE_LIMIT_RPS = 10

    def __init__(
        self,
        group: CapabilityGroup,
        registry: CapabilityRegistry,
        client: BitgetRestClient,
    ):
        self.group = group
        self.registry = registry
        self.client = client
        self._warm_up_task: Optional[asyncio.Future] = None
        self._probe_task: Optional[asyncio.Future] = None
        registry.register(group.name)

    @property
    def status(self) -> CapabilityStatus:
        return self.registry.get_status(self.group.name)

    def candidates(self, operation: str) -> List[str]:
        """Candidate paths for an operation, cached path first."""
        if operation not in self.group.endpoints:
            raise ValueError(
                f"Unknown operation {operation!r} for capability group {self.group.name!r}"
            )
        declared = list(self.group.endpoints[operation])
        cached = self.registry.cached_endpoint(self.group.name, operation)
        if cached is None:
            return declared
        return [cached] + [path for path in declared if path != cached]

    def unavailable_error(self, operation: str) -> BitgetMcpError:
        return BitgetMcpError.bitget_api(
            f'{self.group.name.capitalize()} API operation "{operation}" is unavailable '
            f"in current account/region or API environment.",
            code=self.group.error_code(),
            suggestion=self.group.unavailable_suggestion or (
                f"Consider disabling {self.group.name} module for this deployment."
            ),
        )

    async def resolve(self, operation: str, request_fn: RequestFn) -> RequestResult:
        """
        Call the first candidate endpoint that does not answer 404.

        Args:
            operation: Operation name within the group
            request_fn: Issues the request against a given path

        Returns:
            RequestResult of the successful candidate

        Raises:
            BitgetMcpError: The group's unavailable error when every candidate
                returned 404 (or the group is already unsupported); any non-404
                error unchanged
        """
        if self.status is CapabilityStatus.UNSUPPORTED:
            raise self.unavailable_error(operation)

        for path in self.candidates(operation):
            try:
                result = await request_fn(path)
            except BitgetMcpError as exc:
                if exc.is_not_found:
                    logger.info(
                        f"[BG-CAP] Candidate not found | group={self.group.name} | "
                        f"operation={operation} | path={path}"
                    )
                    continue
                raise
            self.registry.remember_endpoint(self.group.name, operation, path)
            self.registry.mark(self.group.name, CapabilityStatus.SUPPORTED)
            return result

        logger.warning(
            f"[BG-CAP-001] No candidate endpoint available | group={self.group.name} | "
            f"operation={operation}"
        )
        self.registry.mark(self.group.name, CapabilityStatus.UNSUPPORTED)
        raise self.unavailable_error(operation)

    async def ensure_supported(self) -> None:
        """
        Make sure the group is usable before a real invocation.

        Waits for an in-flight warm-up, then probes if the status is still
        unknown.

        Raises:
            BitgetMcpError: Unavailable error when unsupported, or the probe's
                own failure
        """
        if self._warm_up_task is not None and not self._warm_up_task.done():
            await asyncio.shield(self._warm_up_task)

        status = self.status
        if status is CapabilityStatus.SUPPORTED:
            return
        if status is CapabilityStatus.UNSUPPORTED:
            raise self.unavailable_error(self.group.probe_operation)
        await self._shared_probe()

    async def warm_up(self) -> CapabilityStatus:
        """
        One-shot, best-effort availability probe.

        The shared task is created before the first suspension point, so
        concurrent callers all await the same probe.

        Returns:
            Capability status after the warm-up
        """
        if self._warm_up_task is None:
            self._warm_up_task = asyncio.ensure_future(self._run_warm_up())
        await asyncio.shield(self._warm_up_task)
        return self.status

    async def _run_warm_up(self) -> None:
        if self.status is not CapabilityStatus.UNKNOWN:
            return
        try:
            await self._shared_probe()
        except Exception as exc:
            error_type = exc.kind.value if isinstance(exc, BitgetMcpError) else type(exc).__name__
            logger.warning(
                f"[BG-CAP-002] Warm-up probe failed | group={self.group.name} | "
                f"error_type={error_type} | code={getattr(exc, 'code', None)} | "
                f"status={self.status.value}"
            )

    async def _shared_probe(self) -> None:
        if self._probe_task is None or self._probe_task.done():
            self._probe_task = asyncio.ensure_future(self._probe())
        await asyncio.shield(self._probe_task)

    async def _probe(self) -> RequestResult:
        rate_limit = RateLimitConfig(
            key=f"private:{self.group.name}_probe",
            capacity=self.PROBE_RATE_LIMIT_RPS,
            refill_per_second=self.PROBE_RATE_LIMIT_RPS,
        )
        return await self.resolve(
            self.group.probe_operation,
            lambda path: self.client.private_get(path, dict(self.group.probe_query), rate_limit),
        )
