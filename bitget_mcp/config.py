"""
============================================================================
Bitget MCP Bridge - Configuration
============================================================================

Reliability Level: L6 Critical (Sovereign Tier)
Traceability: Configuration logged on load with credentials redacted

This module provides configuration management for the bridge:
- Environment variable parsing with type safety
- Default values for optional configuration
- Fail-closed behavior on partial or malformed configuration

ENVIRONMENT VARIABLES:
    - BITGET_API_KEY / BITGET_SECRET_KEY / BITGET_PASSPHRASE: set all or none
    - BITGET_API_BASE_URL: REST base URL (default: https://api.bitget.com)
    - BITGET_TIMEOUT_MS: Request timeout in milliseconds (default: 15000)
    - BITGET_RATE_LIMIT_MAX_WAIT_MS: Longest client-side throttle wait (default: 30000)
    - BITGET_LOG_LEVEL: Logging level name (default: INFO)
    - BITGET_METRICS_PORT: Prometheus exporter port (default: disabled)

ERROR CODES:
    - BG-SEC-001: Partial API credentials
    - BG-CFG-001: Invalid configuration value

============================================================================
"""

import logging
import math
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from bitget_mcp.exchange.errors import BitgetMcpError

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

SERVER_NAME = "bitget-mcp-server"
SERVER_VERSION = "1.0.0"

MODULES: Tuple[str, ...] = ("spot", "futures", "account", "earn")
DEFAULT_MODULES: Tuple[str, ...] = ("spot", "futures", "account")

DEFAULT_BASE_URL = "https://api.bitget.com"
DEFAULT_TIMEOUT_MS = 15_000
DEFAULT_RATE_LIMIT_MAX_WAIT_MS = 30_000
DEFAULT_LOG_LEVEL = "INFO"


# =============================================================================
# Parsing Helpers
# =============================================================================

def parse_module_list(raw_modules: Optional[str]) -> List[str]:
    """
    Parse the --modules option.

    Empty input selects DEFAULT_MODULES, "all" selects every module, anything
    else is a comma-separated list validated against MODULES (order kept,
    duplicates dropped).

    Raises:
        BitgetMcpError(ConfigError): On an unknown module name
    """
    if raw_modules is None or not raw_modules.strip():
        return list(DEFAULT_MODULES)

    trimmed = raw_modules.strip().lower()
    if trimmed == "all":
        return list(MODULES)

    requested = [item.strip() for item in trimmed.split(",") if item.strip()]
    if not requested:
        return list(DEFAULT_MODULES)

    selected: List[str] = []
    for module_id in requested:
        if module_id not in MODULES:
            raise BitgetMcpError.config(
                f'Unknown module "{module_id}".',
                f'Use one of: {", ".join(MODULES)} or "all".',
            )
        if module_id not in selected:
            selected.append(module_id)
    return selected


def _invalid_value(name: str, raw: str, suggestion: str) -> BitgetMcpError:
    logger.error(f"[BG-CFG-001] Invalid configuration value | variable={name} | value={raw}")
    return BitgetMcpError.config(f'Invalid {name} value "{raw}".', suggestion)


def _read_positive_int(env: Dict[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        parsed: Optional[float] = float(raw)
    except ValueError:
        parsed = None
    if parsed is None or not math.isfinite(parsed) or parsed <= 0:
        raise _invalid_value(name, raw, f"Set {name} as a positive integer in milliseconds.")
    return max(1, int(parsed))


def _read_base_url(env: Dict[str, str]) -> str:
    base_url = (env.get("BITGET_API_BASE_URL") or "").strip() or DEFAULT_BASE_URL
    if not base_url.startswith(("http://", "https://")):
        raise _invalid_value(
            "BITGET_API_BASE_URL",
            base_url,
            "BITGET_API_BASE_URL must start with http:// or https://",
        )
    return base_url.rstrip("/")


def _read_optional(env: Dict[str, str], name: str) -> Optional[str]:
    value = (env.get(name) or "").strip()
    return value or None


# =============================================================================
# BitgetConfig Class
# =============================================================================

@dataclass
class BitgetConfig:
    """
    Bridge configuration.

    Credentials are either all present (has_auth) or all absent; partial sets
    are rejected by from_environment().
    """

    api_key: Optional[str] = field(default=None, repr=False)
    secret_key: Optional[str] = field(default=None, repr=False)
    passphrase: Optional[str] = field(default=None, repr=False)
    base_url: str = DEFAULT_BASE_URL
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    rate_limit_max_wait_ms: int = DEFAULT_RATE_LIMIT_MAX_WAIT_MS
    modules: List[str] = field(default_factory=lambda: list(DEFAULT_MODULES))
    read_only: bool = False
    log_level: str = DEFAULT_LOG_LEVEL
    metrics_port: Optional[int] = None

    @property
    def has_auth(self) -> bool:
        """True when all three credential fields are set."""
        return bool(self.api_key and self.secret_key and self.passphrase)

    @classmethod
    def from_environment(
        cls,
        modules: Optional[str] = None,
        read_only: bool = False,
        env: Optional[Dict[str, str]] = None,
    ) -> "BitgetConfig":
        """
        Load configuration from environment variables.

        Args:
            modules: Raw --modules option
            read_only: Whether write tools are hidden
            env: Mapping to read instead of os.environ

        Returns:
            BitgetConfig instance

        Raises:
            BitgetMcpError(ConfigError): On partial credentials or invalid values
        """
        source = dict(os.environ) if env is None else env

        api_key = _read_optional(source, "BITGET_API_KEY")
        secret_key = _read_optional(source, "BITGET_SECRET_KEY")
        passphrase = _read_optional(source, "BITGET_PASSPHRASE")

        provided = [value for value in (api_key, secret_key, passphrase) if value]
        if provided and len(provided) != 3:
            logger.error(
                "[BG-SEC-001] Partial API credentials detected | "
                f"api_key_set={bool(api_key)} | secret_key_set={bool(secret_key)} | "
                f"passphrase_set={bool(passphrase)}"
            )
            raise BitgetMcpError.config(
                "Partial API credentials detected.",
                "Set BITGET_API_KEY, BITGET_SECRET_KEY and BITGET_PASSPHRASE together.",
            )

        metrics_port_raw = _read_optional(source, "BITGET_METRICS_PORT")
        metrics_port = None
        if metrics_port_raw is not None:
            if not metrics_port_raw.isdigit() or not 0 < int(metrics_port_raw) < 65536:
                raise _invalid_value(
                    "BITGET_METRICS_PORT",
                    metrics_port_raw,
                    "Set BITGET_METRICS_PORT to a TCP port between 1 and 65535.",
                )
            metrics_port = int(metrics_port_raw)

        log_level = (_read_optional(source, "BITGET_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise _invalid_value(
                "BITGET_LOG_LEVEL",
                log_level,
                "Use DEBUG, INFO, WARNING or ERROR.",
            )

        config = cls(
            api_key=api_key,
            secret_key=secret_key,
            passphrase=passphrase,
            base_url=_read_base_url(source),
            timeout_ms=_read_positive_int(source, "BITGET_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
            rate_limit_max_wait_ms=_read_positive_int(
                source, "BITGET_RATE_LIMIT_MAX_WAIT_MS", DEFAULT_RATE_LIMIT_MAX_WAIT_MS
            ),
            modules=parse_module_list(modules),
            read_only=read_only,
            log_level=log_level,
            metrics_port=metrics_port,
        )

        logger.info(
            f"[BG-CFG] Configuration loaded | "
            f"has_auth={config.has_auth} | base_url={config.base_url} | "
            f"timeout_ms={config.timeout_ms} | modules={','.join(config.modules)} | "
            f"read_only={config.read_only}"
        )
        return config
