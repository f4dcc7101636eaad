# ============================================================================
# Bitget MCP Bridge v1.0.0
# HMAC Signer - Bitget Request Authentication
# ============================================================================
#
# Reliability Level: SOVEREIGN TIER (Mission-Critical)
# Purpose: Signs private Bitget API requests using HMAC-SHA256
#
# SOVEREIGN MANDATE:
#   - Credentials NEVER appear in logs
#   - Signing is a pure function of (payload, secret)
#
# Bitget API Signature Format:
#   payload = timestamp + METHOD + path_with_query + body
#   signature = base64(HMAC-SHA256(secret_key, payload))
#
# ============================================================================

import base64
import hashlib
import hmac
import logging
import time
from typing import Dict, Optional

logger = logging.getLogger(__name__)


def build_signing_payload(timestamp: str, method: str, path: str, body: str = "") -> str:
    """Canonical signing string: timestamp + METHOD + path(+query) + body."""
    return f"{timestamp}{method.upper()}{path}{body}"


def sign_payload(payload: str, secret_key: str) -> str:
    """
    Compute the Bitget request signature.

    Args:
        payload: Canonical signing string
        secret_key: API secret key

    Returns:
        Base64-encoded HMAC-SHA256 digest
    """
    digest = hmac.new(
        secret_key.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


class BitgetSigner:
    """
    HMAC-SHA256 Request Signer for Bitget private endpoints.

    Holds one complete credential set and produces the four ACCESS-* headers.
    Credential completeness is checked by the caller before construction.

    Example Usage:
        signer = BitgetSigner(api_key, secret_key, passphrase)
        headers = signer.sign_request("GET", "/api/v2/spot/account/assets")
    """

    def __init__(self, api_key: str, secret_key: str, passphrase: str):
        self._api_key = api_key
        self._secret_key = secret_key
        self._passphrase = passphrase

    def sign_request(
        self,
        method: str,
        path: str,
        body: str = "",
        timestamp: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> Dict[str, str]:
        """
        Generate Bitget authentication headers.

        Args:
            method: HTTP method
            path: Request path including encoded query string
            body: Request body JSON (empty for GET requests)
            timestamp: Milliseconds since epoch (taken now if None)
            correlation_id: Audit trail identifier

        Returns:
            Dict with ACCESS-KEY, ACCESS-SIGN, ACCESS-PASSPHRASE, ACCESS-TIMESTAMP
        """
        if timestamp is None:
            timestamp = str(int(time.time() * 1000))

        payload = build_signing_payload(timestamp, method, path, body)
        signature = sign_payload(payload, self._secret_key)

        logger.debug(
            f"[BG-SIGN] Request signed | "
            f"method={method.upper()} | path={path} | "
            f"timestamp={timestamp} | signature=[REDACTED] | "
            f"correlation_id={correlation_id}"
        )

        return {
            "ACCESS-KEY": self._api_key,
            "ACCESS-SIGN": signature,
            "ACCESS-PASSPHRASE": self._passphrase,
            "ACCESS-TIMESTAMP": timestamp,
        }

    def get_redacted_key(self) -> str:
        """Return first and last 4 characters of the API key for logging."""
        if len(self._api_key) > 8:
            return f"{self._api_key[:4]}...{self._api_key[-4:]}"
        return "[REDACTED]"
