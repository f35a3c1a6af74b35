"""Fee oracle HTTP client — current sat/vbyte rate and unshielding estimate.

The oracle answers ``GET <url>`` with ``{"Result": <sat per vbyte>}``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from btc_portal.errors.chain_errors import FeeServiceError

if TYPE_CHECKING:
    from btc_portal.config.settings import FeeConfig

logger = logging.getLogger(__name__)

# Virtual size of a 2-in/2-out multisig unshielding transaction.
VBYTES_PER_INPUT = 192.25
VBYTES_PER_OUTPUT = 43.0
VBYTES_OVERHEAD = 10.75
OVERPAY_FACTOR = 1.15


def estimate_unshielding_fee(fee_per_vbyte: float) -> float:
    """Estimated fee in satoshis for an unshielding transaction at *fee_per_vbyte*."""
    vsize = 2 * VBYTES_PER_INPUT + 2 * VBYTES_PER_OUTPUT + VBYTES_OVERHEAD
    return fee_per_vbyte * vsize * OVERPAY_FACTOR


class FeeEstimator:
    """Async HTTP client for the fee oracle.

    Usage::

        fees = FeeEstimator(config)
        await fees.connect()
        try:
            fee = await fees.estimate_unshielding_fee()
        finally:
            await fees.close()
    """

    def __init__(self, config: FeeConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:  # noqa: ASYNC910
        """Create the underlying HTTP client."""
        self._client = httpx.AsyncClient(timeout=self._config.timeout)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    async def get_fee_per_vbyte(self) -> float:
        """Fetch the current fee rate in satoshis per virtual byte.

        Raises:
            FeeServiceError: On transport errors, non-200 status, or a
                malformed body.
        """
        client = self._ensure_connected()
        if not self._config.url:
            raise FeeServiceError("fee oracle url is not configured", status_code=503)
        try:
            response = await client.get(self._config.url)
        except httpx.HTTPError as exc:
            raise FeeServiceError(f"fee oracle request failed: {exc}") from exc

        if response.status_code != 200:
            raise FeeServiceError(f"fee oracle returned HTTP {response.status_code}")
        try:
            body: dict[str, Any] = response.json()
            return float(body["Result"])
        except (ValueError, KeyError, TypeError) as exc:
            raise FeeServiceError(f"could not parse fee oracle response: {response.text[:200]}") from exc

    async def estimate_unshielding_fee(self) -> float:
        """Fetch the current rate and apply the unshielding heuristic."""
        rate = await self.get_fee_per_vbyte()
        fee = estimate_unshielding_fee(rate)
        logger.debug("estimated unshielding fee %.2f sat at %.2f sat/vB", fee, rate)
        return fee

    def _ensure_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "fee oracle client not connected. Call connect() first."
            raise FeeServiceError(msg, status_code=500)
        return self._client
