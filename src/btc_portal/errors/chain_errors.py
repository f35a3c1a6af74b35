"""Bitcoin node & fee oracle errors."""

from __future__ import annotations

from btc_portal.errors.portal_errors import PortalError


class BitcoindError(PortalError):
    """Error from the Bitcoin Core JSON-RPC endpoint.

    Attributes:
        rpc_code: JSON-RPC error code, or None for transport failures.
    """

    def __init__(self, message: str, *, rpc_code: int | None = None, status_code: int = 502) -> None:
        super().__init__(message, status_code=status_code, code="bitcoind-error")
        self.rpc_code = rpc_code


class FeeServiceError(PortalError):
    """Error from the Bitcoin fee oracle."""

    def __init__(self, message: str, *, status_code: int = 502) -> None:
        super().__init__(message, status_code=status_code, code="fee-service-error")
