"""Shared error instances for the portal service."""

from __future__ import annotations

from btc_portal.errors.portal_errors import PortalError

# -- Engine ----------------------------------------------------------------

ErrEngineNotReady = PortalError("portal engine not initialized", status_code=503, code="engine-not-ready")

# -- Not Found -------------------------------------------------------------

ErrNoSuchDeposit = PortalError(
    "no shielding address registered for chain code", status_code=404, code="no-such-deposit"
)

# -- Request parameters ----------------------------------------------------

ErrInvalidInterval = PortalError("invalid interval", status_code=400, code="invalid-interval")
ErrMissingChainCode = PortalError(
    "either an account address or deposit public keys must be supplied",
    status_code=400,
    code="missing-chain-code",
)
ErrMissingBTCAddress = PortalError(
    "btc address must be supplied", status_code=400, code="missing-btc-address"
)
ErrNotPortalToken = PortalError(
    "token id is not a portal token", status_code=400, code="not-portal-token"
)
ErrInvalidExternalTxID = PortalError(
    "invalid external transaction id", status_code=400, code="invalid-external-txid"
)
