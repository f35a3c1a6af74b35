"""Portal service — the operations the transport layer exposes.

Registration::

    request = parse_shield_request(...)
    await service.validate_registration_request(request)
    outcome = await service.register_deposit(request)

History::

    history = await service.get_history(chain_code, ChainCodeMode.ACCOUNT)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from btc_portal.chain.bitcoind.client import is_valid_txid
from btc_portal.engine.models.deposit import new_deposit_record
from btc_portal.errors.chain_errors import BitcoindError
from btc_portal.errors.definitions import (
    ErrInvalidExternalTxID,
    ErrInvalidInterval,
    ErrMissingChainCode,
    ErrNotPortalToken,
)
from btc_portal.errors.validation_errors import ValidationError
from btc_portal.portal.registry import RegistrationOutcome
from btc_portal.portal.requests import ChainCodeMode

if TYPE_CHECKING:
    from btc_portal.engine.client import PortalEngine
    from btc_portal.engine.models.deposit import DepositRecord
    from btc_portal.portal.history import DepositHistoryEntry, ShieldHistory
    from btc_portal.portal.requests import ShieldRequest


logger = logging.getLogger(__name__)


class PortalService:
    """Business logic for shielding address registration and history.

    - Validate requests (signatures, replay, address re-derivation)
    - Register the address with the node's watch-only wallet, then persist it
    - Reconcile deposit histories from the node's UTXO set
    """

    def __init__(self, engine: PortalEngine) -> None:
        self._engine = engine

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def validate_registration_request(self, request: ShieldRequest) -> ShieldRequest:
        """Check *request* and return it once every rule passed.

        Raises:
            ValidationError: The named rejection for the first failed rule.
        """
        try:
            return await self._engine.validator.validate(request)
        except ValidationError as exc:
            logger.info("rejected shielding request for %s: %s", request.chain_code, exc.message)
            self._engine.metrics.record_rejection(exc.reason.value)
            raise

    async def register_deposit(self, request: ShieldRequest) -> RegistrationOutcome:
        """Validate and store *request*.

        A pair that is already stored yields ``ALREADY_REGISTERED``. The node
        is asked to watch the address before the insert; a node failure there
        is logged and does not block the registration.

        Raises:
            ValidationError: If the request is rejected.
        """
        await self.validate_registration_request(request)

        if await self.check_exists(request.chain_code, request.btc_address):
            outcome = RegistrationOutcome.ALREADY_REGISTERED
        else:
            await self._watch_address(request.btc_address)
            record = new_deposit_record(request)
            outcome = await self._engine.registry.register(record)

        self._engine.metrics.record_registration(outcome.value)
        return outcome

    async def check_exists(self, chain_code: str, address: str) -> bool:
        """Check whether *chain_code* is already bound to *address*."""
        if not chain_code:
            raise ErrMissingChainCode
        return await self._engine.registry.exists(chain_code, address)

    async def list_registrations(self, from_time: int, to_time: int) -> list[DepositRecord]:
        """Registrations with a timestamp in ``[from_time, to_time)``.

        Raises:
            PortalError: ``ErrInvalidInterval`` if *to_time* is zero or before
                *from_time*.
        """
        if to_time == 0 or from_time > to_time:
            raise ErrInvalidInterval
        return await self._engine.registry.list(from_time, to_time)

    async def _watch_address(self, address: str) -> None:
        try:
            await self._engine.bitcoind.import_address(address)
        except BitcoindError as exc:
            logger.warning("could not import %s into the node wallet: %s", address, exc.message)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def get_history(self, chain_code: str, mode: ChainCodeMode) -> ShieldHistory:
        """Deposit history of the address registered for *chain_code*.

        Raises:
            PortalError: ``ErrNoSuchDeposit`` if nothing is registered.
        """
        return await self._engine.history.get_history(chain_code, mode)

    async def get_history_for_deposit_keys(self, keys: list[str]) -> dict[str, ShieldHistory]:
        """History per one-time deposit key. Any unknown key fails the whole call."""
        result: dict[str, ShieldHistory] = {}
        for key in keys:
            result[key] = await self.get_history(key, ChainCodeMode.DEPOSIT_KEY)
        return result

    async def get_history_by_external_txid(self, txid: str) -> DepositHistoryEntry:
        """Status and confirmations of one external transaction.

        Raises:
            PortalError: ``ErrInvalidExternalTxID`` if *txid* is not a 64-char
                hex hash; ``BitcoindError`` if the node lookup fails.
        """
        if not is_valid_txid(txid):
            raise ErrInvalidExternalTxID
        return await self._engine.history.get_by_external_txid(txid)

    def check_token(self, token_id: str) -> None:
        """Reject token IDs other than the portal's BTC token."""
        if token_id != self._engine.config.portal.btc_token_id:
            raise ErrNotPortalToken

    # ------------------------------------------------------------------
    # Fees
    # ------------------------------------------------------------------

    async def estimate_unshielding_fee(self) -> float:
        """Estimated unshielding fee in satoshis at the oracle's current rate."""
        return await self._engine.fees.estimate_unshielding_fee()
