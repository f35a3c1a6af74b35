"""Deposit history — live UTXO state of a deposit address, classified.

History is never stored: confirmation counts move with every block, so each
query asks the node again. For every unspent output paying to the address the
owning wallet transaction is fetched concurrently (bounded, with a per-fetch
timeout). A fetch that fails drops only that output; the drop is logged and
reported back on :class:`ShieldHistory` so callers can re-query.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from btc_portal.errors.portal_errors import PortalError
from btc_portal.portal.requests import ChainCodeMode

if TYPE_CHECKING:
    from btc_portal.chain.bitcoind.client import BitcoindClient
    from btc_portal.chain.bitcoind.models import UnspentOutput
    from btc_portal.metrics.collector import PortalMetrics
    from btc_portal.portal.registry import DepositRegistry

logger = logging.getLogger(__name__)

# 1 BTC = 1e8 satoshi; the inner ledger counts in 1e-9 units.
_SATOSHI_PER_BTC = Decimal(100_000_000)
_INNER_UNITS_PER_SATOSHI = 10


class ShieldStatus(enum.IntEnum):
    """Shielding status codes as exposed on the wire."""

    FAILED = 0
    SUCCESS = 1
    PENDING = 2
    PROCESSING = 3


def status_from_confirmations(confirmations: int) -> ShieldStatus:
    """Unconfirmed outputs are pending; anything with a confirmation is processing."""
    if confirmations > 0:
        return ShieldStatus.PROCESSING
    return ShieldStatus.PENDING


def convert_btc_to_inner(amount: Decimal | str | float) -> int:
    """Convert a BTC amount to inner-ledger units.

    >>> convert_btc_to_inner(Decimal("0.00000001"))
    10
    """
    btc = Decimal(str(amount)) if not isinstance(amount, Decimal) else amount
    satoshi = (btc * _SATOSHI_PER_BTC).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(satoshi) * _INNER_UNITS_PER_SATOSHI


@dataclass(frozen=True)
class DepositHistoryEntry:
    """One deposit observed on chain for a registered address."""

    amount: int
    external_tx_id: str
    status: ShieldStatus
    time: int  # milliseconds
    confirmations: int
    account_address: str = ""
    deposit_pub_key: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Wire representation; zero amount/time and empty owners are omitted."""
        out: dict[str, Any] = {
            "externalTxID": self.external_tx_id,
            "status": int(self.status),
            "confirmations": self.confirmations,
        }
        if self.amount:
            out["amount"] = self.amount
        if self.time:
            out["time"] = self.time
        if self.account_address:
            out["incognitoAddress"] = self.account_address
        if self.deposit_pub_key:
            out["depositpubkey"] = self.deposit_pub_key
        return out


@dataclass(frozen=True)
class DroppedOutput:
    """An unspent output left out of a history because its fetch failed."""

    txid: str
    reason: str


@dataclass(frozen=True)
class ShieldHistory:
    """Result of a reconciliation: entries in no particular order plus drops."""

    entries: list[DepositHistoryEntry] = field(default_factory=list)
    dropped: list[DroppedOutput] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.dropped


class HistoryReconciler:
    """Build deposit histories from the node's view of registered addresses."""

    def __init__(
        self,
        registry: DepositRegistry,
        node: BitcoindClient,
        *,
        min_conf: int = 0,
        max_conf: int = 99999999,
        fetch_timeout: float = 10.0,
        max_workers: int = 16,
        metrics: PortalMetrics | None = None,
    ) -> None:
        self._registry = registry
        self._node = node
        self._min_conf = min_conf
        self._max_conf = max_conf
        self._fetch_timeout = fetch_timeout
        self._max_workers = max(1, max_workers)
        self._metrics = metrics

    async def get_history(
        self, chain_code: str, mode: ChainCodeMode = ChainCodeMode.ACCOUNT
    ) -> ShieldHistory:
        """Reconcile the deposit address registered for *chain_code*.

        Raises:
            PortalError: ``ErrNoSuchDeposit`` if nothing is registered for the
                chain code; ``BitcoindError`` if the UTXO listing fails.
        """
        address = await self._registry.lookup_address(chain_code, mode=mode)

        start = time.monotonic()
        utxos = await self._node.list_unspent(self._min_conf, self._max_conf, [address])
        history = await self.reconcile(utxos, chain_code, mode)
        elapsed = time.monotonic() - start

        if self._metrics is not None:
            self._metrics.observe_history(elapsed, dropped=len(history.dropped))
        logger.debug(
            "history for %s: %d entries, %d dropped in %.3fs",
            address,
            len(history.entries),
            len(history.dropped),
            elapsed,
        )
        return history

    async def reconcile(
        self, utxos: list[UnspentOutput], chain_code: str, mode: ChainCodeMode
    ) -> ShieldHistory:
        """Turn *utxos* into history entries, fetching each owning transaction."""
        if not utxos:
            return ShieldHistory()

        semaphore = asyncio.Semaphore(self._max_workers)

        async def _one(utxo: UnspentOutput) -> DepositHistoryEntry | DroppedOutput:
            async with semaphore:
                try:
                    tx = await asyncio.wait_for(
                        self._node.get_transaction(utxo.txid), timeout=self._fetch_timeout
                    )
                    return self._entry(utxo, tx.time, chain_code, mode)
                except TimeoutError:
                    reason = f"timed out after {self._fetch_timeout}s"
                except PortalError as exc:
                    reason = exc.message
                except Exception as exc:  # noqa: BLE001
                    # One bad reply drops its output, never the whole history.
                    reason = f"{type(exc).__name__}: {exc}"
            logger.warning("dropping output %s:%d from history: %s", utxo.txid, utxo.vout, reason)
            return DroppedOutput(txid=utxo.txid, reason=reason)

        results = await asyncio.gather(*(_one(u) for u in utxos))

        entries = [r for r in results if isinstance(r, DepositHistoryEntry)]
        dropped = [r for r in results if isinstance(r, DroppedOutput)]
        return ShieldHistory(entries=entries, dropped=dropped)

    @staticmethod
    def _entry(
        utxo: UnspentOutput, tx_time: int, chain_code: str, mode: ChainCodeMode
    ) -> DepositHistoryEntry:
        owner: dict[str, str]
        if mode is ChainCodeMode.DEPOSIT_KEY:
            owner = {"deposit_pub_key": chain_code}
        else:
            owner = {"account_address": chain_code}
        return DepositHistoryEntry(
            amount=convert_btc_to_inner(utxo.amount),
            external_tx_id=utxo.txid,
            status=status_from_confirmations(utxo.confirmations),
            time=tx_time * 1000,
            confirmations=utxo.confirmations,
            **owner,
        )

    async def get_by_external_txid(self, txid: str) -> DepositHistoryEntry:
        """Status of a single external transaction, without amount or owner.

        Raises:
            BitcoindError: If *txid* is malformed or the node lookup fails.
        """
        tx = await self._node.get_transaction(txid)
        return DepositHistoryEntry(
            amount=0,
            external_tx_id=txid,
            status=status_from_confirmations(tx.confirmations),
            time=0,
            confirmations=tx.confirmations,
        )
