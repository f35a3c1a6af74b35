"""Deposit registry — persistent, deduplicated chain code → address bindings."""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from btc_portal.engine.models.deposit import DepositReceiver, DepositRecord
from btc_portal.errors.definitions import ErrNoSuchDeposit
from btc_portal.errors.validation_errors import ReceiverAlreadyUsed

if TYPE_CHECKING:
    from btc_portal.datastore.client import Datastore
    from btc_portal.portal.requests import ChainCodeMode

logger = logging.getLogger(__name__)


class RegistrationOutcome(enum.StrEnum):
    """Result of an insert attempt. A duplicate is an outcome, not an error."""

    OK = "ok"
    ALREADY_REGISTERED = "already_registered"


class DepositRegistry:
    """Data access layer for registered deposit addresses.

    Duplicate prevention is delegated to the database: the unique constraint
    on ``(chain_code, address)`` and the primary key on receiver keys decide
    which of several concurrent inserts wins.
    """

    def __init__(self, datastore: Datastore) -> None:
        self._ds = datastore

    async def exists(self, chain_code: str, address: str) -> bool:
        """Check whether *chain_code* is already bound to *address*."""
        async with self._ds.session() as session:
            result = await session.execute(
                select(DepositRecord.id).where(
                    DepositRecord.chain_code == chain_code,
                    DepositRecord.address == address,
                )
            )
            return result.first() is not None

    async def register(self, record: DepositRecord) -> RegistrationOutcome:
        """Insert *record* unless the pair is already registered.

        Raises:
            ReceiverAlreadyUsed: If one of the record's receiver keys was
                consumed by another registration in the meantime.
        """
        try:
            async with self._ds.transaction() as session:
                session.add(record)
        except IntegrityError:
            if await self.exists(record.chain_code, record.address):
                logger.info("deposit address %s already registered", record.address)
                return RegistrationOutcome.ALREADY_REGISTERED
            raise ReceiverAlreadyUsed(
                f"a receiver of chain code {record.chain_code} is already used"
            ) from None

        logger.info("registered deposit address %s (%s)", record.address, record.mode)
        return RegistrationOutcome.OK

    async def list(self, from_time: int, to_time: int) -> list[DepositRecord]:
        """Records whose registration timestamp falls in ``[from_time, to_time)``."""
        async with self._ds.session() as session:
            result = await session.execute(
                select(DepositRecord)
                .where(DepositRecord.timestamp >= from_time, DepositRecord.timestamp < to_time)
                .order_by(DepositRecord.timestamp)
            )
            records = list(result.scalars().all())
        logger.debug("found %d records in [%d, %d)", len(records), from_time, to_time)
        return records

    async def lookup_address(self, chain_code: str, *, mode: ChainCodeMode | None = None) -> str:
        """Return the deposit address registered for *chain_code*.

        Raises:
            PortalError: ``ErrNoSuchDeposit`` if nothing is registered.
        """
        stmt = select(DepositRecord.address).where(DepositRecord.chain_code == chain_code)
        if mode is not None:
            stmt = stmt.where(DepositRecord.mode == mode.value)
        async with self._ds.session() as session:
            result = await session.execute(stmt.limit(1))
            address = result.scalar_one_or_none()
        if address is None:
            raise ErrNoSuchDeposit
        return address

    async def receiver_owner(self, receiver_key: str) -> str | None:
        """Chain code that consumed *receiver_key*, or None if it is unused."""
        async with self._ds.session() as session:
            receiver = await session.get(DepositReceiver, receiver_key)
            return receiver.chain_code if receiver is not None else None
