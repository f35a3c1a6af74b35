"""Deposit models — registered shielding addresses and consumed receivers."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import BigInteger, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from btc_portal.engine.models.base import Base, TimestampMixin
from btc_portal.portal.receivers import OneTimeReceiver
from btc_portal.portal.requests import OneTimeShieldRequest, ShieldRequest
from btc_portal.utils.crypto import sha256


class DepositRecord(Base, TimestampMixin):
    """A (chain code → BTC address) binding registered by a depositor.

    Unique by ``(chain_code, address)``; written once and never updated.
    """

    __tablename__ = "deposit_records"
    __table_args__ = (UniqueConstraint("chain_code", "address", name="uq_deposit_chain_code_address"),)

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, comment="SHA-256 of chain code and address"
    )
    chain_code: Mapped[str] = mapped_column(
        String(512), nullable=False, index=True, comment="Account address or deposit public key"
    )
    mode: Mapped[str] = mapped_column(
        String(16), nullable=False, comment="Chain code kind: account or deposit_key"
    )
    address: Mapped[str] = mapped_column(
        String(100), nullable=False, comment="Bech32 P2WSH deposit address"
    )
    receivers: Mapped[list[str]] = mapped_column(nullable=False, default=list)
    signatures: Mapped[list[str]] = mapped_column(nullable=False, default=list)
    timestamp: Mapped[int] = mapped_column(
        BigInteger, nullable=False, index=True, comment="Unix seconds at registration"
    )

    receiver_keys: Mapped[list[DepositReceiver]] = relationship(
        back_populates="deposit", cascade="all, delete-orphan", lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<DepositRecord chain_code={self.chain_code} address={self.address}>"


class DepositReceiver(Base):
    """A one-time receiver key consumed by exactly one registration."""

    __tablename__ = "deposit_receivers"

    receiver_key: Mapped[str] = mapped_column(
        String(64), primary_key=True, comment="Base58Check receiver public key"
    )
    deposit_id: Mapped[str] = mapped_column(
        ForeignKey("deposit_records.id"), nullable=False, index=True
    )
    chain_code: Mapped[str] = mapped_column(String(512), nullable=False)

    deposit: Mapped[DepositRecord] = relationship(back_populates="receiver_keys")


def deposit_id(chain_code: str, address: str) -> str:
    """Stable record ID for a chain code / address pair."""
    return sha256(f"{chain_code}:{address}".encode()).hex()


def new_deposit_record(request: ShieldRequest, *, now: datetime | None = None) -> DepositRecord:
    """Build an unsaved record for a validated request, stamping its timestamps."""
    now = now or datetime.now(UTC)
    record_id = deposit_id(request.chain_code, request.btc_address)
    receivers: list[str] = []
    signatures: list[str] = []
    receiver_keys: list[DepositReceiver] = []
    if isinstance(request, OneTimeShieldRequest):
        receivers = list(request.receivers)
        signatures = list(request.signatures)
        receiver_keys = [
            DepositReceiver(
                receiver_key=OneTimeReceiver.from_string(r).key_id,
                deposit_id=record_id,
                chain_code=request.chain_code,
            )
            for r in request.receivers
        ]
    return DepositRecord(
        id=record_id,
        chain_code=request.chain_code,
        mode=request.mode.value,
        address=request.btc_address,
        receivers=receivers,
        signatures=signatures,
        timestamp=int(now.timestamp()),
        created_at=now,
        receiver_keys=receiver_keys,
    )
