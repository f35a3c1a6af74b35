"""Bitcoin Core RPC result models."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Self


@dataclass(frozen=True)
class UnspentOutput:
    """A single entry of ``listunspent``."""

    txid: str
    vout: int
    address: str
    amount: Decimal  # BTC
    confirmations: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            txid=data["txid"],
            vout=int(data.get("vout", 0)),
            address=data.get("address", ""),
            amount=Decimal(str(data["amount"])),
            confirmations=int(data.get("confirmations", 0)),
        )


@dataclass(frozen=True)
class WalletTransaction:
    """The subset of ``gettransaction`` the portal uses."""

    txid: str
    time: int  # unix seconds
    confirmations: int
    blockhash: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            txid=data.get("txid", ""),
            time=int(data.get("time", 0)),
            confirmations=int(data.get("confirmations", 0)),
            blockhash=data.get("blockhash", ""),
        )
