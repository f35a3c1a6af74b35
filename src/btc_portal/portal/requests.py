"""Shielding request shapes — legacy account address or one-time deposit key."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

from btc_portal.errors.validation_errors import AmbiguousChainCode

if TYPE_CHECKING:
    from collections.abc import Sequence


class ChainCodeMode(enum.StrEnum):
    """What kind of identifier a chain code is."""

    ACCOUNT = "account"
    DEPOSIT_KEY = "deposit_key"


@dataclass(frozen=True)
class LegacyShieldRequest:
    """Registration keyed by a long-lived inner-ledger account address.

    The same account always maps to the same deposit address.
    """

    account_address: str
    btc_address: str

    @property
    def chain_code(self) -> str:
        return self.account_address

    @property
    def mode(self) -> ChainCodeMode:
        return ChainCodeMode.ACCOUNT


@dataclass(frozen=True)
class OneTimeShieldRequest:
    """Registration keyed by a one-time deposit public key.

    ``signatures[i]`` authorizes ``receivers[i]`` under ``deposit_pub_key``.
    """

    deposit_pub_key: str
    receivers: tuple[str, ...]
    signatures: tuple[str, ...]
    btc_address: str

    @property
    def chain_code(self) -> str:
        return self.deposit_pub_key

    @property
    def mode(self) -> ChainCodeMode:
        return ChainCodeMode.DEPOSIT_KEY


ShieldRequest = LegacyShieldRequest | OneTimeShieldRequest


def parse_shield_request(
    *,
    btc_address: str,
    account_address: str = "",
    deposit_pub_key: str = "",
    receivers: Sequence[str] = (),
    signatures: Sequence[str] = (),
) -> ShieldRequest:
    """Turn the flat transport shape into a tagged request.

    Raises:
        AmbiguousChainCode: Unless exactly one of *account_address* and
            *deposit_pub_key* is non-empty.
    """
    if not account_address and not deposit_pub_key:
        raise AmbiguousChainCode("either account address or deposit public key must be non-empty")
    if account_address and deposit_pub_key:
        raise AmbiguousChainCode("either account address or deposit public key must be empty")

    if account_address:
        return LegacyShieldRequest(account_address=account_address, btc_address=btc_address)
    return OneTimeShieldRequest(
        deposit_pub_key=deposit_pub_key,
        receivers=tuple(receivers),
        signatures=tuple(signatures),
        btc_address=btc_address,
    )
