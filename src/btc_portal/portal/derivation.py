"""Deposit address derivation — deterministic multisig P2WSH addresses.

Every depositor gets its own m-of-n multisig address: each master key is
tweaked by one level of non-hardened BIP32 derivation whose chain code is
``sha256(chain_code_seed)``. The result depends only on the master keys,
the threshold, the seed and the network, so anyone can recompute and verify
an address without trusting whoever claims it.
"""

from __future__ import annotations

from dataclasses import dataclass

from btc_portal.btc.address import p2wsh_address
from btc_portal.btc.keys import ExtendedPublicKey, decode_public_key
from btc_portal.btc.script import (
    MAX_MULTISIG_KEYS,
    multisig_redeem_script,
    witness_script_hash,
)
from btc_portal.config.settings import Network
from btc_portal.errors.validation_errors import InvalidKey, InvalidThreshold
from btc_portal.utils.crypto import sha256

# Child index used for every depositor key.
_CHILD_INDEX = 0


@dataclass(frozen=True)
class MasterKeySet:
    """Ordered master public keys plus the number of signatures required."""

    keys: tuple[bytes, ...]
    threshold: int


@dataclass(frozen=True)
class DepositAddress:
    """A derived deposit address and the redeem script behind it."""

    redeem_script: bytes
    address: str


def derive_child_key(master_key: bytes, seed: str) -> bytes:
    """Derive the depositor's child public key from a master key.

    An empty *seed* returns *master_key* unchanged (the change address).

    Raises:
        InvalidKey: If the master key or derived key is not a valid curve point.
    """
    if seed == "":
        try:
            decode_public_key(master_key)
        except ValueError as exc:
            raise InvalidKey(f"master public key {master_key.hex()} is invalid: {exc}") from exc
        return master_key

    chain_code = sha256(seed.encode("utf-8"))
    parent = ExtendedPublicKey(key=master_key, chain_code=chain_code)
    try:
        child = parent.derive_child(_CHILD_INDEX)
    except ValueError as exc:
        raise InvalidKey(f"master public key {master_key.hex()} is invalid: {exc}") from exc
    return child.key


def build_multisig_address(
    master_keys: tuple[bytes, ...] | list[bytes],
    threshold: int,
    seed: str,
    network: Network,
) -> DepositAddress:
    """Build the multisig P2WSH deposit address for *seed*.

    Args:
        master_keys: Ordered compressed master public keys.
        threshold: Signatures required to spend.
        seed: Chain code of the depositor; empty for the change address.
        network: Network whose bech32 prefix the address uses.

    Raises:
        InvalidThreshold: If ``threshold`` is negative or exceeds the key count,
            or the key count exceeds what bare multisig can express.
        InvalidKey: If a master key is not a valid curve point.
    """
    if threshold < 0 or threshold > len(master_keys):
        raise InvalidThreshold(
            f"invalid signature requirement: {threshold} of {len(master_keys)}"
        )
    if len(master_keys) > MAX_MULTISIG_KEYS:
        raise InvalidThreshold(
            f"bare multisig supports at most {MAX_MULTISIG_KEYS} keys, got {len(master_keys)}"
        )

    pubkeys = [derive_child_key(key, seed) for key in master_keys]
    redeem_script = multisig_redeem_script(threshold, pubkeys)
    address = p2wsh_address(witness_script_hash(redeem_script), hrp=network.hrp)
    return DepositAddress(redeem_script=redeem_script, address=address)


def derive_deposit_address(key_set: MasterKeySet, seed: str, network: Network) -> DepositAddress:
    """Convenience wrapper over :func:`build_multisig_address` for a key set."""
    return build_multisig_address(key_set.keys, key_set.threshold, seed, network)
