"""One-time receivers and deposit-key signatures.

A one-time deposit key authorizes a registration by signing every receiver
descriptor the shielded funds may be minted to. Wire formats (all Base58Check):

- deposit public key: 33-byte compressed secp256k1 point
- receiver: ``version(1) || public_key(33) || tx_random(32)``
- signature: DER-encoded ECDSA signature over ``sha256(receiver bytes)``
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Self

from btc_portal.btc.keys import (
    base58check_decode,
    base58check_encode,
    decode_public_key,
    verify_signature,
)
from btc_portal.utils.crypto import sha256

RECEIVER_VERSION = 1
_PUBKEY_LEN = 33
_TX_RANDOM_LEN = 32
_RECEIVER_LEN = 1 + _PUBKEY_LEN + _TX_RANDOM_LEN


@dataclass(frozen=True)
class OneTimeReceiver:
    """Descriptor of a one-time receiving key on the inner ledger."""

    public_key: bytes
    tx_random: bytes
    version: int = RECEIVER_VERSION

    def to_bytes(self) -> bytes:
        """Canonical byte encoding — the message deposit keys sign."""
        return bytes([self.version]) + self.public_key + self.tx_random

    def to_string(self) -> str:
        """Encode as a Base58Check string."""
        return base58check_encode(self.to_bytes())

    def message_hash(self) -> bytes:
        """SHA-256 of the canonical encoding."""
        return sha256(self.to_bytes())

    @property
    def key_id(self) -> str:
        """Stable string identifying the embedded public key (replay index key)."""
        return base58check_encode(self.public_key)

    @classmethod
    def from_string(cls, s: str) -> Self:
        """Decode a Base58Check receiver string.

        Raises:
            ValueError: If the string, version, length or public key is invalid.
        """
        data = base58check_decode(s)
        if len(data) != _RECEIVER_LEN:
            msg = f"Invalid receiver length: {len(data)}"
            raise ValueError(msg)
        if data[0] != RECEIVER_VERSION:
            msg = f"Unsupported receiver version: {data[0]}"
            raise ValueError(msg)
        public_key = data[1 : 1 + _PUBKEY_LEN]
        decode_public_key(public_key)
        return cls(public_key=public_key, tx_random=data[1 + _PUBKEY_LEN :])


def decode_deposit_key(deposit_pub_key: str) -> bytes:
    """Decode a Base58Check deposit public key to its compressed point bytes.

    Raises:
        ValueError: If the string is malformed or not a secp256k1 point.
    """
    key = base58check_decode(deposit_pub_key)
    decode_public_key(key)
    return key


def encode_deposit_key(pubkey: bytes) -> str:
    """Encode compressed public key bytes as a Base58Check deposit key."""
    return base58check_encode(pubkey)


def verify_receiver_signature(deposit_key: bytes, receiver: OneTimeReceiver, signature: str) -> bool:
    """Check *signature* (Base58Check DER) authorizes *receiver* under *deposit_key*."""
    try:
        sig_bytes = base58check_decode(signature)
    except ValueError:
        return False
    return verify_signature(deposit_key, receiver.message_hash(), sig_bytes)
