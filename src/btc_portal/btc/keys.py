"""secp256k1 keys — Base58Check, point decoding, ECDSA, BIP32 public derivation.

Implements the key handling needed by the portal:
- Base58Check encoding / decoding (deposit keys, receivers, signatures)
- Compressed public key decoding with on-curve validation
- ECDSA signing and verification on secp256k1 (DER signatures)
- One level of non-hardened BIP32 public child derivation
"""

from __future__ import annotations

import hashlib
import hmac
import struct
from dataclasses import dataclass

from ecdsa import SECP256k1, BadSignatureError, SigningKey, VerifyingKey
from ecdsa.der import UnexpectedDER
from ecdsa.ellipticcurve import INFINITY, Point
from ecdsa.util import sigdecode_der, sigencode_der_canonize

from btc_portal.utils.crypto import sha256d

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_CURVE = SECP256k1
_CURVE_ORDER = _CURVE.order
_CURVE_GEN = _CURVE.generator
_FIELD_P = _CURVE.curve.p()

# Non-hardened child index limit
_HARDENED_OFFSET = 0x80000000


# ---------------------------------------------------------------------------
# Base58Check encoding / decoding
# ---------------------------------------------------------------------------

_B58_ALPHABET = b"123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def base58_encode(payload: bytes) -> str:
    """Encode raw bytes to Base58 (no checksum)."""
    n = int.from_bytes(payload, "big")
    result: list[int] = []
    while n > 0:
        n, remainder = divmod(n, 58)
        result.append(_B58_ALPHABET[remainder])
    # Preserve leading zero bytes
    for byte in payload:
        if byte == 0:
            result.append(_B58_ALPHABET[0])
        else:
            break
    return bytes(reversed(result)).decode("ascii")


def base58_decode(s: str) -> bytes:
    """Decode Base58 string to raw bytes (no checksum).

    Raises:
        ValueError: If *s* contains a character outside the Base58 alphabet.
    """
    n = 0
    for char in s:
        idx = _B58_ALPHABET.find(char.encode("ascii", errors="replace"))
        if idx < 0:
            msg = f"Invalid Base58 character {char!r}"
            raise ValueError(msg)
        n = n * 58 + idx
    result = n.to_bytes((n.bit_length() + 7) // 8, "big") if n > 0 else b""
    # Preserve leading '1' chars as 0x00 bytes
    pad_count = 0
    for char in s:
        if char == "1":
            pad_count += 1
        else:
            break
    return b"\x00" * pad_count + result


def base58check_encode(payload: bytes) -> str:
    """Encode bytes with a 4-byte SHA256d checksum (Base58Check)."""
    checksum = sha256d(payload)[:4]
    return base58_encode(payload + checksum)


def base58check_decode(s: str) -> bytes:
    """Decode a Base58Check string, verifying the checksum.

    Raises:
        ValueError: If the string is malformed or the checksum is invalid.
    """
    raw = base58_decode(s)
    if len(raw) < 4:
        msg = "Base58Check string too short"
        raise ValueError(msg)
    payload, checksum = raw[:-4], raw[-4:]
    expected = sha256d(payload)[:4]
    if checksum != expected:
        msg = "Base58Check checksum mismatch"
        raise ValueError(msg)
    return payload


# ---------------------------------------------------------------------------
# Point encoding
# ---------------------------------------------------------------------------


def decode_public_key(compressed: bytes) -> Point:
    """Decode a 33-byte SEC compressed public key to a curve point.

    Raises:
        ValueError: If the encoding is malformed or the point is not on secp256k1.
    """
    if len(compressed) != 33:
        msg = f"Invalid compressed key length: {len(compressed)}"
        raise ValueError(msg)
    prefix = compressed[0]
    if prefix not in (0x02, 0x03):
        msg = f"Invalid compressed key prefix: {prefix:#x}"
        raise ValueError(msg)
    x = int.from_bytes(compressed[1:], "big")
    if x >= _FIELD_P:
        msg = "Public key x coordinate out of range"
        raise ValueError(msg)
    # y^2 = x^3 + 7  (mod p)  for secp256k1
    y_sq = (pow(x, 3, _FIELD_P) + 7) % _FIELD_P
    y = pow(y_sq, (_FIELD_P + 1) // 4, _FIELD_P)
    if (y * y) % _FIELD_P != y_sq:
        msg = "Public key is not a point on secp256k1"
        raise ValueError(msg)
    if (y % 2 == 0) != (prefix == 0x02):
        y = _FIELD_P - y
    return Point(_CURVE.curve, x, y)


def encode_public_key(point: Point) -> bytes:
    """Encode an elliptic curve point as a 33-byte compressed public key."""
    x_bytes = point.x().to_bytes(32, "big")
    prefix = b"\x02" if point.y() % 2 == 0 else b"\x03"
    return prefix + x_bytes


def is_valid_public_key(data: bytes) -> bool:
    """Check whether *data* is a valid compressed secp256k1 public key."""
    try:
        decode_public_key(data)
    except ValueError:
        return False
    return True


# ---------------------------------------------------------------------------
# ECDSA helpers
# ---------------------------------------------------------------------------


def private_key_to_public_key(privkey_bytes: bytes) -> bytes:
    """Derive the 33-byte compressed public key from a 32-byte private key."""
    sk = SigningKey.from_string(privkey_bytes, curve=_CURVE)
    return sk.get_verifying_key().to_string("compressed")


def sign_message(privkey_bytes: bytes, message_hash: bytes) -> bytes:
    """Sign a 32-byte hash with the private key (deterministic, DER-encoded)."""
    sk = SigningKey.from_string(privkey_bytes, curve=_CURVE)
    return sk.sign_digest_deterministic(
        message_hash,
        hashfunc=hashlib.sha256,
        sigencode=sigencode_der_canonize,
    )


def verify_signature(pubkey_bytes: bytes, message_hash: bytes, signature: bytes) -> bool:
    """Verify a DER-encoded signature against a compressed public key and hash.

    Raises:
        ValueError: If *pubkey_bytes* is not a valid compressed public key.
    """
    point = decode_public_key(pubkey_bytes)
    vk = VerifyingKey.from_public_point(point, curve=_CURVE)
    try:
        return vk.verify_digest(signature, message_hash, sigdecode=sigdecode_der)
    except (BadSignatureError, UnexpectedDER):
        return False


# ---------------------------------------------------------------------------
# BIP32 public derivation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExtendedPublicKey:
    """A BIP32 extended public key reduced to what child derivation needs.

    Attributes:
        key: 33-byte compressed public key.
        chain_code: 32-byte chain code.
    """

    key: bytes
    chain_code: bytes

    def derive_child(self, index: int) -> ExtendedPublicKey:
        """Derive the non-hardened child key at *index*.

        Raises:
            ValueError: If *index* is hardened, the parent key is not a curve
                point, or the derived key is invalid.
        """
        if not 0 <= index < _HARDENED_OFFSET:
            msg = "Cannot derive hardened child from public key"
            raise ValueError(msg)

        parent_point = decode_public_key(self.key)
        data = self.key + struct.pack(">I", index)
        hmac_result = hmac.new(self.chain_code, data, hashlib.sha512).digest()
        il, ir = hmac_result[:32], hmac_result[32:]

        il_int = int.from_bytes(il, "big")
        if il_int >= _CURVE_ORDER:
            msg = "Derived key is invalid (il >= curve order)"
            raise ValueError(msg)

        child_point = _CURVE_GEN * il_int + parent_point
        if child_point == INFINITY:
            msg = "Derived key is invalid (point at infinity)"
            raise ValueError(msg)
        return ExtendedPublicKey(key=encode_public_key(child_point), chain_code=ir)
