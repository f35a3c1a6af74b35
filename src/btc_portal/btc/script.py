"""Bitcoin script building — bare multisig redeem scripts and P2WSH outputs.

Provides construction of the scripts behind portal deposit addresses:
- m-of-n ``OP_CHECKMULTISIG`` redeem scripts
- P2WSH (Pay-to-Witness-Script-Hash) locking scripts
"""

from __future__ import annotations

import enum
import struct

from btc_portal.utils.crypto import sha256

# ---------------------------------------------------------------------------
# Opcodes
# ---------------------------------------------------------------------------


class OpCode(int, enum.Enum):
    """Commonly used Bitcoin opcodes."""

    OP_0 = 0x00
    OP_PUSHDATA1 = 0x4C
    OP_PUSHDATA2 = 0x4D
    OP_PUSHDATA4 = 0x4E
    OP_1 = 0x51
    OP_16 = 0x60
    OP_CHECKMULTISIG = 0xAE


# Bare multisig is limited to 16 keys by the small-integer opcodes.
MAX_MULTISIG_KEYS = 16


# ---------------------------------------------------------------------------
# Data push helpers
# ---------------------------------------------------------------------------


def push_data(data: bytes) -> bytes:
    """Encode a data push operation using minimal encoding rules.

    Args:
        data: Arbitrary data bytes.

    Returns:
        The opcode(s) + data for a minimal push of *data*.
    """
    length = len(data)
    if length == 0:
        return bytes([OpCode.OP_0])
    if length <= 0x4B:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OpCode.OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OpCode.OP_PUSHDATA2]) + struct.pack("<H", length) + data
    return bytes([OpCode.OP_PUSHDATA4]) + struct.pack("<I", length) + data


def small_int_opcode(n: int) -> int:
    """Return the opcode pushing the small integer *n* (0..16).

    Raises:
        ValueError: If *n* is outside 0..16.
    """
    if n == 0:
        return OpCode.OP_0
    if not 1 <= n <= MAX_MULTISIG_KEYS:
        msg = f"Small integer out of range: {n}"
        raise ValueError(msg)
    return OpCode.OP_1 + n - 1


# ---------------------------------------------------------------------------
# Multisig / P2WSH scripts
# ---------------------------------------------------------------------------


def multisig_redeem_script(threshold: int, pubkeys: list[bytes]) -> bytes:
    """Build an m-of-n bare multisig redeem script.

    ``OP_m <pubkey1> ... <pubkeyN> OP_n OP_CHECKMULTISIG``

    Args:
        threshold: Number of signatures required (m).
        pubkeys: Ordered compressed public keys (n of them).

    Raises:
        ValueError: If m or n cannot be encoded as a small integer.
    """
    script = bytes([small_int_opcode(threshold)])
    for pubkey in pubkeys:
        script += push_data(pubkey)
    script += bytes([small_int_opcode(len(pubkeys)), OpCode.OP_CHECKMULTISIG])
    return script


def witness_script_hash(redeem_script: bytes) -> bytes:
    """SHA-256 of the redeem script — the 32-byte P2WSH witness program."""
    return sha256(redeem_script)


def p2wsh_lock_script(redeem_script: bytes) -> bytes:
    """Build a P2WSH locking script: ``OP_0 <32-byte sha256(script)>``."""
    return bytes([OpCode.OP_0]) + push_data(witness_script_hash(redeem_script))
