"""Address encoding — bech32 witness-script-hash addresses.

BTC address operations:
- P2WSH address generation from a witness program
- Address decoding and validation per network
"""

from __future__ import annotations

import bech32

# Witness version used by P2WSH
_WITNESS_V0 = 0
_P2WSH_PROGRAM_LEN = 32


def p2wsh_address(witness_program: bytes, *, hrp: str) -> str:
    """Encode a 32-byte witness program as a bech32 P2WSH address.

    Args:
        witness_program: SHA-256 of the redeem script.
        hrp: Human-readable part of the target network (``bc``, ``tb``, ``bcrt``).

    Raises:
        ValueError: If the program has the wrong length or cannot be encoded.
    """
    if len(witness_program) != _P2WSH_PROGRAM_LEN:
        msg = f"witness program must be 32 bytes, got {len(witness_program)}"
        raise ValueError(msg)
    address = bech32.encode(hrp, _WITNESS_V0, witness_program)
    if address is None:
        msg = "Could not encode witness program as bech32 address"
        raise ValueError(msg)
    return address


def decode_p2wsh_address(address: str, *, hrp: str) -> bytes:
    """Extract the 32-byte witness program from a P2WSH address.

    Raises:
        ValueError: If the address is invalid for *hrp* or is not P2WSH.
    """
    version, program = bech32.decode(hrp, address)
    if version is None or program is None:
        msg = f"Invalid bech32 address for network '{hrp}': {address}"
        raise ValueError(msg)
    if version != _WITNESS_V0 or len(program) != _P2WSH_PROGRAM_LEN:
        msg = f"Address is not a witness-script-hash address: {address}"
        raise ValueError(msg)
    return bytes(program)


def validate_address(address: str, *, hrp: str) -> bool:
    """Check if *address* is a valid P2WSH address on the network of *hrp*."""
    try:
        decode_p2wsh_address(address, hrp=hrp)
    except ValueError:
        return False
    return True
