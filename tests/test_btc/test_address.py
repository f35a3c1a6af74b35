"""Tests for bech32 P2WSH addresses — btc/address.py."""

from __future__ import annotations

import pytest

from btc_portal.btc.address import decode_p2wsh_address, p2wsh_address, validate_address
from btc_portal.utils.crypto import sha256

# BIP173: P2WSH of <generator pubkey> OP_CHECKSIG
_SCRIPT = bytes.fromhex(
    "210279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798ac"
)
_MAINNET = "bc1qrp33g0q5c5txsp9arysrx4k6zdkfs4nce4xj0gdcccefvpysxf3qccfmv3"
_TESTNET = "tb1qrp33g0q5c5txsp9arysrx4k6zdkfs4nce4xj0gdcccefvpysxf3q0sl5k7"


class TestP2WSHAddress:
    def test_bip173_mainnet(self) -> None:
        assert p2wsh_address(sha256(_SCRIPT), hrp="bc") == _MAINNET

    def test_bip173_testnet(self) -> None:
        assert p2wsh_address(sha256(_SCRIPT), hrp="tb") == _TESTNET

    def test_regtest_prefix(self) -> None:
        assert p2wsh_address(sha256(_SCRIPT), hrp="bcrt").startswith("bcrt1q")

    def test_wrong_program_length(self) -> None:
        with pytest.raises(ValueError, match="32 bytes"):
            p2wsh_address(b"\x00" * 20, hrp="bc")


class TestDecode:
    def test_decode(self) -> None:
        assert decode_p2wsh_address(_MAINNET, hrp="bc") == sha256(_SCRIPT)

    def test_wrong_network(self) -> None:
        with pytest.raises(ValueError, match="Invalid bech32"):
            decode_p2wsh_address(_MAINNET, hrp="tb")

    def test_p2wpkh_is_not_p2wsh(self) -> None:
        p2wpkh = "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"
        with pytest.raises(ValueError, match="not a witness-script-hash"):
            decode_p2wsh_address(p2wpkh, hrp="bc")

    def test_validate(self) -> None:
        assert validate_address(_TESTNET, hrp="tb")
        assert not validate_address("not-an-address", hrp="tb")
