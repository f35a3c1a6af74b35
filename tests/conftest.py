"""Shared test fixtures for the btc-portal test suite."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import httpx
import pytest

from btc_portal.btc.keys import base58check_encode, private_key_to_public_key, sign_message
from btc_portal.config.settings import DatabaseEngine, Network
from btc_portal.portal.derivation import MasterKeySet, derive_deposit_address
from btc_portal.portal.receivers import OneTimeReceiver, encode_deposit_key
from btc_portal.portal.requests import OneTimeShieldRequest

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

BTC_TOKEN_ID = "b832e5d3b1f01a4f0623f7fe91d6673461e1f5d37d91fe78c5c2e6183ff39696"

# 2-of-3 regtest portal
MASTER_PRIVKEYS = [(i + 1).to_bytes(32, "big") for i in range(3)]
MASTER_PUBKEYS = [private_key_to_public_key(k) for k in MASTER_PRIVKEYS]
THRESHOLD = 2
NETWORK = Network.REGTEST


def _privkey(n: int) -> bytes:
    return (0x1000 + n).to_bytes(32, "big")


@pytest.fixture
def master_pubkeys() -> list[bytes]:
    return list(MASTER_PUBKEYS)


@pytest.fixture
def key_set() -> MasterKeySet:
    return MasterKeySet(keys=tuple(MASTER_PUBKEYS), threshold=THRESHOLD)


@pytest.fixture
def make_receiver():
    """Factory: ``make_receiver(n)`` → a well-formed receiver with a distinct key."""

    def _make(n: int) -> OneTimeReceiver:
        return OneTimeReceiver(
            public_key=private_key_to_public_key(_privkey(n)),
            tx_random=bytes([n % 256]) * 32,
        )

    return _make


@pytest.fixture
def make_one_time_request(key_set, make_receiver):
    """Factory for a correctly signed one-time request.

    ``make_one_time_request(deposit_n, receiver_ns)`` signs each receiver with
    the deposit key ``deposit_n`` and claims the correctly derived address.
    """

    def _make(deposit_n: int = 1, receiver_ns: tuple[int, ...] = (1,)) -> OneTimeShieldRequest:
        deposit_priv = (0xD000 + deposit_n).to_bytes(32, "big")
        deposit_key = encode_deposit_key(private_key_to_public_key(deposit_priv))
        receivers = [make_receiver(n) for n in receiver_ns]
        signatures = [
            base58check_encode(sign_message(deposit_priv, r.message_hash())) for r in receivers
        ]
        address = derive_deposit_address(key_set, deposit_key, NETWORK).address
        return OneTimeShieldRequest(
            deposit_pub_key=deposit_key,
            receivers=tuple(r.to_string() for r in receivers),
            signatures=tuple(signatures),
            btc_address=address,
        )

    return _make


@pytest.fixture
def app_config(tmp_path):
    """Provide a test AppConfig with a file-backed SQLite database."""
    from btc_portal.config.settings import (
        AppConfig,
        BitcoindConfig,
        DatabaseConfig,
        FeeConfig,
        PortalConfig,
    )

    return AppConfig(
        debug=True,
        db=DatabaseConfig(
            engine=DatabaseEngine.SQLITE,
            dsn=f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}",
        ),
        bitcoind=BitcoindConfig(url="http://node.test:18443", user="rpc", password="rpc"),
        portal=PortalConfig(
            network=NETWORK,
            master_pubkeys=[k.hex() for k in MASTER_PUBKEYS],
            num_sigs_required=THRESHOLD,
            btc_token_id=BTC_TOKEN_ID,
            fetch_timeout=1.0,
        ),
        fee=FeeConfig(url="http://fees.test/api/fee"),
    )


@pytest.fixture
async def datastore(app_config) -> AsyncIterator:
    """An open datastore with all portal tables created."""
    from btc_portal.datastore.client import Datastore

    ds = Datastore(app_config.db)
    await ds.open(create_schema=True)
    yield ds
    await ds.close()


@pytest.fixture
def registry(datastore):
    from btc_portal.portal.registry import DepositRegistry

    return DepositRegistry(datastore)


class RPCStub:
    """Serves Bitcoin Core JSON-RPC and fee oracle requests from canned data.

    ``utxos`` maps address → list of ``listunspent`` dicts; ``txs`` maps txid →
    ``gettransaction`` dict. Every RPC call is recorded in ``calls``.
    """

    def __init__(self) -> None:
        self.utxos: dict[str, list[dict]] = {}
        self.txs: dict[str, dict] = {}
        self.fee_per_vbyte = 10.0
        self.fail_import = False
        self.node_down = False
        self.calls: list[tuple[str, list]] = []

    def handler(self, request):
        if request.url.host == "fees.test":
            return httpx.Response(200, json={"Result": self.fee_per_vbyte})
        if self.node_down:
            raise httpx.ConnectError("connection refused", request=request)

        body = json.loads(request.content)
        method, params = body["method"], body["params"]
        self.calls.append((method, params))

        if method == "listunspent":
            return self._ok(body, [u for a in params[2] for u in self.utxos.get(a, [])])
        if method == "gettransaction":
            if params[0] not in self.txs:
                return self._error(body, -5, "Invalid or non-wallet transaction id")
            return self._ok(body, self.txs[params[0]])
        if method == "importaddress":
            if self.fail_import:
                return self._error(body, -4, "Wallet is currently rescanning")
            return self._ok(body, None)
        if method == "getnetworkinfo":
            return self._ok(body, {"version": 260000})
        return self._error(body, -32601, "Method not found")

    @staticmethod
    def _ok(body, result):
        return httpx.Response(200, json={"result": result, "error": None, "id": body["id"]})

    @staticmethod
    def _error(body, code, message):
        return httpx.Response(
            500, json={"result": None, "error": {"code": code, "message": message}, "id": body["id"]}
        )


@pytest.fixture
def rpc_stub() -> RPCStub:
    return RPCStub()


async def _install_transport(engine, rpc_stub: RPCStub) -> None:
    transport = httpx.MockTransport(rpc_stub.handler)
    await engine.bitcoind._client.aclose()
    engine.bitcoind._client = httpx.AsyncClient(
        transport=transport, base_url=engine.config.bitcoind.url
    )
    await engine.fees._client.aclose()
    engine.fees._client = httpx.AsyncClient(transport=transport)


@pytest.fixture
def install_stub(rpc_stub):
    """Async callable pointing an initialized engine's node and fee clients at the stub."""

    async def _install(engine) -> None:
        await _install_transport(engine, rpc_stub)

    return _install


@pytest.fixture
async def engine(app_config, rpc_stub) -> AsyncIterator:
    """An initialized PortalEngine talking to the RPC stub."""
    from btc_portal.engine.client import PortalEngine

    eng = PortalEngine(app_config)
    await eng.initialize()
    await _install_transport(eng, rpc_stub)
    yield eng
    await eng.close()
