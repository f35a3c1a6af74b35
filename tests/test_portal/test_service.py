"""Tests for the portal service operations — portal/service.py."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from btc_portal.config.settings import Network
from btc_portal.engine.models.deposit import new_deposit_record
from btc_portal.errors.portal_errors import PortalError
from btc_portal.errors.validation_errors import AddressMismatch, InvalidSignature
from btc_portal.portal.derivation import derive_deposit_address
from btc_portal.portal.history import ShieldStatus
from btc_portal.portal.registry import RegistrationOutcome
from btc_portal.portal.requests import ChainCodeMode, LegacyShieldRequest


def _legacy(engine, account: str = "A1") -> LegacyShieldRequest:
    portal = engine.config.portal
    address = derive_deposit_address(portal.master_key_set(), account, Network.REGTEST).address
    return LegacyShieldRequest(account_address=account, btc_address=address)


def _txid(n: int) -> str:
    return f"{n:064x}"


class TestRegisterDeposit:
    async def test_register_reregister_mismatch(self, engine) -> None:
        service = engine.service
        req = _legacy(engine)

        assert await service.register_deposit(req) is RegistrationOutcome.OK
        assert await service.register_deposit(req) is RegistrationOutcome.ALREADY_REGISTERED
        with pytest.raises(AddressMismatch):
            await service.register_deposit(LegacyShieldRequest(account_address="A1", btc_address="wrong"))

    async def test_imports_address_once(self, engine, rpc_stub) -> None:
        req = _legacy(engine)
        await engine.service.register_deposit(req)
        await engine.service.register_deposit(req)
        imports = [p for m, p in rpc_stub.calls if m == "importaddress"]
        assert imports == [[req.btc_address, "", False]]

    async def test_import_failure_does_not_block(self, engine, rpc_stub) -> None:
        rpc_stub.fail_import = True
        req = _legacy(engine)
        assert await engine.service.register_deposit(req) is RegistrationOutcome.OK
        assert await engine.service.check_exists("A1", req.btc_address)

    async def test_rejected_request_is_not_stored(self, engine, make_one_time_request) -> None:
        req = make_one_time_request(1, (1,))
        other = make_one_time_request(2, (1,))
        bad = type(req)(req.deposit_pub_key, req.receivers, other.signatures, req.btc_address)
        with pytest.raises(InvalidSignature):
            await engine.service.register_deposit(bad)
        assert not await engine.service.check_exists(req.deposit_pub_key, req.btc_address)
        reg = engine.metrics.registry
        assert reg.get_sample_value("btc_portal_rejections_total", {"reason": "InvalidSignature"}) == 1.0

    async def test_one_time_registration(self, engine, make_one_time_request) -> None:
        req = make_one_time_request(3, (1, 2))
        assert await engine.service.register_deposit(req) is RegistrationOutcome.OK
        assert await engine.service.register_deposit(req) is RegistrationOutcome.ALREADY_REGISTERED

    async def test_concurrent_registrations(self, engine) -> None:
        req = _legacy(engine)
        outcomes = await asyncio.gather(*(engine.service.register_deposit(req) for _ in range(6)))
        assert outcomes.count(RegistrationOutcome.OK) == 1
        assert outcomes.count(RegistrationOutcome.ALREADY_REGISTERED) == 5
        reg = engine.metrics.registry
        assert reg.get_sample_value("btc_portal_registrations_total", {"outcome": "ok"}) == 1.0


class TestListRegistrations:
    async def test_list(self, engine) -> None:
        now = datetime(2024, 1, 1, tzinfo=UTC)
        await engine.registry.register(new_deposit_record(_legacy(engine), now=now))
        ts = int(now.timestamp())
        records = await engine.service.list_registrations(ts, ts + 1)
        assert [r.chain_code for r in records] == ["A1"]

    @pytest.mark.parametrize(("from_time", "to_time"), [(0, 0), (10, 5)])
    async def test_invalid_interval(self, engine, from_time, to_time) -> None:
        with pytest.raises(PortalError) as exc_info:
            await engine.service.list_registrations(from_time, to_time)
        assert exc_info.value.code == "invalid-interval"


class TestHistory:
    async def test_history_for_deposit_keys(self, engine, rpc_stub, make_one_time_request) -> None:
        reqs = [make_one_time_request(n, (n,)) for n in (1, 2)]
        for req in reqs:
            await engine.service.register_deposit(req)
        rpc_stub.utxos[reqs[0].btc_address] = [
            {"txid": _txid(1), "vout": 0, "address": reqs[0].btc_address, "amount": 0.25, "confirmations": 2}
        ]
        rpc_stub.txs[_txid(1)] = {"txid": _txid(1), "time": 1700000000, "confirmations": 2}

        result = await engine.service.get_history_for_deposit_keys([r.deposit_pub_key for r in reqs])

        [entry] = result[reqs[0].deposit_pub_key].entries
        assert entry.amount == 250_000_000
        assert entry.status is ShieldStatus.PROCESSING
        assert entry.time == 1_700_000_000_000
        assert result[reqs[1].deposit_pub_key].entries == []

    async def test_malformed_transaction_reply_drops_one_output(self, engine, rpc_stub) -> None:
        request = _legacy(engine)
        await engine.service.register_deposit(request)
        rpc_stub.utxos[request.btc_address] = [
            {"txid": _txid(n), "vout": 0, "address": request.btc_address, "amount": 1, "confirmations": 1}
            for n in (1, 2)
        ]
        rpc_stub.txs[_txid(1)] = {"txid": _txid(1), "time": 1700000000, "confirmations": 1}
        rpc_stub.txs[_txid(2)] = None

        history = await engine.service.get_history("A1", ChainCodeMode.ACCOUNT)

        assert [e.external_tx_id for e in history.entries] == [_txid(1)]
        [dropped] = history.dropped
        assert dropped.txid == _txid(2)
        assert "NoneType" in dropped.reason

    async def test_unknown_deposit_key_fails(self, engine) -> None:
        with pytest.raises(PortalError) as exc_info:
            await engine.service.get_history_for_deposit_keys(["unknown"])
        assert exc_info.value.code == "no-such-deposit"

    async def test_legacy_history_ignores_deposit_keys(self, engine, make_one_time_request) -> None:
        req = make_one_time_request(1, (1,))
        await engine.service.register_deposit(req)
        with pytest.raises(PortalError):
            await engine.service.get_history(req.deposit_pub_key, ChainCodeMode.ACCOUNT)

    async def test_by_external_txid(self, engine, rpc_stub) -> None:
        rpc_stub.txs[_txid(7)] = {"txid": _txid(7), "time": 1, "confirmations": 0}
        entry = await engine.service.get_history_by_external_txid(_txid(7))
        assert entry.status is ShieldStatus.PENDING

    async def test_by_external_txid_invalid(self, engine) -> None:
        with pytest.raises(PortalError) as exc_info:
            await engine.service.get_history_by_external_txid("xyz")
        assert exc_info.value.code == "invalid-external-txid"

    def test_check_token(self, app_config) -> None:
        from btc_portal.engine.client import PortalEngine
        from btc_portal.portal.service import PortalService

        service = PortalService(PortalEngine(app_config))
        service.check_token(app_config.portal.btc_token_id)
        with pytest.raises(PortalError) as exc_info:
            service.check_token("other")
        assert exc_info.value.code == "not-portal-token"


class TestFees:
    async def test_estimate(self, engine, rpc_stub) -> None:
        rpc_stub.fee_per_vbyte = 2.0
        fee = await engine.service.estimate_unshielding_fee()
        assert fee == pytest.approx(2.0 * (2 * 192.25 + 2 * 43 + 10.75) * 1.15)
