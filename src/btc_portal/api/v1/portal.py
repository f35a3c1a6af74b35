"""V1 shielding portal endpoints.

Registration, registration listing, deposit history and fee estimation.
Successful responses use the ``{"Result", "Error"}`` envelope; a request for
an already registered pair is a success carrying an ``Error`` message.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Any

from fastapi import APIRouter, Depends, Query

from btc_portal.api.dependencies import get_engine
from btc_portal.api.v1.schemas import (
    AddShieldingAddressRequest,
    APIResponse,
    ShieldHistoryRequest,
    ShieldingAddressResponse,
)
from btc_portal.engine.client import PortalEngine  # noqa: TC001
from btc_portal.errors.definitions import ErrMissingBTCAddress, ErrMissingChainCode
from btc_portal.portal.registry import RegistrationOutcome
from btc_portal.portal.requests import ChainCodeMode, parse_shield_request

if TYPE_CHECKING:
    from btc_portal.engine.models.deposit import DepositRecord
    from btc_portal.portal.history import ShieldHistory

router = APIRouter(tags=["portal"])

ALREADY_REGISTERED_MESSAGE = "record has already been inserted"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _envelope(result: Any, *, error: str | None = None, dropped: list[dict] | None = None) -> dict:
    body = APIResponse(Result=result, Error=error).model_dump(mode="json")
    if dropped:
        body["Dropped"] = dropped
    return body


def _record_resp(r: DepositRecord) -> dict:
    account = r.chain_code if r.mode == ChainCodeMode.ACCOUNT else None
    deposit_key = r.chain_code if r.mode == ChainCodeMode.DEPOSIT_KEY else None
    return ShieldingAddressResponse(
        incaddress=account,
        depositkey=deposit_key,
        receivers=r.receivers or None,
        signatures=r.signatures or None,
        btcaddress=r.address,
        timestamp=r.timestamp,
    ).model_dump(mode="json", exclude_none=True)


def _history_resp(h: ShieldHistory) -> list[dict]:
    return [e.to_dict() for e in h.entries]


def _dropped_resp(h: ShieldHistory) -> list[dict]:
    return [{"txid": d.txid, "reason": d.reason} for d in h.dropped]


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@router.get("/checkportalshieldingaddressexisted")
async def check_shielding_address_existed(
    engine: Annotated[PortalEngine, Depends(get_engine)],
    incaddress: str = "",
    depositpubkey: str = "",
    btcaddress: str = "",
) -> dict:
    """Whether a chain code is already bound to a BTC address."""
    if not incaddress and not depositpubkey:
        raise ErrMissingChainCode
    if not btcaddress:
        raise ErrMissingBTCAddress
    chain_code = incaddress or depositpubkey
    exists = await engine.service.check_exists(chain_code, btcaddress)
    return _envelope(exists)


@router.post("/addportalshieldingaddress")
async def add_shielding_address(
    body: AddShieldingAddressRequest,
    engine: Annotated[PortalEngine, Depends(get_engine)],
) -> dict:
    """Validate and register a shielding address."""
    request = parse_shield_request(
        btc_address=body.btc_address,
        account_address=body.account_address,
        deposit_pub_key=body.deposit_pub_key,
        receivers=body.receivers,
        signatures=body.signatures,
    )
    outcome = await engine.service.register_deposit(request)
    if outcome is RegistrationOutcome.ALREADY_REGISTERED:
        return _envelope(None, error=ALREADY_REGISTERED_MESSAGE)
    return _envelope(True)


@router.get("/getlistportalshieldingaddress")
async def list_shielding_addresses(
    engine: Annotated[PortalEngine, Depends(get_engine)],
    from_: Annotated[int, Query(alias="from")] = 0,
    to: int = 0,
) -> dict:
    """Registrations whose timestamp lies in ``[from, to)`` (unix seconds)."""
    records = await engine.service.list_registrations(from_, to)
    return _envelope([_record_resp(r) for r in records])


# ---------------------------------------------------------------------------
# Fees
# ---------------------------------------------------------------------------


@router.get("/getestimatedunshieldingfee")
async def get_estimated_unshielding_fee(
    engine: Annotated[PortalEngine, Depends(get_engine)],
) -> dict:
    """Estimated unshielding fee in satoshis."""
    fee = await engine.service.estimate_unshielding_fee()
    return _envelope(fee)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@router.post("/getshieldhistory")
async def get_shield_history(
    body: ShieldHistoryRequest,
    engine: Annotated[PortalEngine, Depends(get_engine)],
) -> dict:
    """Deposit history for an account address, or per one-time deposit key."""
    if not body.account_address and not body.deposit_pub_keys:
        raise ErrMissingChainCode
    engine.service.check_token(body.token_id)

    if body.account_address:
        history = await engine.service.get_history(body.account_address, ChainCodeMode.ACCOUNT)
        return _envelope(_history_resp(history), dropped=_dropped_resp(history))

    histories = await engine.service.get_history_for_deposit_keys(body.deposit_pub_keys)
    dropped = [d for h in histories.values() for d in _dropped_resp(h)]
    return _envelope({k: _history_resp(h) for k, h in histories.items()}, dropped=dropped)


@router.get("/getshieldhistorybyexternaltxid")
async def get_shield_history_by_external_txid(
    engine: Annotated[PortalEngine, Depends(get_engine)],
    externaltxid: str = "",
    tokenid: str = "",
) -> dict:
    """Status and confirmations of a single external transaction."""
    engine.service.check_token(tokenid)
    entry = await engine.service.get_history_by_external_txid(externaltxid)
    return _envelope(entry.to_dict())
