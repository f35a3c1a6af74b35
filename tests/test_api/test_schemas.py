"""Tests for V1 request/response schemas."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from btc_portal.api.v1.schemas import (
    AddShieldingAddressRequest,
    APIResponse,
    ShieldHistoryRequest,
    ShieldingAddressResponse,
)


class TestAddShieldingAddressRequest:
    def test_wire_names(self):
        body = AddShieldingAddressRequest.model_validate(
            {
                "OTDepositPubKey": "key",
                "Receivers": ["r1"],
                "Signatures": ["s1"],
                "BTCAddress": "bcrt1q...",
            }
        )
        assert body.deposit_pub_key == "key"
        assert body.account_address == ""
        assert body.receivers == ["r1"]
        assert body.signatures == ["s1"]
        assert body.btc_address == "bcrt1q..."

    def test_field_names_accepted(self):
        body = AddShieldingAddressRequest(account_address="A1", btc_address="addr")
        assert body.account_address == "A1"
        assert body.receivers == []

    def test_btc_address_required(self):
        with pytest.raises(ValidationError):
            AddShieldingAddressRequest.model_validate({"IncAddress": "A1"})


class TestShieldHistoryRequest:
    def test_wire_names(self):
        body = ShieldHistoryRequest.model_validate(
            {"OTDepositPubKeys": ["k1", "k2"], "TokenID": "tok"}
        )
        assert body.deposit_pub_keys == ["k1", "k2"]
        assert body.account_address == ""
        assert body.token_id == "tok"

    def test_token_required(self):
        with pytest.raises(ValidationError):
            ShieldHistoryRequest.model_validate({"IncAddress": "A1"})


class TestResponses:
    def test_envelope_defaults(self):
        assert APIResponse().model_dump() == {"Result": None, "Error": None}

    def test_record_omits_missing_owner(self):
        resp = ShieldingAddressResponse(incaddress="A1", btcaddress="addr", timestamp=5)
        assert resp.model_dump(exclude_none=True) == {
            "incaddress": "A1",
            "btcaddress": "addr",
            "timestamp": 5,
        }
