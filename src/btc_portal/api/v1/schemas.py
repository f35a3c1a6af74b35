"""V1 API request/response Pydantic schemas.

Field aliases keep the wire names existing portal clients send
(``IncAddress``, ``OTDepositPubKey``, ``BTCAddress``...). Endpoint code maps
between these and the portal's own request and record types.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Generic
# ---------------------------------------------------------------------------


class APIResponse(BaseModel):
    """Success envelope: ``{"Result": ..., "Error": null}``."""

    Result: Any = None
    Error: str | None = None


class ErrorResponse(BaseModel):
    """Standard error body ``{"code": "...", "message": "..."}``."""

    code: str
    message: str


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class AddShieldingAddressRequest(BaseModel):
    """POST /api/v1/addportalshieldingaddress."""

    model_config = ConfigDict(populate_by_name=True)

    account_address: str = Field("", alias="IncAddress")
    deposit_pub_key: str = Field("", alias="OTDepositPubKey")
    receivers: list[str] = Field(default_factory=list, alias="Receivers")
    signatures: list[str] = Field(default_factory=list, alias="Signatures")
    btc_address: str = Field(..., alias="BTCAddress")


class ShieldingAddressResponse(BaseModel):
    """Serialised deposit record for list responses."""

    incaddress: str | None = None
    depositkey: str | None = None
    receivers: list[str] | None = None
    signatures: list[str] | None = None
    btcaddress: str
    timestamp: int


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


class ShieldHistoryRequest(BaseModel):
    """POST /api/v1/getshieldhistory."""

    model_config = ConfigDict(populate_by_name=True)

    account_address: str = Field("", alias="IncAddress")
    deposit_pub_keys: list[str] = Field(default_factory=list, alias="OTDepositPubKeys")
    token_id: str = Field(..., alias="TokenID")
