"""Validation errors — deterministic, client-caused rejections.

Each rejection carries a :class:`RejectionReason` so callers can branch on
the reason without parsing messages. None of these are ever retried.
"""

from __future__ import annotations

import enum

from btc_portal.errors.portal_errors import PortalError


class RejectionReason(enum.StrEnum):
    """Named reasons a shielding request is rejected."""

    AMBIGUOUS_CHAIN_CODE = "AmbiguousChainCode"
    RECEIVER_SIGNATURE_MISMATCH = "ReceiverSignatureMismatch"
    INVALID_KEY = "InvalidKey"
    INVALID_RECEIVER = "InvalidReceiver"
    RECEIVER_ALREADY_USED = "ReceiverAlreadyUsed"
    INVALID_SIGNATURE = "InvalidSignature"
    ADDRESS_MISMATCH = "AddressMismatch"
    INVALID_THRESHOLD = "InvalidThreshold"


class ValidationError(PortalError):
    """Base class for request rejections (HTTP 400)."""

    reason: RejectionReason

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400, code=_code(self.reason))


def _code(reason: RejectionReason) -> str:
    # AddressMismatch -> address-mismatch
    out = []
    for i, ch in enumerate(reason.value):
        if ch.isupper() and i > 0:
            out.append("-")
        out.append(ch.lower())
    return "".join(out)


class AmbiguousChainCode(ValidationError):
    reason = RejectionReason.AMBIGUOUS_CHAIN_CODE


class ReceiverSignatureMismatch(ValidationError):
    reason = RejectionReason.RECEIVER_SIGNATURE_MISMATCH


class InvalidKey(ValidationError):
    reason = RejectionReason.INVALID_KEY


class InvalidReceiver(ValidationError):
    reason = RejectionReason.INVALID_RECEIVER


class ReceiverAlreadyUsed(ValidationError):
    reason = RejectionReason.RECEIVER_ALREADY_USED


class InvalidSignature(ValidationError):
    reason = RejectionReason.INVALID_SIGNATURE


class AddressMismatch(ValidationError):
    reason = RejectionReason.ADDRESS_MISMATCH


class InvalidThreshold(ValidationError):
    reason = RejectionReason.INVALID_THRESHOLD
