"""Request validation — authorization checks and address re-derivation.

Rules run in order and stop at the first failure:

1. exactly one chain code kind (enforced by :func:`parse_shield_request`)
2. one-time mode: receivers present and paired 1:1 with signatures
3. one-time mode: the deposit key is a valid curve point
4. one-time mode: each receiver is well formed, unused, and signed
5. the claimed BTC address equals the independently derived one

Rule 5 is the trust boundary: a client-supplied address is never accepted
without re-deriving it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from btc_portal.errors.validation_errors import (
    AddressMismatch,
    InvalidKey,
    InvalidReceiver,
    InvalidSignature,
    ReceiverAlreadyUsed,
    ReceiverSignatureMismatch,
)
from btc_portal.portal.derivation import derive_deposit_address
from btc_portal.portal.receivers import (
    OneTimeReceiver,
    decode_deposit_key,
    verify_receiver_signature,
)
from btc_portal.portal.requests import OneTimeShieldRequest

if TYPE_CHECKING:
    from btc_portal.config.settings import Network
    from btc_portal.portal.derivation import MasterKeySet
    from btc_portal.portal.requests import ShieldRequest

logger = logging.getLogger(__name__)


class ReceiverIndex(Protocol):
    """Lookup of which chain code already consumed a receiver key."""

    async def receiver_owner(self, receiver_key: str) -> str | None: ...


class RequestValidator:
    """Validate shielding requests against the configured master keys."""

    def __init__(self, key_set: MasterKeySet, network: Network, receivers: ReceiverIndex) -> None:
        self._key_set = key_set
        self._network = network
        self._receivers = receivers

    async def validate(self, request: ShieldRequest) -> ShieldRequest:
        """Run every rule against *request*.

        A receiver key already bound to a different deposit key is rejected.
        One bound to this request's own deposit key passes, so that replaying
        an identical one-time request reaches the registry and comes back
        ``ALREADY_REGISTERED`` instead of failing validation.

        Returns:
            The same request, now known to be valid.

        Raises:
            ValidationError: The first rule that failed, as its named subclass.
        """
        if isinstance(request, OneTimeShieldRequest):
            await self._validate_one_time(request)

        expected = derive_deposit_address(self._key_set, request.chain_code, self._network)
        if expected.address != request.btc_address:
            raise AddressMismatch(f"invalid BTC address for chain code {request.chain_code}")
        return request

    async def _validate_one_time(self, request: OneTimeShieldRequest) -> None:
        if len(request.receivers) == 0:
            raise ReceiverSignatureMismatch("receivers must be supplied")
        if len(request.receivers) != len(request.signatures):
            raise ReceiverSignatureMismatch(
                f"expect {len(request.receivers)} signatures, got {len(request.signatures)}"
            )

        try:
            deposit_key = decode_deposit_key(request.deposit_pub_key)
        except ValueError as exc:
            raise InvalidKey(f"deposit public key is invalid: {exc}") from exc

        seen: set[str] = set()
        for receiver_str, signature in zip(request.receivers, request.signatures, strict=True):
            try:
                receiver = OneTimeReceiver.from_string(receiver_str)
            except ValueError as exc:
                raise InvalidReceiver(f"invalid receiver {receiver_str}: {exc}") from exc

            key_id = receiver.key_id
            if key_id in seen:
                raise ReceiverAlreadyUsed(f"receiver key {key_id} repeated in request")
            seen.add(key_id)
            owner = await self._receivers.receiver_owner(key_id)
            if owner is not None and owner != request.chain_code:
                raise ReceiverAlreadyUsed(f"receiver key {key_id} already used")

            if not verify_receiver_signature(deposit_key, receiver, signature):
                raise InvalidSignature(f"invalid signature for receiver {receiver_str}")

        logger.debug("verified %d receivers for deposit key %s", len(seen), request.deposit_pub_key)
