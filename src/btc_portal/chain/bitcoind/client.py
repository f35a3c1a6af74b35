"""Bitcoin Core JSON-RPC client — watch-only address tracking and UTXO lookup.

Async HTTP client for the subset of the Bitcoin Core wallet RPC the portal uses:
- ``importaddress``   start watching a deposit address (no rescan)
- ``listunspent``     unspent outputs of watched addresses
- ``gettransaction``  time / confirmations of a wallet transaction
- ``getnetworkinfo``  liveness check
"""

from __future__ import annotations

import itertools
import re
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import httpx

from btc_portal.chain.bitcoind.models import UnspentOutput, WalletTransaction
from btc_portal.errors.chain_errors import BitcoindError

if TYPE_CHECKING:
    from btc_portal.config.settings import BitcoindConfig

_TXID_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def is_valid_txid(txid: str) -> bool:
    """Check that *txid* is a 32-byte hex transaction hash."""
    return bool(_TXID_RE.match(txid))


class BitcoindClient:
    """Async JSON-RPC client for a Bitcoin Core node.

    Usage::

        node = BitcoindClient(config)
        await node.connect()
        try:
            utxos = await node.list_unspent(0, 9999999, ["bc1q..."])
        finally:
            await node.close()
    """

    def __init__(self, config: BitcoindConfig) -> None:
        """Initialize the client.

        Args:
            config: Node URL, RPC credentials and request timeout.
        """
        self._config = config
        self._client: httpx.AsyncClient | None = None
        self._ids = itertools.count(1)

    async def connect(self) -> None:  # noqa: ASYNC910
        """Create the underlying HTTP client."""
        auth = None
        if self._config.user or self._config.password:
            auth = httpx.BasicAuth(self._config.user, self._config.password)
        self._client = httpx.AsyncClient(
            base_url=self._config.url.rstrip("/"),
            auth=auth,
            headers={"Content-Type": "application/json"},
            timeout=self._config.timeout,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def import_address(self, address: str, *, label: str = "", rescan: bool = False) -> None:
        """Add *address* to the node's watch-only set.

        Raises:
            BitcoindError: On transport or RPC errors.
        """
        await self.call("importaddress", [address, label, rescan])

    async def list_unspent(
        self, min_conf: int, max_conf: int, addresses: list[str]
    ) -> list[UnspentOutput]:
        """Unspent outputs paying to *addresses* within the confirmation window.

        Raises:
            BitcoindError: On transport or RPC errors.
        """
        items = await self.call("listunspent", [min_conf, max_conf, addresses])
        if not isinstance(items, list):
            raise BitcoindError(f"bitcoind listunspent returned {type(items).__name__}, not a list")
        try:
            return [UnspentOutput.from_dict(item) for item in items]
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            raise BitcoindError(f"malformed listunspent entry: {exc!r}") from exc

    async def get_transaction(self, txid: str) -> WalletTransaction:
        """Look up a wallet (including watch-only) transaction by id.

        Raises:
            BitcoindError: If *txid* is malformed, or on transport or RPC errors.
        """
        if not is_valid_txid(txid):
            raise BitcoindError(f"invalid transaction id {txid!r}", status_code=400)
        data = await self.call("gettransaction", [txid, True])
        if not isinstance(data, dict):
            raise BitcoindError(f"bitcoind gettransaction {txid} returned {type(data).__name__}")
        try:
            return WalletTransaction.from_dict(data)
        except (TypeError, ValueError) as exc:
            raise BitcoindError(f"malformed gettransaction reply for {txid}: {exc!r}") from exc

    async def ping(self) -> bool:
        """Check the node answers RPC calls."""
        try:
            await self.call("getnetworkinfo")
        except BitcoindError:
            return False
        return True

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        """Perform a single JSON-RPC call and return its ``result``.

        Amounts in the response are parsed as :class:`~decimal.Decimal`.

        Raises:
            BitcoindError: On transport errors, non-JSON replies or RPC errors.
        """
        client = self._ensure_connected()
        payload = {
            "jsonrpc": "1.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            response = await client.post("/", json=payload)
        except httpx.HTTPError as exc:
            raise BitcoindError(f"bitcoind {method} failed: {exc}") from exc

        # Bitcoin Core reports RPC errors with HTTP 500 and a JSON body.
        try:
            body = response.json(parse_float=Decimal)
        except ValueError:
            raise BitcoindError(
                f"bitcoind {method} returned HTTP {response.status_code}: {response.text[:200]}"
            ) from None
        if not isinstance(body, dict):
            raise BitcoindError(f"bitcoind {method} returned a non-object reply")

        error = body.get("error")
        if error and not isinstance(error, dict):
            raise BitcoindError(f"bitcoind {method} error: {error}")
        if error:
            raise BitcoindError(
                f"bitcoind {method} error {error.get('code')}: {error.get('message')}",
                rpc_code=error.get("code"),
            )
        if response.status_code != 200:
            raise BitcoindError(f"bitcoind {method} returned HTTP {response.status_code}")
        return body.get("result")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> httpx.AsyncClient:
        """Return the HTTP client, raising if not connected."""
        if self._client is None:
            msg = "bitcoind client not connected. Call connect() first."
            raise BitcoindError(msg, status_code=500)
        return self._client
