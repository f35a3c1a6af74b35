"""Bitcoin Core JSON-RPC client."""

from btc_portal.chain.bitcoind.client import BitcoindClient
from btc_portal.chain.bitcoind.models import UnspentOutput, WalletTransaction

__all__ = ["BitcoindClient", "UnspentOutput", "WalletTransaction"]
