"""
Wallet RPC backend implementations.

Available backends:
- MoneroWalletRpc: monero-wallet-rpc over JSON-RPC 2.0 (httpx)

The account service only depends on the WalletRpc interface; any object
implementing it (e.g. a test double) can be used instead.
"""

from xmrwallet.backends.base import (
    WalletRpc,
    WalletRpcError,
    WalletServiceError,
    WalletTransportError,
)
from xmrwallet.backends.wallet_rpc import MoneroWalletRpc

__all__ = [
    "MoneroWalletRpc",
    "WalletRpc",
    "WalletRpcError",
    "WalletServiceError",
    "WalletTransportError",
]
