"""
Base wallet RPC interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from xmrwallet.wallet.models import (
    AccountBalance,
    AccountKeyType,
    Payment,
    TransactionOutput,
    TransferRecipient,
)


class WalletRpcError(Exception):
    """Base class for wallet RPC failures."""


class WalletTransportError(WalletRpcError):
    """The wallet RPC service could not be reached."""


class WalletServiceError(WalletRpcError):
    """The wallet RPC service answered with an error payload."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class WalletRpc(ABC):
    """
    Abstract wallet RPC interface.

    Every query either returns its typed result or raises WalletRpcError.
    Retry policy, if any, belongs to the implementation.
    """

    @abstractmethod
    async def query_address(self) -> str:
        """Get the primary address of the open account"""

    @abstractmethod
    async def query_balance(self) -> AccountBalance:
        """Get total and unlocked balance in atomic units"""

    @abstractmethod
    async def query_incoming_transfers(self) -> list[TransactionOutput]:
        """
        Get all outputs received by the account.

        Outputs belonging to the same transaction are adjacent in the result.
        """

    @abstractmethod
    async def query_key(self, key_type: AccountKeyType) -> str:
        """Get a secret key of the account"""

    @abstractmethod
    async def query_payments(
        self, payment_ids: Sequence[str] | None = None, minimum_block_height: int = 0
    ) -> list[Payment]:
        """Get incoming payments, optionally filtered by payment id and height"""

    @abstractmethod
    async def send_transfer_split(
        self,
        recipients: Sequence[TransferRecipient],
        payment_id: str | None,
        mix_count: int,
    ) -> list[str]:
        """Send funds, splitting into several transactions if needed. Returns txids"""

    @abstractmethod
    async def request_save_account(self) -> None:
        """Ask the wallet to persist its account file"""

    async def close(self) -> None:
        """Close connections"""
        pass
