"""
Monero account service.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from types import TracebackType

from loguru import logger

from xmrwallet.backends.base import WalletRpc, WalletRpcError
from xmrwallet.wallet.events import AccountEvent, EventCallback, EventRegistry
from xmrwallet.wallet.models import (
    DEFAULT_MIX_COUNT,
    AccountBalance,
    AccountKeyType,
    AccountSnapshot,
    Payment,
    Transaction,
    TransactionOutput,
    TransferRecipient,
)
from xmrwallet.wallet.sync import DEFAULT_ACCOUNT_REFRESH_PERIOD, AccountSynchronizer, SyncState


class AccountService:
    """
    Monero account service.
    Keeps a local view of a wallet RPC account and notifies subscribers of changes.

    Usage:
        account = AccountService(MoneroWalletRpc(...), refresh_period=10.0)
        account.subscribe(TransactionReceived, on_transaction)
        await account.initialize()
        ...
        await account.close()
    """

    def __init__(
        self,
        rpc: WalletRpc,
        refresh_period: float = DEFAULT_ACCOUNT_REFRESH_PERIOD,
    ):
        self.rpc = rpc
        self.events = EventRegistry()
        self.synchronizer = AccountSynchronizer(rpc, self.events, refresh_period)
        self.last_sent_transaction_ids: list[str] = []
        self._closed = False

    async def __aenter__(self) -> AccountService:
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def snapshot(self) -> AccountSnapshot:
        return self.synchronizer.snapshot

    @property
    def address(self) -> str | None:
        return self.snapshot.address

    @property
    def balance(self) -> AccountBalance | None:
        return self.snapshot.balance

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return self.snapshot.transactions

    @property
    def outputs(self) -> tuple[TransactionOutput, ...]:
        return self.snapshot.outputs

    @property
    def state(self) -> SyncState:
        return self.synchronizer.readiness.state

    @property
    def is_initialized(self) -> bool:
        return self.synchronizer.readiness.is_ready

    def subscribe(self, event_type: type[AccountEvent], callback: EventCallback) -> int:
        """Register a callback for an event type. Returns the subscription key."""
        return self.events.subscribe(event_type, callback)

    def unsubscribe(self, key: int) -> None:
        self.events.unsubscribe(key)

    async def initialize(self) -> None:
        """Fetch the account address and start periodic refreshing"""
        await self.synchronizer.initialize()

    async def wait_until_initialized(self, timeout: float | None = None) -> bool:
        """Wait for the account to become ready. Returns False on timeout."""
        try:
            await asyncio.wait_for(self.synchronizer.initialized.wait(), timeout)
        except TimeoutError:
            return False
        return True

    async def refresh(self) -> bool:
        """Refresh balance and transactions now, serialized with the periodic refresh"""
        return await self.synchronizer.refresh()

    async def query_key(self, key_type: AccountKeyType) -> str | None:
        """Get a secret key of the account, or None if the query failed"""
        try:
            return await self.rpc.query_key(key_type)
        except WalletRpcError as e:
            logger.warning(f"Key query ({key_type.value}) failed: {e}")
            return None

    async def query_payments(
        self, payment_ids: Sequence[str] | None = None, minimum_block_height: int = 0
    ) -> list[Payment] | None:
        """Get incoming payments, or None if the query failed"""
        try:
            return await self.rpc.query_payments(payment_ids, minimum_block_height)
        except WalletRpcError as e:
            logger.warning(f"Payments query failed: {e}")
            return None

    async def send_transaction(
        self,
        recipients: TransferRecipient | Sequence[TransferRecipient],
        payment_id: str | None = None,
        mix_count: int = DEFAULT_MIX_COUNT,
    ) -> bool:
        """
        Send funds to one or more recipients.

        On success the account is refreshed before returning, so balance and
        transactions reflect the transfer.

        Returns:
            True if the wallet accepted the transfer
        """
        if isinstance(recipients, TransferRecipient):
            recipients = [recipients]
        if not recipients:
            return False

        total = sum(recipient.amount for recipient in recipients)
        logger.info(
            f"Sending {total} atomic units to {len(recipients)} recipient(s) "
            f"(mix count {mix_count})"
        )

        try:
            transaction_ids = await self.rpc.send_transfer_split(recipients, payment_id, mix_count)
        except WalletRpcError as e:
            logger.error(f"Transfer failed: {e}")
            return False

        self.last_sent_transaction_ids = list(transaction_ids)
        logger.info(f"Transfer sent: {', '.join(transaction_ids) or '(no txids returned)'}")

        await self.refresh()
        return True

    async def _save_account(self) -> None:
        try:
            await self.rpc.request_save_account()
            logger.info("Account saved")
        except WalletRpcError as e:
            logger.warning(f"Saving account failed: {e}")

    async def close(self, save: bool = True) -> None:
        """
        Stop refreshing and close the RPC connection. Safe to call more than once.

        If the account is ready and save is set, the wallet is asked to store
        the account file first.
        """
        if self._closed:
            return
        self._closed = True

        async def before_release() -> None:
            if save and self.is_initialized:
                await self._save_account()

        try:
            await self.synchronizer.loop.stop(before_release=before_release)
        finally:
            await self.rpc.close()
