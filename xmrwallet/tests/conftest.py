"""
Pytest configuration and fixtures for xmrwallet tests.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import pytest

from xmrwallet.backends.base import WalletRpc, WalletServiceError, WalletTransportError
from xmrwallet.wallet.models import (
    AccountBalance,
    AccountKeyType,
    Payment,
    TransactionOutput,
    TransferRecipient,
)

TEST_ADDRESS = "44AFFq5kSiGBoZ4NMDwYtN18obc8AemS33DBLWs3H7otXft3XjrpDtQGv7SqSsaBYBb98uNbr2VBBEt7f2wfn3RVGQBEP3A"


class FakeWalletRpc(WalletRpc):
    """
    Scriptable in-memory wallet RPC.

    Set a *_error attribute to make the matching query raise it.
    Every call is recorded in `calls` as the port method name.
    """

    def __init__(self) -> None:
        self.address = TEST_ADDRESS
        self.balance = AccountBalance(total=0, unlocked=0)
        self.outputs: list[TransactionOutput] = []
        self.keys = {AccountKeyType.VIEW_KEY: "ab" * 32, AccountKeyType.MNEMONIC: "abbey " * 25}
        self.payments: list[Payment] = []
        self.sent_transaction_ids = ["c" * 64]
        self.address_delay = 0.0

        self.address_error: Exception | None = None
        self.balance_error: Exception | None = None
        self.outputs_error: Exception | None = None
        self.key_error: Exception | None = None
        self.payments_error: Exception | None = None
        self.send_error: Exception | None = None
        self.save_error: Exception | None = None

        self.calls: list[str] = []
        self.sent: list[tuple[list[TransferRecipient], str | None, int]] = []
        self.closed = False

    def _check(self, error: Exception | None) -> None:
        if error is not None:
            raise error

    async def query_address(self) -> str:
        self.calls.append("query_address")
        if self.address_delay:
            await asyncio.sleep(self.address_delay)
        self._check(self.address_error)
        return self.address

    async def query_balance(self) -> AccountBalance:
        self.calls.append("query_balance")
        self._check(self.balance_error)
        return self.balance

    async def query_incoming_transfers(self) -> list[TransactionOutput]:
        self.calls.append("query_incoming_transfers")
        self._check(self.outputs_error)
        return list(self.outputs)

    async def query_key(self, key_type: AccountKeyType) -> str:
        self.calls.append("query_key")
        self._check(self.key_error)
        return self.keys[key_type]

    async def query_payments(
        self, payment_ids: Sequence[str] | None = None, minimum_block_height: int = 0
    ) -> list[Payment]:
        self.calls.append("query_payments")
        self._check(self.payments_error)
        return [
            p
            for p in self.payments
            if (not payment_ids or p.payment_id in payment_ids)
            and p.block_height >= minimum_block_height
        ]

    async def send_transfer_split(
        self,
        recipients: Sequence[TransferRecipient],
        payment_id: str | None,
        mix_count: int,
    ) -> list[str]:
        self.calls.append("send_transfer_split")
        self._check(self.send_error)
        self.sent.append((list(recipients), payment_id, mix_count))
        return list(self.sent_transaction_ids)

    async def request_save_account(self) -> None:
        self.calls.append("request_save_account")
        self._check(self.save_error)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def wallet_address() -> str:
    return TEST_ADDRESS


@pytest.fixture
def fake_rpc() -> FakeWalletRpc:
    return FakeWalletRpc()


@pytest.fixture
def transport_error() -> WalletTransportError:
    return WalletTransportError("connection refused")


@pytest.fixture
def service_error() -> WalletServiceError:
    return WalletServiceError("RPC error -13: No wallet file", code=-13)
