"""
Account synchronization: readiness tracking and the periodic refresh loop.

A refresh cycle queries the balance and then the incoming outputs, feeds the
outputs through the reconciliation engine, publishes the resulting snapshot in
one assignment and only then dispatches the change events.

Cycles are single-flight: the loop does not schedule the next cycle until the
current one has finished, and cycles requested from outside the loop (e.g.
after sending a transaction) take the same lock.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import replace
from enum import Enum

from loguru import logger

from xmrwallet.backends.base import WalletRpc, WalletRpcError
from xmrwallet.wallet.events import (
    AccountEvent,
    AddressReceived,
    BalanceChanged,
    EventRegistry,
    Initialized,
)
from xmrwallet.wallet.models import AccountSnapshot
from xmrwallet.wallet.reconcile import reconcile

# Seconds between the end of one refresh cycle and the start of the next
DEFAULT_ACCOUNT_REFRESH_PERIOD = 10.0


class SyncState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ADDRESS_KNOWN = "address_known"
    TRANSACTION_PASS_DONE = "transaction_pass_done"
    READY = "ready"


class Readiness:
    """
    Tracks when the account becomes ready.

    The account is ready once the address has been received and at least one
    transaction pass has completed, in either order. READY never reverts.
    """

    def __init__(self) -> None:
        self.address_known = False
        self.transaction_pass_done = False

    @property
    def state(self) -> SyncState:
        if self.address_known and self.transaction_pass_done:
            return SyncState.READY
        if self.address_known:
            return SyncState.ADDRESS_KNOWN
        if self.transaction_pass_done:
            return SyncState.TRANSACTION_PASS_DONE
        return SyncState.UNINITIALIZED

    @property
    def is_ready(self) -> bool:
        return self.state == SyncState.READY

    def mark_address_known(self) -> bool:
        """Returns True if this call made the account ready."""
        was_ready = self.is_ready
        self.address_known = True
        return not was_ready and self.is_ready

    def mark_transaction_pass_done(self) -> bool:
        """Returns True if this call made the account ready."""
        was_ready = self.is_ready
        self.transaction_pass_done = True
        return not was_ready and self.is_ready


class RefreshLoop:
    """
    Runs a cycle coroutine periodically, one cycle at a time.

    The period is measured from the end of a cycle to the start of the next,
    so slow cycles never overlap. run_once() can be called from outside the
    loop; it waits for an in-flight cycle instead of running alongside it.
    """

    def __init__(self, cycle: Callable[[], Awaitable[None]], period: float):
        if period <= 0:
            raise ValueError(f"Refresh period must be positive, got {period}")
        self.cycle = cycle
        self.period = period
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._stopping = False
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def cycle_in_progress(self) -> bool:
        return self._lock.locked()

    def start(self) -> None:
        """Start the loop. The first cycle runs immediately. No-op once stopping."""
        if self._stopping or self._task is not None:
            return
        self._task = asyncio.create_task(self._run())

    async def run_exclusive(self, operation: Callable[[], Awaitable[None]]) -> bool:
        """
        Run operation while no cycle is running and none can start.

        Returns False if the loop is stopping and the operation was not run.
        Exceptions from operation propagate.
        """
        if self._stopping:
            return False

        async with self._lock:
            if self._stopping:
                return False
            await operation()
            return True

    async def run_once(self) -> bool:
        """
        Run a single cycle, serialized with every other cycle.

        Returns False if the loop is stopping and the cycle was not run.
        """
        try:
            return await self.run_exclusive(self.cycle)
        except Exception as e:
            logger.exception(f"Refresh cycle failed: {type(e).__name__}: {e}")
            return True

    async def _run(self) -> None:
        while not self._stopping:
            await self.run_once()
            await asyncio.sleep(self.period)

    async def stop(self, before_release: Callable[[], Awaitable[None]] | None = None) -> None:
        """
        Stop the loop. Safe to call more than once.

        No cycle starts after this is called. A cycle already running is
        allowed to finish, then before_release (if given) runs while no cycle
        can start, and finally the loop task is cancelled.
        """
        if self._stopping:
            return
        self._stopping = True

        try:
            async with self._lock:
                if before_release is not None:
                    await before_release()
        finally:
            if self._task is not None:
                self._task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._task
                self._task = None
            self._stopped = True


class AccountSynchronizer:
    """
    Owns the published account snapshot and keeps it in sync with the wallet.

    Query failures are logged and swallowed: the affected part of the snapshot
    keeps its previous value and the next cycle tries again.
    """

    def __init__(
        self,
        rpc: WalletRpc,
        events: EventRegistry,
        refresh_period: float = DEFAULT_ACCOUNT_REFRESH_PERIOD,
    ):
        self.rpc = rpc
        self.events = events
        self.readiness = Readiness()
        self.loop = RefreshLoop(self.refresh_cycle, refresh_period)
        self.initialized = asyncio.Event()
        self._snapshot = AccountSnapshot()
        self._initialize_called = False

    @property
    def snapshot(self) -> AccountSnapshot:
        return self._snapshot

    def _publish(self, snapshot: AccountSnapshot, events: Sequence[AccountEvent]) -> None:
        self._snapshot = snapshot
        if any(isinstance(event, Initialized) for event in events):
            self.initialized.set()
        self.events.dispatch(events)

    async def initialize(self) -> None:
        """Fetch the address and start the periodic refresh loop."""
        if self._initialize_called:
            return
        self._initialize_called = True
        logger.info(f"Initializing account (refresh period {self.loop.period}s)")
        await self.loop.run_exclusive(self.sync_address)
        self.loop.start()

    async def refresh(self) -> bool:
        """Run one refresh cycle now. Returns False if the loop was stopped."""
        return await self.loop.run_once()

    async def refresh_cycle(self) -> None:
        if self._snapshot.address is None:
            await self.sync_address()
        await self.sync_balance()
        await self.sync_transactions()

    async def sync_address(self) -> None:
        if self._snapshot.address is not None:
            return

        try:
            address = await self.rpc.query_address()
        except WalletRpcError as e:
            logger.warning(f"Address query failed: {e}")
            return

        if self._snapshot.address is not None:
            return

        logger.info(f"Account address: {address}")
        events: list[AccountEvent] = [AddressReceived(address=address)]
        if self.readiness.mark_address_known():
            events.append(Initialized())
        self._publish(replace(self._snapshot, address=address), events)

    async def sync_balance(self) -> None:
        try:
            balance = await self.rpc.query_balance()
        except WalletRpcError as e:
            logger.debug(f"Balance query failed: {e}")
            return

        if balance == self._snapshot.balance:
            return

        logger.debug(f"Balance changed: total={balance.total}, unlocked={balance.unlocked}")
        self._publish(replace(self._snapshot, balance=balance), [BalanceChanged(balance=balance)])

    async def sync_transactions(self) -> None:
        try:
            outputs = await self.rpc.query_incoming_transfers()
        except WalletRpcError as e:
            logger.debug(f"Incoming transfers query failed: {e}")
            if self.readiness.mark_transaction_pass_done():
                self._publish(self._snapshot, [Initialized()])
            return

        result = reconcile(
            self._snapshot.transactions, self.readiness.transaction_pass_done, outputs
        )
        events: list[AccountEvent] = list(result.events)
        if self.readiness.mark_transaction_pass_done():
            events.append(Initialized())

        self._publish(
            replace(self._snapshot, transactions=result.transactions, outputs=tuple(outputs)),
            events,
        )
