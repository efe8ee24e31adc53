"""
Account change events and the subscriber registry that fans them out.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from xmrwallet.wallet.models import AccountBalance, Transaction


@dataclass(frozen=True)
class AccountEvent:
    pass


@dataclass(frozen=True)
class Initialized(AccountEvent):
    """Address is known and at least one transaction pass has completed."""


@dataclass(frozen=True)
class AddressReceived(AccountEvent):
    address: str


@dataclass(frozen=True)
class BalanceChanged(AccountEvent):
    balance: AccountBalance


@dataclass(frozen=True)
class TransactionReceived(AccountEvent):
    transaction: Transaction


@dataclass(frozen=True)
class TransactionChanged(AccountEvent):
    index: int
    transaction: Transaction


EventCallback = Callable[[Any], None]


class EventRegistry:
    """
    Registry of event subscribers.

    Subscribers register for one event class (or AccountEvent for all of them)
    and are called synchronously, in registration order. A subscriber that
    raises is logged and skipped so the remaining subscribers still get the
    event.
    """

    def __init__(self) -> None:
        self._subscribers: dict[int, tuple[type[AccountEvent], EventCallback]] = {}
        self._keys = itertools.count(1)

    def __len__(self) -> int:
        return len(self._subscribers)

    def subscribe(self, event_type: type[AccountEvent], callback: EventCallback) -> int:
        """Register a callback and return the key needed to unsubscribe it."""
        if not (isinstance(event_type, type) and issubclass(event_type, AccountEvent)):
            raise TypeError(f"Not an account event type: {event_type!r}")
        key = next(self._keys)
        self._subscribers[key] = (event_type, callback)
        return key

    def unsubscribe(self, key: int) -> None:
        self._subscribers.pop(key, None)

    def dispatch(self, events: Iterable[AccountEvent]) -> None:
        for event in events:
            if not self._subscribers:
                return
            for event_type, callback in list(self._subscribers.values()):
                if not isinstance(event, event_type):
                    continue
                try:
                    callback(event)
                except Exception as e:
                    logger.error(
                        f"Subscriber for {type(event).__name__} failed: {type(e).__name__}: {e}"
                    )
