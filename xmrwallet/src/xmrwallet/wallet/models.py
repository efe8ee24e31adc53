"""
Wallet data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

# Upper bound of a Monero amount (uint64 atomic units)
MAX_AMOUNT = 2**64 - 1

# Default number of decoy inputs per real input when sending
DEFAULT_MIX_COUNT = 3


class AccountKeyType(str, Enum):
    VIEW_KEY = "view_key"
    MNEMONIC = "mnemonic"


class AccountBalance(BaseModel):
    """Balance snapshot in atomic units. Compared by value."""

    total: int = Field(ge=0, le=MAX_AMOUNT)
    unlocked: int = Field(ge=0, le=MAX_AMOUNT)

    model_config = {"frozen": True}


class TransactionOutput(BaseModel):
    """A single output received by the account, as reported by the wallet"""

    transaction_id: str
    amount: int = Field(ge=0, le=MAX_AMOUNT)
    is_spendable: bool
    global_index: int | None = None
    transaction_size: int | None = None

    model_config = {"frozen": True}


class Payment(BaseModel):
    payment_id: str
    transaction_id: str
    amount: int = Field(ge=0, le=MAX_AMOUNT)
    block_height: int = 0
    unlock_time: int = 0

    model_config = {"frozen": True}


class TransferRecipient(BaseModel):
    address: str = Field(min_length=1)
    amount: int = Field(gt=0, le=MAX_AMOUNT)

    model_config = {"frozen": True}


@dataclass(frozen=True)
class Transaction:
    """
    Transaction aggregated from the outputs sharing one transaction id.

    Rebuilt on every reconciliation pass; never updated in place.
    """

    transaction_id: str
    index: int
    amount_spendable: int = 0
    amount_unspendable: int = 0


@dataclass(frozen=True)
class AccountSnapshot:
    """Published account state. Replaced as a whole on every update."""

    address: str | None = None
    balance: AccountBalance | None = None
    transactions: tuple[Transaction, ...] = field(default_factory=tuple)
    outputs: tuple[TransactionOutput, ...] = field(default_factory=tuple)
