"""
Incremental reconciliation of account transactions.

Each poll of the wallet returns the complete, ordered list of outputs received
by the account. Outputs of one transaction are adjacent, so a single walk
groups them into transactions. The new transaction list is then compared with
the previous one by index to find which transactions are new and which had
their spendable amount change.

Everything here is pure: callers publish the resulting list and dispatch the
events themselves.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace

from loguru import logger

from xmrwallet.wallet.events import AccountEvent, TransactionChanged, TransactionReceived
from xmrwallet.wallet.models import Transaction, TransactionOutput


@dataclass(frozen=True)
class ReconcileResult:
    transactions: tuple[Transaction, ...] = field(default_factory=tuple)
    events: tuple[AccountEvent, ...] = field(default_factory=tuple)


def group_outputs(outputs: Sequence[TransactionOutput]) -> list[Transaction]:
    """
    Group adjacent outputs with the same transaction id into transactions.

    Outputs are assumed to be contiguous per transaction id. If they are not,
    the same id shows up as several transactions; this is not repaired.
    """
    transactions: list[Transaction] = []
    current: Transaction | None = None

    for output in outputs:
        if current is None or output.transaction_id != current.transaction_id:
            if current is not None:
                transactions.append(current)
            current = Transaction(transaction_id=output.transaction_id, index=len(transactions))

        if output.is_spendable:
            current = replace(current, amount_spendable=current.amount_spendable + output.amount)
        else:
            current = replace(
                current, amount_unspendable=current.amount_unspendable + output.amount
            )

    if current is not None:
        transactions.append(current)

    return transactions


def diff_transactions(
    previous: Sequence[Transaction], current: Sequence[Transaction]
) -> list[AccountEvent]:
    """
    Compare two transaction lists index by index.

    Only amount_spendable is compared; a change of the unspendable amount alone
    is not reported.
    """
    events: list[AccountEvent] = []

    if len(current) < len(previous):
        logger.warning(
            f"Transaction list shrank from {len(previous)} to {len(current)} entries; "
            "only the common prefix is compared"
        )

    for i in range(min(len(previous), len(current))):
        if current[i].amount_spendable != previous[i].amount_spendable:
            events.append(TransactionChanged(index=i, transaction=current[i]))

    for i in range(len(previous), len(current)):
        events.append(TransactionReceived(transaction=current[i]))

    return events


def reconcile(
    previous: Sequence[Transaction],
    initialized_before: bool,
    outputs: Sequence[TransactionOutput],
) -> ReconcileResult:
    """
    Build the new transaction list from a fresh outputs snapshot.

    Args:
        previous: Transactions published by the last successful pass
        initialized_before: Whether a transaction pass has completed before.
            The very first pass only builds the list and reports nothing.
        outputs: Outputs in the order the wallet returned them

    Returns:
        ReconcileResult with the new transactions and the change events
    """
    if not outputs:
        return ReconcileResult()

    transactions = group_outputs(outputs)
    events = diff_transactions(previous, transactions) if initialized_before else []

    logger.trace(
        f"Reconciled {len(outputs)} outputs into {len(transactions)} transactions "
        f"({len(events)} events)"
    )
    return ReconcileResult(transactions=tuple(transactions), events=tuple(events))
