"""
Tests for grouping outputs into transactions and diffing transaction lists.
"""

from __future__ import annotations

from xmrwallet.wallet.events import TransactionChanged, TransactionReceived
from xmrwallet.wallet.models import Transaction, TransactionOutput
from xmrwallet.wallet.reconcile import diff_transactions, group_outputs, reconcile


def make_output(transaction_id: str, amount: int, is_spendable: bool = True) -> TransactionOutput:
    return TransactionOutput(transaction_id=transaction_id, amount=amount, is_spendable=is_spendable)


class TestGroupOutputs:
    """Tests for group_outputs."""

    def test_mixed_spendability(self) -> None:
        """Outputs of one transaction are split into spendable and unspendable sums."""
        outputs = [
            make_output("a", 100, True),
            make_output("a", 50, False),
            make_output("b", 200, True),
        ]

        transactions = group_outputs(outputs)

        assert transactions == [
            Transaction(transaction_id="a", index=0, amount_spendable=100, amount_unspendable=50),
            Transaction(transaction_id="b", index=1, amount_spendable=200, amount_unspendable=0),
        ]

    def test_empty(self) -> None:
        assert group_outputs([]) == []

    def test_single_output(self) -> None:
        transactions = group_outputs([make_output("a", 7, False)])
        assert transactions == [Transaction("a", 0, amount_spendable=0, amount_unspendable=7)]

    def test_one_transaction_per_contiguous_run(self) -> None:
        """The number of transactions equals the number of contiguous id runs."""
        runs = [("a", [1, 2, 3]), ("b", [10]), ("c", [5, 5]), ("d", [1, 1, 1, 1])]
        outputs = [
            make_output(txid, amount, is_spendable=i % 2 == 0)
            for txid, amounts in runs
            for i, amount in enumerate(amounts)
        ]

        transactions = group_outputs(outputs)

        assert [t.transaction_id for t in transactions] == ["a", "b", "c", "d"]
        assert [t.index for t in transactions] == [0, 1, 2, 3]
        for transaction, (_, amounts) in zip(transactions, runs, strict=True):
            spendable = sum(a for i, a in enumerate(amounts) if i % 2 == 0)
            unspendable = sum(a for i, a in enumerate(amounts) if i % 2 == 1)
            assert transaction.amount_spendable == spendable
            assert transaction.amount_unspendable == unspendable

    def test_non_contiguous_outputs_are_not_merged(self) -> None:
        """An id that reappears after another id starts a new transaction."""
        outputs = [make_output("a", 1), make_output("b", 2), make_output("a", 3)]

        transactions = group_outputs(outputs)

        assert [(t.transaction_id, t.index) for t in transactions] == [
            ("a", 0),
            ("b", 1),
            ("a", 2),
        ]

    def test_large_amounts(self) -> None:
        """Sums are not limited to 64 bits."""
        big = 2**64 - 1
        transactions = group_outputs([make_output("a", big), make_output("a", big)])
        assert transactions[0].amount_spendable == 2 * big


class TestDiffTransactions:
    """Tests for diff_transactions."""

    def test_no_changes(self) -> None:
        previous = [Transaction("a", 0, 100, 0), Transaction("b", 1, 200, 0)]
        assert diff_transactions(previous, list(previous)) == []

    def test_changed_and_received(self) -> None:
        previous = [Transaction("a", 0, 100, 0)]
        current = [Transaction("a", 0, 150, 0), Transaction("b", 1, 200, 0)]

        events = diff_transactions(previous, current)

        assert events == [
            TransactionChanged(index=0, transaction=current[0]),
            TransactionReceived(transaction=current[1]),
        ]

    def test_unspendable_change_is_ignored(self) -> None:
        """Only the spendable amount is compared."""
        previous = [Transaction("a", 0, 100, 0)]
        current = [Transaction("a", 0, 100, 999)]
        assert diff_transactions(previous, current) == []

    def test_decrease_is_reported(self) -> None:
        previous = [Transaction("a", 0, 100, 0)]
        current = [Transaction("a", 0, 40, 60)]
        assert diff_transactions(previous, current) == [
            TransactionChanged(index=0, transaction=current[0])
        ]

    def test_received_in_ascending_order(self) -> None:
        current = [Transaction(txid, i, 1, 0) for i, txid in enumerate("abcd")]

        events = diff_transactions(current[:1], current)

        assert [e.transaction.transaction_id for e in events] == ["b", "c", "d"]

    def test_shrinking_list_compares_common_prefix(self) -> None:
        previous = [Transaction("a", 0, 100, 0), Transaction("b", 1, 200, 0)]
        current = [Transaction("a", 0, 120, 0)]

        events = diff_transactions(previous, current)

        assert events == [TransactionChanged(index=0, transaction=current[0])]


class TestReconcile:
    """Tests for a full reconciliation pass."""

    def test_empty_outputs(self) -> None:
        previous = (Transaction("a", 0, 100, 0),)

        result = reconcile(previous, True, [])

        assert result.transactions == ()
        assert result.events == ()

    def test_first_pass_reports_nothing(self) -> None:
        outputs = [make_output("a", 100), make_output("b", 200)]

        result = reconcile((), False, outputs)

        assert len(result.transactions) == 2
        assert result.events == ()

    def test_idempotent(self) -> None:
        """Reconciling the same outputs twice yields no events the second time."""
        outputs = [make_output("a", 100), make_output("a", 5, False), make_output("b", 200)]

        first = reconcile((), False, outputs)
        second = reconcile(first.transactions, True, outputs)

        assert second.events == ()
        assert second.transactions == first.transactions

    def test_append_only_growth(self) -> None:
        """New transaction ids appended at the end are each received exactly once."""
        outputs = [make_output("a", 100), make_output("b", 200)]
        first = reconcile((), False, outputs)

        grown = outputs + [make_output("c", 300), make_output("c", 1), make_output("d", 400)]
        second = reconcile(first.transactions, True, grown)

        assert all(isinstance(e, TransactionReceived) for e in second.events)
        assert [e.transaction.transaction_id for e in second.events] == ["c", "d"]
        assert second.events[0].transaction == Transaction("c", 2, 301, 0)

    def test_change_detection(self) -> None:
        """A new spendable output on an existing transaction is reported as a change."""
        outputs = [make_output("a", 100), make_output("b", 200)]
        first = reconcile((), False, outputs)

        updated = [make_output("a", 100), make_output("b", 200), make_output("b", 25)]
        second = reconcile(first.transactions, True, updated)

        assert second.events == (
            TransactionChanged(index=1, transaction=Transaction("b", 1, 225, 0)),
        )

    def test_unspendable_only_change_is_silent(self) -> None:
        """An unspendable output added to an existing transaction is not reported."""
        outputs = [make_output("a", 100)]
        first = reconcile((), False, outputs)

        second = reconcile(first.transactions, True, outputs + [make_output("a", 50, False)])

        assert second.events == ()
        assert second.transactions[0].amount_unspendable == 50
