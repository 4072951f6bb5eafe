"""
Tests for the upcoming scheduled payments filter.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from loan_tracker.ledger import (
    is_scheduled,
    sample_transactions,
    upcoming_scheduled_payments,
)
from loan_tracker.models import Transaction, TransactionKind


NOW = datetime(2024, 4, 15, 12, 0, tzinfo=timezone.utc)


def scheduled(tid: str, days: int, description: str = "Cuota (Programada)",
              kind: TransactionKind = TransactionKind.PAYMENT) -> Transaction:
    return Transaction(
        id=tid,
        kind=kind,
        amount=Decimal("40000"),
        date=NOW + timedelta(days=days),
        description=description,
    )


class TestIsScheduled:
    """What counts as a scheduled payment."""

    def test_future_payment_with_marker(self):
        assert is_scheduled(scheduled("1", 10), NOW)

    def test_marker_is_case_insensitive(self):
        assert is_scheduled(scheduled("1", 10, "Cuota 3/6 (PROGRAMADA)"), NOW)
        assert is_scheduled(scheduled("2", 10, "Scheduled installment"), NOW)
        assert is_scheduled(scheduled("3", 10, "next one is scheduled"), NOW)

    def test_without_marker(self):
        assert not is_scheduled(scheduled("1", 10, "Cuota 1/6"), NOW)

    def test_past_or_present_payment(self):
        """Only strictly future dates count."""
        assert not is_scheduled(scheduled("1", -1), NOW)
        assert not is_scheduled(scheduled("2", 0), NOW)

    def test_loans_are_never_scheduled(self):
        assert not is_scheduled(scheduled("1", 10, kind=TransactionKind.LOAN), NOW)


class TestUpcomingScheduledPayments:
    """The upcoming payments view."""

    def test_at_most_three_soonest_first(self):
        transactions = [
            scheduled("a", 50),
            scheduled("b", 5),
            scheduled("c", 30),
            scheduled("d", 20),
            scheduled("e", 40),
        ]
        upcoming = upcoming_scheduled_payments(transactions, NOW)
        assert [t.id for t in upcoming] == ["b", "d", "c"]

    def test_every_item_is_a_future_scheduled_payment(self):
        transactions = [
            scheduled("past", -3),
            scheduled("loan", 3, kind=TransactionKind.LOAN),
            scheduled("plain", 4, "Cuota 1/6"),
            scheduled("ok", 6),
        ]
        upcoming = upcoming_scheduled_payments(transactions, NOW)
        assert [t.id for t in upcoming] == ["ok"]
        for t in upcoming:
            assert t.kind == TransactionKind.PAYMENT
            assert t.date > NOW

    def test_ties_keep_stored_order(self):
        transactions = [scheduled("first", 7), scheduled("second", 7), scheduled("third", 7)]
        upcoming = upcoming_scheduled_payments(transactions, NOW)
        assert [t.id for t in upcoming] == ["first", "second", "third"]

    def test_custom_limit(self):
        transactions = [scheduled(str(i), i + 1) for i in range(6)]
        assert len(upcoming_scheduled_payments(transactions, NOW, limit=5)) == 5
        assert upcoming_scheduled_payments(transactions, NOW, limit=0) == []

    def test_empty_and_restartable(self):
        """Pure: the same input gives the same output and is not modified."""
        transactions = [scheduled("b", 9), scheduled("a", 2)]
        first = upcoming_scheduled_payments(transactions, NOW)
        second = upcoming_scheduled_payments(transactions, NOW)
        assert first == second
        assert [t.id for t in transactions] == ["b", "a"]
        assert upcoming_scheduled_payments([], NOW) == []

    def test_sample_installments_window(self):
        """Installments dated 2024 only show while they are still ahead."""
        pedro = sample_transactions("8")
        early = upcoming_scheduled_payments(pedro, datetime(2024, 4, 15, tzinfo=timezone.utc))
        assert [t.id for t in early] == ["803", "804", "805"]
        late = upcoming_scheduled_payments(pedro, datetime(2025, 1, 1, tzinfo=timezone.utc))
        assert late == []
