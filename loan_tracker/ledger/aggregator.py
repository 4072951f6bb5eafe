"""
Ledger Aggregator

Pure functions from a transaction list to the derived totals.

CRITICAL: These are the only functions allowed to produce
total_loaned, total_paid, balance and status. Everything else
(the flows, the seeding, the share snapshot) goes through here.

NOTE: The balance is signed. Overpayment gives a negative balance
and the person is still PAID.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from loan_tracker.models.ledger import (
    LedgerTotals,
    Person,
    PersonStatus,
    PortfolioSummary,
    Transaction,
    TransactionKind,
)


ZERO = Decimal("0")


def status_for_balance(balance: Decimal) -> PersonStatus:
    """Pending while something is still owed."""
    return PersonStatus.PENDING if balance > 0 else PersonStatus.PAID


def compute_totals(transactions: Iterable[Transaction]) -> LedgerTotals:
    """
    Sum loans and payments.

    Order does not matter; an empty list gives zero totals and PAID.
    """
    total_loaned = ZERO
    total_paid = ZERO

    for transaction in transactions:
        if transaction.kind == TransactionKind.LOAN:
            total_loaned += transaction.amount
        else:
            total_paid += transaction.amount

    balance = total_loaned - total_paid

    return LedgerTotals(
        total_loaned=total_loaned,
        total_paid=total_paid,
        balance=balance,
        status=status_for_balance(balance),
    )


def totals_match(person: Person, totals: LedgerTotals) -> bool:
    """True when the person already carries exactly these totals."""
    return (
        person.total_loaned == totals.total_loaned
        and person.total_paid == totals.total_paid
        and person.balance == totals.balance
        and person.status == totals.status
    )


def with_totals(person: Person, totals: LedgerTotals) -> Person:
    return person.model_copy(update={
        "total_loaned": totals.total_loaned,
        "total_paid": totals.total_paid,
        "balance": totals.balance,
        "status": totals.status,
    })


def apply_totals(person: Person, transactions: Iterable[Transaction]) -> Person:
    """Copy of the person carrying totals recomputed from the list."""
    return with_totals(person, compute_totals(transactions))


def repayment_progress(total_loaned: Decimal, total_paid: Decimal) -> int:
    """
    Percentage of the loaned amount paid back, 0 to 100.

    Rounded half up to a whole percent and capped at 100 so that
    overpayment does not overflow the progress bar.
    """
    if total_loaned <= 0:
        return 0

    percent = (total_paid / total_loaned * 100).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return max(0, min(100, int(percent)))


def summarize_portfolio(people: Iterable[Person]) -> PortfolioSummary:
    """Totals across every person, from the totals they carry."""
    summary = {
        "total_loaned": ZERO,
        "total_paid": ZERO,
        "balance": ZERO,
        "people_count": 0,
        "pending_count": 0,
        "paid_count": 0,
    }

    for person in people:
        summary["total_loaned"] += person.total_loaned
        summary["total_paid"] += person.total_paid
        summary["balance"] += person.balance
        summary["people_count"] += 1
        if person.status == PersonStatus.PENDING:
            summary["pending_count"] += 1
        else:
            summary["paid_count"] += 1

    return PortfolioSummary(**summary)
