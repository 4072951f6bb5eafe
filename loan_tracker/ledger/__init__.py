"""
Ledger Package

Pure derivations over transaction lists: totals, status, repayment
progress and the upcoming scheduled payments view.
"""

from loan_tracker.ledger.aggregator import (
    apply_totals,
    compute_totals,
    repayment_progress,
    status_for_balance,
    summarize_portfolio,
    totals_match,
    with_totals,
)
from loan_tracker.ledger.schedule import (
    SCHEDULED_MARKERS,
    is_scheduled,
    upcoming_scheduled_payments,
)
from loan_tracker.ledger.sample_data import (
    sample_people,
    sample_person,
    sample_transactions,
)

__all__ = [
    "apply_totals",
    "compute_totals",
    "repayment_progress",
    "status_for_balance",
    "summarize_portfolio",
    "totals_match",
    "with_totals",
    "SCHEDULED_MARKERS",
    "is_scheduled",
    "upcoming_scheduled_payments",
    "sample_people",
    "sample_person",
    "sample_transactions",
]
