"""
Schedule Filter

A payment is "scheduled" when it is dated in the future and its
description carries a scheduling marker. The marker is free text
typed by the user, e.g. "Cuota 3 (Programada)".
"""

from datetime import datetime
from typing import Iterable

from loan_tracker.models.ledger import Transaction, TransactionKind, ensure_aware


SCHEDULED_MARKERS = ("scheduled", "programada")

DEFAULT_UPCOMING_LIMIT = 3


def has_scheduled_marker(description: str) -> bool:
    lowered = description.lower()
    return any(marker in lowered for marker in SCHEDULED_MARKERS)


def is_scheduled(transaction: Transaction, now: datetime) -> bool:
    """Future payment carrying a scheduling marker."""
    return (
        transaction.kind == TransactionKind.PAYMENT
        and transaction.date > ensure_aware(now)
        and has_scheduled_marker(transaction.description)
    )


def upcoming_scheduled_payments(
    transactions: Iterable[Transaction],
    now: datetime,
    limit: int = DEFAULT_UPCOMING_LIMIT,
) -> list[Transaction]:
    """
    The next scheduled payments, soonest first.

    Ties on date keep their stored order.
    """
    if limit <= 0:
        return []

    upcoming = [t for t in transactions if is_scheduled(t, now)]
    upcoming.sort(key=lambda t: t.date)
    return upcoming[:limit]
