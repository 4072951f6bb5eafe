"""Validation package."""

from loan_tracker.validation.validator import (
    PersonRejectedError,
    PersonValidator,
    TransactionRejectedError,
    TransactionValidator,
    summarize_issues,
)

__all__ = [
    "PersonRejectedError",
    "PersonValidator",
    "TransactionRejectedError",
    "TransactionValidator",
    "summarize_issues",
]
