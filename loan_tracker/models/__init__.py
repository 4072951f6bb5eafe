"""
Data Models Package

This package contains all Pydantic models used in the Loan Tracker system.
All data flowing through the store must conform to these schemas.
"""

from loan_tracker.models.ledger import (
    LedgerTotals,
    Person,
    PersonalInfo,
    PersonStatus,
    PersonView,
    PortfolioSummary,
    Transaction,
    TransactionDraft,
    TransactionKind,
    TransactionOutcome,
    ensure_aware,
    utc_now,
)
from loan_tracker.models.sharing import (
    CreatedShareLink,
    SharedLink,
    SharedSnapshot,
    ShareLinkStats,
    ShareResolution,
    ShareStatus,
    ShareUrlParams,
)
from loan_tracker.models.validation import (
    ValidationIssue,
    ValidationResult,
)
from loan_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "LedgerTotals",
    "Person",
    "PersonalInfo",
    "PersonStatus",
    "PersonView",
    "PortfolioSummary",
    "Transaction",
    "TransactionDraft",
    "TransactionKind",
    "TransactionOutcome",
    "ensure_aware",
    "utc_now",
    # Sharing models
    "CreatedShareLink",
    "SharedLink",
    "SharedSnapshot",
    "ShareLinkStats",
    "ShareResolution",
    "ShareStatus",
    "ShareUrlParams",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
