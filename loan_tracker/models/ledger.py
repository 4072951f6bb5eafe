"""
Core Ledger Models for Loan Tracker

These models define the schemas for people and their transactions.
They are designed to:
1. Enforce type safety at runtime
2. Round-trip through the JSON key-value store unchanged
3. Keep derived totals next to the data they are derived from

DESIGN DECISION: A Person carries its totals (loaned, paid, balance,
status) so list views never need to load every transaction list.
Those fields are only ever written by the ledger aggregator.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """
    The two kinds of ledger event.

    A Loan increases what the person owes, a Payment decreases it.
    """
    LOAN = "Loan"
    PAYMENT = "Payment"


class PersonStatus(str, Enum):
    """
    Derived repayment status.

    NOTE: Overpayment (negative balance) is also PAID.
    """
    PENDING = "Pending"
    PAID = "Paid"


# =============================================================================
# PERSON
# =============================================================================

class PersonalInfo(BaseModel):
    """Contact details captured when a person is added."""
    model_config = ConfigDict(str_strip_whitespace=True)

    email: Optional[str] = Field(default=None, max_length=254)
    phone: Optional[str] = Field(default=None, max_length=40)
    address: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @property
    def is_empty(self) -> bool:
        return not any([self.email, self.phone, self.address, self.notes])


class Person(BaseModel):
    """
    A person with an outstanding or settled loan relationship.

    CRITICAL: total_loaned, total_paid, balance and status are derived.
    Never set them by hand; go through the ledger aggregator.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque unique identifier"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    total_loaned: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Sum of all loan amounts"
    )
    total_paid: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Sum of all payment amounts"
    )
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Loaned minus paid; negative means overpaid"
    )
    status: PersonStatus = Field(
        default=PersonStatus.PAID,
        description="Pending while the balance is positive"
    )
    personal_info: Optional[PersonalInfo] = None
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator('created_at')
    @classmethod
    def make_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @property
    def initials(self) -> str:
        return self.name[:2].upper()


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A transaction as entered by the user, before it gets an id.

    NOTE: amount is deliberately unconstrained here.
    The TransactionValidator decides what is acceptable and explains why.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    kind: TransactionKind
    amount: Decimal
    date: datetime
    description: str = ""

    @field_validator('date')
    @classmethod
    def make_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)


class Transaction(BaseModel):
    """
    A single Loan or Payment event owned by exactly one person.

    Transactions are never edited in place: they are created,
    and later possibly deleted by id.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    kind: TransactionKind
    amount: Decimal
    date: datetime
    description: str = ""

    @field_validator('date')
    @classmethod
    def make_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @classmethod
    def from_draft(cls, transaction_id: str, draft: TransactionDraft) -> "Transaction":
        return cls(
            id=transaction_id,
            kind=draft.kind,
            amount=draft.amount,
            date=draft.date,
            description=draft.description,
        )


# =============================================================================
# AGGREGATES
# =============================================================================

class LedgerTotals(BaseModel):
    """Totals computed from one transaction list."""
    model_config = ConfigDict(frozen=True)

    total_loaned: Decimal
    total_paid: Decimal
    balance: Decimal
    status: PersonStatus


class PortfolioSummary(BaseModel):
    """Totals across every tracked person."""

    total_loaned: Decimal = Decimal("0")
    total_paid: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    people_count: int = Field(default=0, ge=0)
    pending_count: int = Field(default=0, ge=0)
    paid_count: int = Field(default=0, ge=0)


class PersonView(BaseModel):
    """Everything the person detail page shows."""

    person: Person
    transactions: list[Transaction] = Field(default_factory=list)
    upcoming_payments: list[Transaction] = Field(default_factory=list)
    progress_percent: int = Field(default=0, ge=0, le=100)


class TransactionOutcome(BaseModel):
    """
    Result of a ledger command.

    totals_changed is False when the recomputed totals were identical
    to the stored ones and nothing was written.
    """

    person: Person
    transaction: Optional[Transaction] = None
    totals_changed: bool
    warnings: list[str] = Field(default_factory=list)
