"""
Boundary Validation

DESIGN DECISION: Drafts are validated before anything is written.
The stored models accept whatever was stored in the past (so older
data always loads); the rules for new input live here.

TransactionValidator:
- amount must be positive (error)
- amount above the configured ceiling (warning)
- description too long (error), empty (warning)
- scheduling marker on a payment that is not in the future (warning)
- payment larger than the outstanding balance (warning)

PersonValidator:
- name must not be blank (error)
- name must not duplicate an existing one, ignoring case (error)

IMPORTANT: Validation NEVER silently fixes issues.
Errors block the command; warnings are returned with the outcome.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from loan_tracker.config import AppSettings, get_settings
from loan_tracker.ledger.schedule import has_scheduled_marker
from loan_tracker.models.ledger import (
    Person,
    TransactionDraft,
    TransactionKind,
    ensure_aware,
    utc_now,
)
from loan_tracker.models.validation import ValidationIssue, ValidationResult


class TransactionRejectedError(Exception):
    """A transaction draft failed validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__("; ".join(result.errors) or "Transaction rejected")


class PersonRejectedError(Exception):
    """A new person failed validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__("; ".join(result.errors) or "Person rejected")


def _result(issues: list[ValidationIssue]) -> ValidationResult:
    return ValidationResult(
        is_valid=not any(issue.severity == "error" for issue in issues),
        issues=issues,
    )


class TransactionValidator:
    """Checks a transaction draft against the ledger it is added to."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def validate(
        self,
        draft: TransactionDraft,
        current_balance: Decimal = Decimal("0"),
        now: Optional[datetime] = None,
    ) -> ValidationResult:
        """
        Validate one draft.

        Args:
            draft: The transaction as entered
            current_balance: The person's balance before this transaction
            now: Reference time for the scheduling check

        Returns:
            ValidationResult with all issues found
        """
        now = ensure_aware(now) if now else utc_now()
        issues = []

        # Amount
        if draft.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
                suggested_fix="Enter a positive amount",
            ))
        else:
            max_amount = Decimal(str(self._settings.max_transaction_amount))
            if draft.amount > max_amount:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="suspicious_value",
                    message=f"Amount ({draft.amount:,}) seems unusually high",
                    severity="warning",
                    suggested_fix="Please verify this amount is correct",
                ))

            if (
                draft.kind == TransactionKind.PAYMENT
                and draft.amount > current_balance
            ):
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="overpayment",
                    message=(
                        f"Payment ({draft.amount:,}) is larger than the "
                        f"outstanding balance ({current_balance:,})"
                    ),
                    severity="warning",
                    suggested_fix="The person will show a negative balance",
                ))

        # Description
        max_length = self._settings.max_description_length
        if len(draft.description) > max_length:
            issues.append(ValidationIssue(
                field="description",
                issue_type="too_long",
                message=f"Description is longer than {max_length} characters",
                severity="error",
                suggested_fix="Shorten the description",
            ))
        elif not draft.description:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Description is empty",
                severity="warning",
            ))

        # Scheduling marker only makes sense on future payments
        if has_scheduled_marker(draft.description) and (
            draft.kind != TransactionKind.PAYMENT or draft.date <= now
        ):
            issues.append(ValidationIssue(
                field="date",
                issue_type="inconsistent",
                message=(
                    "Marked as scheduled but it is not a future payment, "
                    "so it will not appear among upcoming payments"
                ),
                severity="warning",
                suggested_fix="Use a future date or drop the marker",
            ))

        return _result(issues)


class PersonValidator:
    """Checks a new person's name against the people already tracked."""

    def validate(
        self,
        name: str,
        existing: Iterable[Person] = (),
    ) -> ValidationResult:
        issues = []
        cleaned = (name or "").strip()

        if not cleaned:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Name is required",
                severity="error",
            ))
        elif len(cleaned) > 100:
            issues.append(ValidationIssue(
                field="name",
                issue_type="too_long",
                message="Name is longer than 100 characters",
                severity="error",
            ))
        elif any(p.name.casefold() == cleaned.casefold() for p in existing):
            issues.append(ValidationIssue(
                field="name",
                issue_type="duplicate",
                message=f"A person named {cleaned} already exists",
                severity="error",
                suggested_fix="Use a distinguishing name, e.g. add a surname",
            ))

        return _result(issues)


def summarize_issues(result: ValidationResult) -> str:
    """
    Generate a user-friendly summary of validation results.

    This is what the UI shows next to the form.
    """
    if result.is_valid and not result.warnings:
        return "✅ All checks passed."

    lines = []

    if result.has_errors:
        lines.append("❌ Please fix the following:")
        for issue in result.issues:
            if issue.severity == "error":
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

    if result.warnings:
        if lines:
            lines.append("")
        lines.append("⚠️ Please verify the following:")
        for warning in result.warnings:
            lines.append(f"   • {warning}")

    return "\n".join(lines)
