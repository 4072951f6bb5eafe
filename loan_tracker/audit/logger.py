"""
Audit Logger

DESIGN DECISION: Every change to the ledger and every share link
resolution is logged. This provides:
1. Traceability of balances back to the commands that moved them
2. A record of refused link openings (wrong password, expired)
3. Debugging information when stored data cannot be parsed

The audit logger:
- Is synchronous, like the store it writes to
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from loan_tracker.models.audit import AuditEvent, AuditEventBuilder
from loan_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit log key of the store (for persistence and the settings page)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_person_added(
        self,
        person_id: str,
        name: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.person_added(
            person_id=person_id,
            name=name,
            correlation_id=correlation_id,
        ))

    def log_person_deleted(
        self,
        person_id: str,
        transaction_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.person_deleted(
            person_id=person_id,
            transaction_count=transaction_count,
            correlation_id=correlation_id,
        ))

    def log_person_rejected(
        self,
        name: str,
        errors: list[str],
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.person_rejected(
            name=name,
            errors=errors,
            correlation_id=correlation_id,
        ))

    def log_transaction_recorded(
        self,
        person_id: str,
        transaction_id: str,
        kind: str,
        amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        """Log a new loan or payment."""
        self.log(AuditEventBuilder.transaction_recorded(
            person_id=person_id,
            transaction_id=transaction_id,
            kind=kind,
            amount=amount,
            correlation_id=correlation_id,
        ))

    def log_transaction_deleted(
        self,
        person_id: str,
        transaction_id: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.transaction_deleted(
            person_id=person_id,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    def log_transaction_rejected(
        self,
        person_id: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log a draft that failed validation."""
        self.log(AuditEventBuilder.transaction_rejected(
            person_id=person_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    def log_totals_recalculated(
        self,
        person_id: str,
        balance: Decimal,
        status: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.totals_recalculated(
            person_id=person_id,
            balance=balance,
            status=status,
            correlation_id=correlation_id,
        ))

    def log_share_link_created(
        self,
        link_id: str,
        person_id: str,
        expires_at: datetime,
        is_password_protected: bool,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.share_link_created(
            link_id=link_id,
            person_id=person_id,
            expires_at=expires_at,
            is_password_protected=is_password_protected,
            correlation_id=correlation_id,
        ))

    def log_share_link_deleted(
        self,
        link_id: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.share_link_deleted(
            link_id=link_id,
            correlation_id=correlation_id,
        ))

    def log_share_link_resolved(
        self,
        link_id: str,
        views: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.share_link_resolved(
            link_id=link_id,
            views=views,
            correlation_id=correlation_id,
        ))

    def log_share_link_refused(
        self,
        link_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log a link opening that did not disclose anything."""
        self.log(AuditEventBuilder.share_link_refused(
            link_id=link_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    def log_sample_data_seeded(
        self,
        people_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.sample_data_seeded(
            people_count=people_count,
            correlation_id=correlation_id,
        ))

    def log_data_exported(
        self,
        people_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.data_exported(
            people_count=people_count,
            correlation_id=correlation_id,
        ))

    def log_store_unreadable(
        self,
        key: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a stored payload that failed to parse."""
        self.log(AuditEventBuilder.store_unreadable(
            key=key or "<store>",
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., recording a payment).
    Pass it through all subsequent operations.
    """
    return uuid4()
