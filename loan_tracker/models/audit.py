"""
Audit Models for Loan Tracker

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of every change to a person's ledger
2. A record of who opened which shared link, and when it was refused
3. Debugging information when stored data turns out to be unreadable

DESIGN DECISION: Audit logs are append-only. Events are never modified;
the store keeps only the most recent ones.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from loan_tracker.models.ledger import ensure_aware, utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # People
    PERSON_ADDED = "person_added"
    PERSON_DELETED = "person_deleted"
    PERSON_REJECTED = "person_rejected"

    # Ledger
    TRANSACTION_RECORDED = "transaction_recorded"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_REJECTED = "transaction_rejected"
    TOTALS_RECALCULATED = "totals_recalculated"

    # Sharing
    SHARE_LINK_CREATED = "share_link_created"
    SHARE_LINK_DELETED = "share_link_deleted"
    SHARE_LINK_RESOLVED = "share_link_resolved"
    SHARE_LINK_REFUSED = "share_link_refused"

    # Data management
    SAMPLE_DATA_SEEDED = "sample_data_seeded"
    DATA_EXPORTED = "data_exported"

    # System events
    STORE_UNREADABLE = "store_unreadable"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'person', 'transaction', 'share_link')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one user action)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    @field_validator('timestamp')
    @classmethod
    def make_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.person_added(person_id, name, correlation_id)
        event = AuditEventBuilder.share_link_refused(link_id, "expired", correlation_id)
    """

    @staticmethod
    def person_added(
        person_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_ADDED,
            entity_type="person",
            entity_id=person_id,
            correlation_id=correlation_id,
            description=f"Person added: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def person_deleted(
        person_id: str,
        transaction_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_DELETED,
            entity_type="person",
            entity_id=person_id,
            correlation_id=correlation_id,
            description=f"Person deleted with {transaction_count} transactions",
            details={"transaction_count": transaction_count},
            is_user_action=True,
        )

    @staticmethod
    def person_rejected(
        name: str,
        errors: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="person",
            correlation_id=correlation_id,
            description=f"Person rejected with {len(errors)} errors",
            details={"name": name, "errors": errors},
            is_user_action=True,
        )

    @staticmethod
    def transaction_recorded(
        person_id: str,
        transaction_id: str,
        kind: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{kind} of {amount} recorded",
            details={
                "person_id": person_id,
                "kind": kind,
                "amount": str(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        person_id: str,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            details={"person_id": person_id},
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(
        person_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="person",
            entity_id=person_id,
            correlation_id=correlation_id,
            description=f"Transaction rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def totals_recalculated(
        person_id: str,
        balance: Decimal,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TOTALS_RECALCULATED,
            entity_type="person",
            entity_id=person_id,
            correlation_id=correlation_id,
            description=f"Totals updated: balance {balance} ({status})",
            details={"balance": str(balance), "status": status},
        )

    @staticmethod
    def share_link_created(
        link_id: str,
        person_id: str,
        expires_at: datetime,
        is_password_protected: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SHARE_LINK_CREATED,
            entity_type="share_link",
            entity_id=link_id,
            correlation_id=correlation_id,
            description=f"Share link created for person {person_id}",
            details={
                "person_id": person_id,
                "expires_at": expires_at.isoformat(),
                "is_password_protected": is_password_protected,
            },
            is_user_action=True,
        )

    @staticmethod
    def share_link_deleted(
        link_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SHARE_LINK_DELETED,
            entity_type="share_link",
            entity_id=link_id,
            correlation_id=correlation_id,
            description="Share link deleted",
            is_user_action=True,
        )

    @staticmethod
    def share_link_resolved(
        link_id: str,
        views: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SHARE_LINK_RESOLVED,
            entity_type="share_link",
            entity_id=link_id,
            correlation_id=correlation_id,
            description=f"Share link opened (view #{views})",
            details={"views": views},
        )

    @staticmethod
    def share_link_refused(
        link_id: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SHARE_LINK_REFUSED,
            severity=AuditSeverity.WARNING,
            entity_type="share_link",
            entity_id=link_id,
            correlation_id=correlation_id,
            description=f"Share link refused: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def sample_data_seeded(
        people_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAMPLE_DATA_SEEDED,
            correlation_id=correlation_id,
            description=f"Empty store seeded with {people_count} example people",
            details={"people_count": people_count},
        )

    @staticmethod
    def data_exported(
        people_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            correlation_id=correlation_id,
            description=f"Exported {people_count} people",
            details={"people_count": people_count},
            is_user_action=True,
        )

    @staticmethod
    def store_unreadable(
        key: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_UNREADABLE,
            severity=AuditSeverity.ERROR,
            entity_type="store_key",
            entity_id=key,
            correlation_id=correlation_id,
            description=f"Stored data unreadable: {key}",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
