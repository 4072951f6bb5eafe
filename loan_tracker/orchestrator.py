"""
Main Orchestrator for Loan Tracker

This module ties together all the components and defines the
commands the front-end calls:
1. Ledger (add person, record/delete transaction, view, summary, export)
2. Sharing (create link, resolve link, list/delete links)

DESIGN DECISION: Every change goes through an explicit command that
returns the updated aggregate. Nothing recomputes totals while
rendering, and nothing writes the store behind the caller's back.

The orchestrator enforces the boundaries:
- No draft is stored before it passes validation
- Totals are only ever written by the aggregator
- Unreadable or unreachable stored data never crashes a read; it is
  logged and the read falls back to an empty result
- Write commands refuse to run on top of unreadable data, so a
  corrupted list is never silently replaced
- Every step is audited
"""

import json
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

import structlog

from loan_tracker.audit import AuditLogger, create_correlation_id
from loan_tracker.config import AppSettings, StorageSettings, get_settings
from loan_tracker.ledger import (
    apply_totals,
    compute_totals,
    repayment_progress,
    sample_people,
    sample_transactions,
    summarize_portfolio,
    totals_match,
    upcoming_scheduled_payments,
    with_totals,
)
from loan_tracker.models.ledger import (
    Person,
    PersonalInfo,
    PersonView,
    PortfolioSummary,
    Transaction,
    TransactionDraft,
    TransactionOutcome,
    ensure_aware,
    utc_now,
)
from loan_tracker.models.sharing import (
    CreatedShareLink,
    SharedLink,
    ShareLinkStats,
    ShareResolution,
    ShareStatus,
)
from loan_tracker.services.storage import (
    GoogleSheetsBackend,
    GoogleSheetsClient,
    InMemoryBackend,
    JsonFileBackend,
    KeyValueAuditStorage,
    KeyValueBackend,
    LedgerRepository,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    StoreUnreadableError,
)
from loan_tracker.sharing import ShareSnapshotBuilder, link_stats
from loan_tracker.validation import (
    PersonRejectedError,
    PersonValidator,
    TransactionRejectedError,
    TransactionValidator,
)


EXPORT_FILENAME = "prestamos_{date}.json"


def timestamp_id(existing: set[str], now: datetime) -> str:
    """
    Millisecond timestamp as an id, bumped until unused.

    Keeps ids sortable by creation time.
    """
    candidate = int(ensure_aware(now).timestamp() * 1000)
    while str(candidate) in existing:
        candidate += 1
    return str(candidate)


def log_storage_failure(
    audit_logger: AuditLogger,
    error: StorageError,
    correlation_id: UUID,
) -> None:
    """Audit a store that could not be parsed or could not be reached."""
    if isinstance(error, StoreUnreadableError):
        audit_logger.log_store_unreadable(
            key=error.key,
            error_message=str(error),
            correlation_id=correlation_id,
        )
    else:
        audit_logger.log_error(
            error_type=type(error).__name__,
            error_message=str(error),
            correlation_id=correlation_id,
        )


class LedgerFlow:
    """
    Commands over people and their transactions.

    Every command creates a correlation id so the audit trail of one
    user action can be followed end to end.
    """

    def __init__(
        self,
        repository: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        transaction_validator: Optional[TransactionValidator] = None,
        person_validator: Optional[PersonValidator] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._repository = repository
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().app
        self._transaction_validator = (
            transaction_validator or TransactionValidator(self._settings)
        )
        self._person_validator = person_validator or PersonValidator()

    def _storage_failed(self, error: StorageError, correlation_id: UUID) -> None:
        log_storage_failure(self._audit_logger, error, correlation_id)

    def _commit(
        self,
        person: Person,
        transactions: list[Transaction],
        correlation_id: UUID,
    ) -> tuple[Person, bool]:
        """
        Store a new transaction list together with the person's totals.

        The person is written first. If the transaction list then fails
        to save, the previous person record is put back so the stored
        totals keep matching the stored transactions.

        Returns:
            (person as stored, whether the totals moved)
        """
        totals = compute_totals(transactions)
        changed = not totals_match(person, totals)
        updated = with_totals(person, totals) if changed else person

        if changed:
            self._repository.save_person(updated)
        try:
            self._repository.save_transactions(person.id, transactions)
        except StorageError as e:
            self._storage_failed(e, correlation_id)
            if changed:
                self._repository.save_person(person)
            raise

        if changed:
            self._audit_logger.log_totals_recalculated(
                person_id=person.id,
                balance=totals.balance,
                status=totals.status.value,
                correlation_id=correlation_id,
            )
        return updated, changed

    # -------------------------------------------------------------------------
    # People
    # -------------------------------------------------------------------------

    def add_person(
        self,
        name: str,
        personal_info: Optional[PersonalInfo] = None,
        now: Optional[datetime] = None,
    ) -> Person:
        """
        Add a person with no transactions.

        Raises:
            PersonRejectedError: Blank or duplicate name
            StorageError: The people index cannot be read
        """
        correlation_id = create_correlation_id()
        now = ensure_aware(now) if now else utc_now()

        try:
            existing = self._repository.list_people()
        except StorageError as e:
            self._storage_failed(e, correlation_id)
            raise

        result = self._person_validator.validate(name, existing)
        if not result.is_valid:
            self._audit_logger.log_person_rejected(
                name=name,
                errors=result.errors,
                correlation_id=correlation_id,
            )
            raise PersonRejectedError(result)

        if personal_info is not None and personal_info.is_empty:
            personal_info = None

        person = apply_totals(
            Person(
                id=timestamp_id({p.id for p in existing}, now),
                name=name.strip(),
                personal_info=personal_info,
                created_at=now,
            ),
            [],
        )

        self._repository.save_transactions(person.id, [])
        self._repository.save_person(person)

        self._audit_logger.log_person_added(
            person_id=person.id,
            name=person.name,
            correlation_id=correlation_id,
        )
        return person

    def delete_person(self, person_id: str) -> bool:
        """
        Delete a person and its transaction list.

        Share links pointing at the person are left alone; they stop
        resolving.

        Returns:
            True if the person existed
        """
        correlation_id = create_correlation_id()

        try:
            transaction_count = len(self._repository.get_transactions(person_id))
        except StorageError as e:
            self._storage_failed(e, correlation_id)
            transaction_count = 0

        try:
            existed = self._repository.delete_person(person_id)
        except StorageError as e:
            self._storage_failed(e, correlation_id)
            raise

        if existed:
            self._audit_logger.log_person_deleted(
                person_id=person_id,
                transaction_count=transaction_count,
                correlation_id=correlation_id,
            )
        return existed

    def list_people(self) -> list[Person]:
        """All people in stored order; empty if the index is unreadable."""
        try:
            return self._repository.list_people()
        except StorageError as e:
            self._storage_failed(e, create_correlation_id())
            return []

    def get_person_view(
        self,
        person_id: str,
        now: Optional[datetime] = None,
    ) -> Optional[PersonView]:
        """
        Everything the person page shows.

        Returns:
            PersonView, or None if the person is unknown or unreadable
        """
        now = ensure_aware(now) if now else utc_now()

        try:
            person = self._repository.get_person(person_id)
            if person is None:
                return None
            transactions = self._repository.get_transactions(person_id)
        except StorageError as e:
            self._storage_failed(e, create_correlation_id())
            return None

        return PersonView(
            person=person,
            transactions=transactions,
            upcoming_payments=upcoming_scheduled_payments(
                transactions,
                now,
                limit=self._settings.upcoming_payments_limit,
            ),
            progress_percent=repayment_progress(
                person.total_loaned, person.total_paid
            ),
        )

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _load_ledger(
        self,
        person_id: str,
        correlation_id: UUID,
    ) -> tuple[Person, list[Transaction]]:
        try:
            person = self._repository.get_person(person_id)
            transactions = (
                self._repository.get_transactions(person_id) if person else []
            )
        except StorageError as e:
            self._storage_failed(e, correlation_id)
            raise
        if person is None:
            raise NotFoundError(f"Person not found: {person_id}")
        return person, transactions

    def record_transaction(
        self,
        person_id: str,
        draft: TransactionDraft,
        now: Optional[datetime] = None,
    ) -> TransactionOutcome:
        """
        Validate and store a new loan or payment.

        Raises:
            NotFoundError: Unknown person
            TransactionRejectedError: The draft has error-level issues
            StorageError: The person's data cannot be read or written
        """
        correlation_id = create_correlation_id()
        now = ensure_aware(now) if now else utc_now()

        person, transactions = self._load_ledger(person_id, correlation_id)

        result = self._transaction_validator.validate(
            draft,
            current_balance=compute_totals(transactions).balance,
            now=now,
        )
        if not result.is_valid:
            self._audit_logger.log_transaction_rejected(
                person_id=person_id,
                issues=[issue.model_dump() for issue in result.issues],
                correlation_id=correlation_id,
            )
            raise TransactionRejectedError(result)

        transaction = Transaction.from_draft(
            timestamp_id({t.id for t in transactions}, now),
            draft,
        )
        transactions.append(transaction)
        updated, changed = self._commit(person, transactions, correlation_id)

        self._audit_logger.log_transaction_recorded(
            person_id=person_id,
            transaction_id=transaction.id,
            kind=transaction.kind.value,
            amount=transaction.amount,
            correlation_id=correlation_id,
        )

        return TransactionOutcome(
            person=updated,
            transaction=transaction,
            totals_changed=changed,
            warnings=result.warnings,
        )

    def delete_transaction(
        self,
        person_id: str,
        transaction_id: str,
    ) -> TransactionOutcome:
        """
        Remove one transaction and recompute the person's totals.

        Raises:
            NotFoundError: Unknown person or transaction
        """
        correlation_id = create_correlation_id()

        person, transactions = self._load_ledger(person_id, correlation_id)

        removed = next((t for t in transactions if t.id == transaction_id), None)
        if removed is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        remaining = [t for t in transactions if t.id != transaction_id]
        updated, changed = self._commit(person, remaining, correlation_id)

        self._audit_logger.log_transaction_deleted(
            person_id=person_id,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        )

        return TransactionOutcome(
            person=updated,
            transaction=removed,
            totals_changed=changed,
        )

    def recalculate(self, person_id: str) -> Optional[TransactionOutcome]:
        """
        Bring a person's stored totals in line with its transactions.

        Idempotent: when nothing changed, nothing is written or audited.

        Returns:
            The outcome, or None if the person is unknown or unreadable
        """
        correlation_id = create_correlation_id()

        try:
            person, transactions = self._load_ledger(person_id, correlation_id)
        except StorageError:
            return None

        totals = compute_totals(transactions)
        if totals_match(person, totals):
            return TransactionOutcome(person=person, totals_changed=False)

        updated, _ = self._commit(person, transactions, correlation_id)

        return TransactionOutcome(person=updated, totals_changed=True)

    # -------------------------------------------------------------------------
    # Portfolio
    # -------------------------------------------------------------------------

    def portfolio_summary(self) -> PortfolioSummary:
        return summarize_portfolio(self.list_people())

    def export_people(self, now: Optional[datetime] = None) -> tuple[str, str]:
        """
        Export the people index for download.

        Returns:
            (filename, JSON document)
        """
        now = ensure_aware(now) if now else utc_now()
        people = self.list_people()

        document = json.dumps(
            {"people": [p.model_dump(mode="json") for p in people]},
            indent=2,
            ensure_ascii=False,
        )

        self._audit_logger.log_data_exported(
            people_count=len(people),
            correlation_id=create_correlation_id(),
        )
        return EXPORT_FILENAME.format(date=now.date().isoformat()), document

    def ensure_seeded(self) -> bool:
        """
        Fill an empty store with the example people.

        Does nothing when seeding is disabled, when people already exist,
        or when the people index is unreadable (it is never overwritten).

        Returns:
            True if sample data was written
        """
        if not self._settings.seed_sample_data:
            return False

        correlation_id = create_correlation_id()
        try:
            if self._repository.list_people():
                return False
        except StorageError as e:
            self._storage_failed(e, correlation_id)
            return False

        people = sample_people()
        try:
            for person in people:
                self._repository.save_transactions(
                    person.id, sample_transactions(person.id)
                )
            self._repository.save_people(people)
        except StorageError as e:
            self._storage_failed(e, correlation_id)
            return False

        self._audit_logger.log_sample_data_seeded(
            people_count=len(people),
            correlation_id=correlation_id,
        )
        return True


class ShareFlow:
    """
    Commands over share links.

    Refused openings (expired, wrong password) are audited as
    warnings. There is no lockout after repeated wrong passwords.
    """

    def __init__(
        self,
        repository: LedgerStorageInterface,
        builder: Optional[ShareSnapshotBuilder] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._builder = builder or ShareSnapshotBuilder(repository)
        self._audit_logger = audit_logger or AuditLogger()

    def create_link(
        self,
        person_id: str,
        include_transactions: bool = False,
        include_personal_info: bool = False,
        password_protected: bool = False,
        expires_in: Optional[timedelta] = None,
        password: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CreatedShareLink:
        """
        Create a share link.

        Raises:
            NotFoundError: Unknown person
            ValueError: Lifetime or password not acceptable
        """
        correlation_id = create_correlation_id()

        try:
            created = self._builder.create_link(
                person_id,
                include_transactions=include_transactions,
                include_personal_info=include_personal_info,
                password_protected=password_protected,
                expires_in=expires_in,
                password=password,
                now=now,
            )
        except StorageError as e:
            log_storage_failure(self._audit_logger, e, correlation_id)
            raise

        self._audit_logger.log_share_link_created(
            link_id=created.link.id,
            person_id=person_id,
            expires_at=created.link.expires_at,
            is_password_protected=created.link.is_password_protected,
            correlation_id=correlation_id,
        )
        return created

    def resolve(
        self,
        link_id: str,
        password: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ShareResolution:
        """Open a link. Unreadable stored data resolves as NOT_FOUND."""
        correlation_id = create_correlation_id()

        try:
            resolution = self._builder.resolve(link_id, password=password, now=now)
        except StorageError as e:
            log_storage_failure(self._audit_logger, e, correlation_id)
            return ShareResolution(
                status=ShareStatus.NOT_FOUND,
                link_id=link_id,
                message="This link does not exist or was deleted.",
            )

        if resolution.is_resolved:
            self._audit_logger.log_share_link_resolved(
                link_id=link_id,
                views=resolution.views or 0,
                correlation_id=correlation_id,
            )
        else:
            self._audit_logger.log_share_link_refused(
                link_id=link_id,
                reason=resolution.status.value,
                correlation_id=correlation_id,
            )
        return resolution

    def list_links(self) -> list[SharedLink]:
        """Every link in creation order; empty if unreadable."""
        try:
            return self._repository.list_shared_links()
        except StorageError as e:
            log_storage_failure(self._audit_logger, e, create_correlation_id())
            return []

    def delete_link(self, link_id: str) -> bool:
        correlation_id = create_correlation_id()

        try:
            deleted = self._repository.delete_shared_link(link_id)
        except StorageError as e:
            log_storage_failure(self._audit_logger, e, correlation_id)
            raise

        if deleted:
            self._audit_logger.log_share_link_deleted(
                link_id=link_id,
                correlation_id=correlation_id,
            )
        return deleted

    def stats(self, now: Optional[datetime] = None) -> ShareLinkStats:
        return link_stats(self.list_links(), now)


def create_backend(storage_settings: Optional[StorageSettings] = None) -> KeyValueBackend:
    """Build the key-value backend selected by configuration."""
    storage_settings = storage_settings or get_settings().storage

    if storage_settings.backend == "memory":
        return InMemoryBackend()
    if storage_settings.backend == "google_sheets":
        client = GoogleSheetsClient()
        # Connect now rather than on the first read, so a broken
        # configuration reaches the caller's fallback
        client.get_store_sheet()
        return GoogleSheetsBackend(client)
    return JsonFileBackend(storage_settings.data_path)


def create_app_components(
    backend: Optional[KeyValueBackend] = None,
    settings: Optional[AppSettings] = None,
    storage_settings: Optional[StorageSettings] = None,
) -> tuple[LedgerFlow, ShareFlow, AuditLogger]:
    """
    Factory function to create all application components.

    Args:
        backend: Key-value backend to use. When None, the configured one
                is built; if that fails, an in-memory store is used.
        settings: Application settings override
        storage_settings: Storage settings override

    Returns:
        (ledger_flow, share_flow, audit_logger)
    """
    storage_settings = storage_settings or get_settings().storage

    if backend is None:
        try:
            backend = create_backend(storage_settings)
        except Exception as e:
            # Storage not configured - continue in memory
            structlog.get_logger().warning(
                "storage_not_configured",
                backend=storage_settings.backend,
                error=str(e),
            )
            backend = InMemoryBackend()

    repository = LedgerRepository(backend, key_prefix=storage_settings.key_prefix)
    audit_logger = AuditLogger(
        KeyValueAuditStorage(
            backend,
            key_prefix=storage_settings.key_prefix,
            max_events=storage_settings.audit_max_events,
        )
    )

    ledger_flow = LedgerFlow(
        repository,
        audit_logger=audit_logger,
        settings=settings,
    )
    share_flow = ShareFlow(
        repository,
        audit_logger=audit_logger,
    )

    return ledger_flow, share_flow, audit_logger
