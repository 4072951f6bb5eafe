"""
Integration tests for LedgerFlow and ShareFlow against the in-memory store.
"""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from loan_tracker.audit import AuditLogger
from loan_tracker.config import AppSettings, StorageSettings
from loan_tracker.ledger import compute_totals, totals_match
from loan_tracker.models import (
    AuditEventType,
    PersonalInfo,
    PersonStatus,
    ShareStatus,
    TransactionDraft,
    TransactionKind,
)
from loan_tracker.orchestrator import (
    LedgerFlow,
    ShareFlow,
    create_app_components,
    create_backend,
    timestamp_id,
)
from loan_tracker.services.storage import (
    InMemoryBackend,
    JsonFileBackend,
    KeyValueBackend,
    LedgerRepository,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    StoreUnreadableError,
)
from loan_tracker.validation import PersonRejectedError, TransactionRejectedError


NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def draft(kind: TransactionKind, amount: int, description: str = "", days: int = 0):
    return TransactionDraft(
        kind=kind,
        amount=Decimal(amount),
        date=NOW + timedelta(days=days),
        description=description or kind.value,
    )


class FailingWritesBackend(InMemoryBackend):
    """In-memory backend whose writes to one chosen key fail."""

    def __init__(self):
        super().__init__()
        self.fail_key = None

    def set(self, key: str, value: str) -> None:
        if key == self.fail_key:
            raise StorageError(f"Failed to write {key}")
        super().set(key, value)


class UnreachableBackend(KeyValueBackend):
    """A store that cannot be reached at all."""

    def get(self, key):
        raise StorageConnectionError("Google Sheets unavailable")

    def set(self, key, value):
        raise StorageConnectionError("Google Sheets unavailable")

    def delete(self, key):
        raise StorageConnectionError("Google Sheets unavailable")

    def keys(self):
        raise StorageConnectionError("Google Sheets unavailable")


def event_types(audit_storage) -> list[AuditEventType]:
    return [e.event_type for e in reversed(audit_storage.get_recent_events(limit=1000))]


class TestTimestampId:
    """Ids for people and transactions."""

    def test_millisecond_timestamp(self):
        assert timestamp_id(set(), NOW) == str(int(NOW.timestamp() * 1000))

    def test_bumped_until_unique(self):
        first = timestamp_id(set(), NOW)
        second = timestamp_id({first}, NOW)
        third = timestamp_id({first, second}, NOW)
        assert int(second) == int(first) + 1
        assert int(third) == int(first) + 2


class TestPeople:
    """add_person, delete_person, list_people"""

    def test_add_person(self, ledger_flow, repository):
        person = ledger_flow.add_person("  Barbara ", now=NOW)

        assert person.name == "Barbara"
        assert person.total_loaned == Decimal("0")
        assert person.balance == Decimal("0")
        assert person.status == PersonStatus.PAID
        assert person.created_at == NOW
        assert repository.get_person(person.id) == person
        assert repository.has_transactions(person.id)
        assert ledger_flow.list_people() == [person]

    def test_add_person_with_personal_info(self, ledger_flow):
        person = ledger_flow.add_person(
            "Keiber", personal_info=PersonalInfo(email="k@example.com"), now=NOW
        )
        assert person.personal_info.email == "k@example.com"

    def test_empty_personal_info_is_dropped(self, ledger_flow):
        person = ledger_flow.add_person("Keiber", personal_info=PersonalInfo(), now=NOW)
        assert person.personal_info is None

    def test_people_added_in_the_same_millisecond_get_distinct_ids(self, ledger_flow):
        first = ledger_flow.add_person("Jose", now=NOW)
        second = ledger_flow.add_person("Jose Castillo", now=NOW)
        assert first.id != second.id

    def test_duplicate_name_rejected(self, ledger_flow, audit_storage):
        ledger_flow.add_person("Jose", now=NOW)
        with pytest.raises(PersonRejectedError):
            ledger_flow.add_person("jose", now=NOW)

        assert len(ledger_flow.list_people()) == 1
        assert AuditEventType.PERSON_REJECTED in event_types(audit_storage)

    def test_delete_person_removes_transactions(self, ledger_flow, repository, backend):
        person = ledger_flow.add_person("Pedro", now=NOW)
        ledger_flow.record_transaction(person.id, draft(TransactionKind.LOAN, 240000), now=NOW)

        assert ledger_flow.delete_person(person.id)
        assert ledger_flow.list_people() == []
        assert not backend.contains(repository.transactions_key(person.id))
        assert not ledger_flow.delete_person(person.id)

    def test_unreadable_people_index_fails_closed(self, backend, ledger_flow, audit_storage):
        backend.set("loanTracker_people", "{broken")

        assert ledger_flow.list_people() == []
        assert ledger_flow.portfolio_summary().people_count == 0
        assert AuditEventType.STORE_UNREADABLE in event_types(audit_storage)

    def test_add_person_refuses_to_overwrite_unreadable_index(self, backend, ledger_flow):
        backend.set("loanTracker_people", "{broken")
        with pytest.raises(StoreUnreadableError):
            ledger_flow.add_person("Barbara", now=NOW)
        assert backend.get("loanTracker_people") == "{broken"


class TestTransactions:
    """record_transaction, delete_transaction, recalculate"""

    def test_partially_repaid_scenario(self, ledger_flow):
        person = ledger_flow.add_person("Carlos Rodríguez", now=NOW)
        ledger_flow.record_transaction(person.id, draft(TransactionKind.LOAN, 100000), now=NOW)
        ledger_flow.record_transaction(person.id, draft(TransactionKind.LOAN, 50000), now=NOW)
        outcome = ledger_flow.record_transaction(
            person.id, draft(TransactionKind.PAYMENT, 50000), now=NOW
        )

        assert outcome.totals_changed
        assert outcome.person.total_loaned == Decimal("150000")
        assert outcome.person.total_paid == Decimal("50000")
        assert outcome.person.balance == Decimal("100000")
        assert outcome.person.status == PersonStatus.PENDING

    def test_fully_repaid_scenario(self, ledger_flow, repository):
        person = ledger_flow.add_person("María González", now=NOW)
        ledger_flow.record_transaction(person.id, draft(TransactionKind.LOAN, 75000), now=NOW)
        for _ in range(3):
            outcome = ledger_flow.record_transaction(
                person.id, draft(TransactionKind.PAYMENT, 25000), now=NOW
            )

        assert outcome.person.balance == Decimal("0")
        assert outcome.person.status == PersonStatus.PAID
        assert repository.get_person(person.id) == outcome.person
        assert len({t.id for t in repository.get_transactions(person.id)}) == 4

    def test_warnings_are_returned(self, ledger_flow):
        person = ledger_flow.add_person("Barbara", now=NOW)
        ledger_flow.record_transaction(person.id, draft(TransactionKind.LOAN, 100), now=NOW)
        outcome = ledger_flow.record_transaction(
            person.id, draft(TransactionKind.PAYMENT, 150), now=NOW
        )

        assert len(outcome.warnings) == 1
        assert outcome.person.balance == Decimal("-50")
        assert outcome.person.status == PersonStatus.PAID

    def test_rejected_draft_is_not_stored(self, ledger_flow, repository, audit_storage):
        person = ledger_flow.add_person("Barbara", now=NOW)

        with pytest.raises(TransactionRejectedError) as exc_info:
            ledger_flow.record_transaction(person.id, draft(TransactionKind.LOAN, 0), now=NOW)

        assert exc_info.value.result.has_errors
        assert repository.get_transactions(person.id) == []
        assert AuditEventType.TRANSACTION_REJECTED in event_types(audit_storage)

    def test_unknown_person(self, ledger_flow):
        with pytest.raises(NotFoundError):
            ledger_flow.record_transaction("nobody", draft(TransactionKind.LOAN, 10), now=NOW)

    def test_delete_transaction_reduces_total(self, ledger_flow):
        person = ledger_flow.add_person("Juan Pérez", now=NOW)
        ledger_flow.record_transaction(person.id, draft(TransactionKind.LOAN, 200000), now=NOW)
        payment = ledger_flow.record_transaction(
            person.id, draft(TransactionKind.PAYMENT, 50000), now=NOW
        )
        before = payment.person

        outcome = ledger_flow.delete_transaction(person.id, payment.transaction.id)

        assert outcome.transaction == payment.transaction
        assert outcome.person.total_paid == before.total_paid - Decimal("50000")
        assert outcome.person.total_loaned == before.total_loaned
        assert outcome.person.balance == Decimal("200000")

    def test_delete_unknown_transaction(self, ledger_flow):
        person = ledger_flow.add_person("Juan Pérez", now=NOW)
        with pytest.raises(NotFoundError):
            ledger_flow.delete_transaction(person.id, "missing")

    def test_recalculate_is_idempotent(self, ledger_flow, repository, backend, audit_storage):
        """A second recalculation performs no write and no audit event."""
        person = ledger_flow.add_person("Keiber", now=NOW)
        ledger_flow.record_transaction(person.id, draft(TransactionKind.LOAN, 30000), now=NOW)

        # Simulate stale totals written by an older version
        stale = repository.get_person(person.id).model_copy(
            update={"total_loaned": Decimal("0"), "balance": Decimal("0"),
                    "status": PersonStatus.PAID}
        )
        repository.save_person(stale)

        first = ledger_flow.recalculate(person.id)
        assert first.totals_changed
        assert first.person.balance == Decimal("30000")

        writes_before = list(backend.writes)
        events_before = len(audit_storage.get_recent_events(limit=1000))

        second = ledger_flow.recalculate(person.id)

        assert not second.totals_changed
        assert backend.writes == writes_before
        assert len(audit_storage.get_recent_events(limit=1000)) == events_before

    def test_recalculate_fails_closed(self, ledger_flow, backend, repository, audit_storage):
        assert ledger_flow.recalculate("nobody") is None

        person = ledger_flow.add_person("Jose", now=NOW)
        backend.set(repository.transactions_key(person.id), "not json")
        assert ledger_flow.recalculate(person.id) is None
        assert AuditEventType.STORE_UNREADABLE in event_types(audit_storage)

    def test_failed_transaction_write_keeps_stored_totals(self, audit_logger):
        """The person record is put back when the transaction list fails to save."""
        backend = FailingWritesBackend()
        repository = LedgerRepository(backend)
        flow = LedgerFlow(repository, audit_logger=audit_logger,
                          settings=AppSettings(seed_sample_data=False))
        person = flow.add_person("Carlos", now=NOW)
        flow.record_transaction(person.id, draft(TransactionKind.LOAN, 100), now=NOW)

        backend.fail_key = repository.transactions_key(person.id)
        with pytest.raises(StorageError):
            flow.record_transaction(person.id, draft(TransactionKind.PAYMENT, 40), now=NOW)

        stored = repository.get_person(person.id)
        assert stored.balance == Decimal("100")
        assert totals_match(stored, compute_totals(repository.get_transactions(person.id)))

    def test_failed_person_write_leaves_transactions_alone(self, audit_logger):
        backend = FailingWritesBackend()
        repository = LedgerRepository(backend)
        flow = LedgerFlow(repository, audit_logger=audit_logger,
                          settings=AppSettings(seed_sample_data=False))
        person = flow.add_person("Carlos", now=NOW)
        loan = flow.record_transaction(person.id, draft(TransactionKind.LOAN, 100), now=NOW)

        backend.fail_key = repository.people_key
        with pytest.raises(StorageError):
            flow.delete_transaction(person.id, loan.transaction.id)

        assert [t.id for t in repository.get_transactions(person.id)] == [loan.transaction.id]
        stored = repository.get_person(person.id)
        assert totals_match(stored, compute_totals(repository.get_transactions(person.id)))


class TestPersonView:
    """get_person_view"""

    def test_view_with_upcoming_payments(self, ledger_flow):
        person = ledger_flow.add_person("Pedro", now=NOW)
        ledger_flow.record_transaction(
            person.id, draft(TransactionKind.LOAN, 240000, "Préstamo para moto"), now=NOW
        )
        for month in range(1, 6):
            ledger_flow.record_transaction(
                person.id,
                draft(TransactionKind.PAYMENT, 40000, f"Cuota {month}/6 (Programada)",
                      days=30 * month),
                now=NOW,
            )

        view = ledger_flow.get_person_view(person.id, now=NOW)

        assert view.person.id == person.id
        assert len(view.transactions) == 6
        assert [t.description for t in view.upcoming_payments] == [
            "Cuota 1/6 (Programada)",
            "Cuota 2/6 (Programada)",
            "Cuota 3/6 (Programada)",
        ]
        assert view.progress_percent == 83

    def test_unknown_person(self, ledger_flow):
        assert ledger_flow.get_person_view("nobody", now=NOW) is None

    def test_unreadable_transactions(self, ledger_flow, backend, repository):
        person = ledger_flow.add_person("Jose", now=NOW)
        backend.set(repository.transactions_key(person.id), "[{]")
        assert ledger_flow.get_person_view(person.id, now=NOW) is None


class TestPortfolio:
    """portfolio_summary, export_people, ensure_seeded"""

    def test_portfolio_summary(self, ledger_flow):
        a = ledger_flow.add_person("A", now=NOW)
        b = ledger_flow.add_person("B", now=NOW)
        ledger_flow.record_transaction(a.id, draft(TransactionKind.LOAN, 1000), now=NOW)
        ledger_flow.record_transaction(b.id, draft(TransactionKind.LOAN, 500), now=NOW)
        ledger_flow.record_transaction(b.id, draft(TransactionKind.PAYMENT, 500), now=NOW)

        summary = ledger_flow.portfolio_summary()
        assert summary.total_loaned == Decimal("1500")
        assert summary.total_paid == Decimal("500")
        assert summary.balance == Decimal("1000")
        assert summary.pending_count == 1
        assert summary.paid_count == 1

    def test_export_people(self, ledger_flow):
        ledger_flow.add_person("María González", now=NOW)

        filename, document = ledger_flow.export_people(now=NOW)

        assert filename == "prestamos_2025-01-15.json"
        data = json.loads(document)
        assert [p["name"] for p in data["people"]] == ["María González"]
        assert document.startswith('{\n  "people"')

    def test_seed_empty_store(self, repository, audit_logger, audit_storage):
        flow = LedgerFlow(
            repository,
            audit_logger=audit_logger,
            settings=AppSettings(seed_sample_data=True),
        )

        assert flow.ensure_seeded()
        people = flow.list_people()
        assert len(people) == 8
        assert repository.get_person("2").status == PersonStatus.PAID
        assert [t.id for t in repository.get_transactions("1")] == ["101", "102", "103"]
        assert AuditEventType.SAMPLE_DATA_SEEDED in event_types(audit_storage)

        # Already seeded
        assert not flow.ensure_seeded()

        # Seeded totals are already consistent
        for person in people:
            assert not flow.recalculate(person.id).totals_changed

    def test_seeding_disabled(self, ledger_flow):
        assert not ledger_flow.ensure_seeded()
        assert ledger_flow.list_people() == []

    def test_seeding_skips_populated_store(self, repository, audit_logger):
        flow = LedgerFlow(
            repository,
            audit_logger=audit_logger,
            settings=AppSettings(seed_sample_data=True),
        )
        flow.add_person("Barbara", now=NOW)
        assert not flow.ensure_seeded()
        assert [p.name for p in flow.list_people()] == ["Barbara"]

    def test_seeding_never_overwrites_unreadable_index(self, backend, repository, audit_logger):
        backend.set("loanTracker_people", "oops")
        flow = LedgerFlow(
            repository,
            audit_logger=audit_logger,
            settings=AppSettings(seed_sample_data=True),
        )
        assert not flow.ensure_seeded()
        assert backend.get("loanTracker_people") == "oops"


class TestShareFlow:
    """ShareFlow commands and their audit trail."""

    def test_create_resolve_list_delete(self, ledger_flow, share_flow, audit_storage):
        person = ledger_flow.add_person("Carlos Rodríguez", now=NOW)
        ledger_flow.record_transaction(person.id, draft(TransactionKind.LOAN, 1000), now=NOW)

        created = share_flow.create_link(person.id, include_transactions=True, now=NOW)
        assert [link.id for link in share_flow.list_links()] == [created.link.id]

        resolution = share_flow.resolve(created.link.id, now=NOW)
        assert resolution.is_resolved
        assert len(resolution.snapshot.transactions) == 1
        assert share_flow.stats(now=NOW).total_views == 1

        assert share_flow.delete_link(created.link.id)
        assert share_flow.list_links() == []
        assert share_flow.resolve(created.link.id, now=NOW).status == ShareStatus.NOT_FOUND

        types = event_types(audit_storage)
        assert AuditEventType.SHARE_LINK_CREATED in types
        assert AuditEventType.SHARE_LINK_RESOLVED in types
        assert AuditEventType.SHARE_LINK_DELETED in types
        assert AuditEventType.SHARE_LINK_REFUSED in types

    def test_every_wrong_password_is_audited(self, ledger_flow, share_flow, audit_storage):
        person = ledger_flow.add_person("Jose", now=NOW)
        created = share_flow.create_link(person.id, password_protected=True, now=NOW)

        for _ in range(3):
            resolution = share_flow.resolve(created.link.id, password="nope", now=NOW)
            assert resolution.status == ShareStatus.PASSWORD_REJECTED

        refused = [
            e for e in audit_storage.get_recent_events(limit=1000)
            if e.event_type == AuditEventType.SHARE_LINK_REFUSED
        ]
        assert len(refused) == 3
        assert all(e.details["reason"] == "password_rejected" for e in refused)

    def test_unreadable_links_resolve_not_found(self, backend, share_flow, audit_storage):
        backend.set("loanTracker_sharedLinks", "[[[")

        assert share_flow.resolve("anything", now=NOW).status == ShareStatus.NOT_FOUND
        assert share_flow.list_links() == []
        assert AuditEventType.STORE_UNREADABLE in event_types(audit_storage)

    def test_delete_person_leaves_links_dangling(self, ledger_flow, share_flow):
        person = ledger_flow.add_person("Keiber", now=NOW)
        created = share_flow.create_link(person.id, now=NOW)

        ledger_flow.delete_person(person.id)

        assert len(share_flow.list_links()) == 1
        assert share_flow.resolve(created.link.id, now=NOW).status == ShareStatus.NOT_FOUND


class TestAppComponents:
    """Factory wiring."""

    def test_create_backend(self, tmp_path):
        assert isinstance(create_backend(StorageSettings(backend="memory")), InMemoryBackend)

        json_backend = create_backend(
            StorageSettings(backend="json_file", data_path=str(tmp_path / "store.json"))
        )
        assert isinstance(json_backend, JsonFileBackend)
        assert json_backend.path == tmp_path / "store.json"

    def test_create_app_components_with_backend(self):
        backend = InMemoryBackend()
        ledger_flow, share_flow, audit_logger = create_app_components(
            backend=backend,
            settings=AppSettings(seed_sample_data=False),
            storage_settings=StorageSettings(backend="memory", key_prefix="t_"),
        )

        person = ledger_flow.add_person("Barbara", now=NOW)

        assert isinstance(audit_logger, AuditLogger)
        assert "t_people" in backend.keys()
        assert f"t_transactions_{person.id}" in backend.keys()
        assert "t_auditLog" in backend.keys()
        assert share_flow.list_links() == []

    @pytest.mark.filterwarnings("ignore:Google credentials file not found")
    def test_google_sheets_without_credentials_falls_back(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(tmp_path / "missing.json"))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-id")
        storage_settings = StorageSettings(backend="google_sheets")

        with pytest.raises(StorageConnectionError):
            create_backend(storage_settings)

        ledger_flow, share_flow, _ = create_app_components(
            settings=AppSettings(seed_sample_data=True),
            storage_settings=storage_settings,
        )

        assert ledger_flow.ensure_seeded()
        assert len(ledger_flow.list_people()) == 8
        assert share_flow.list_links() == []


class TestUnreachableStore:
    """A store that cannot be reached never crashes a read."""

    @pytest.fixture
    def unreachable(self):
        return LedgerRepository(UnreachableBackend())

    def test_reads_fail_closed(self, unreachable, audit_logger, audit_storage):
        flow = LedgerFlow(unreachable, audit_logger=audit_logger,
                          settings=AppSettings(seed_sample_data=True))

        assert flow.list_people() == []
        assert flow.get_person_view("1") is None
        assert flow.recalculate("1") is None
        assert flow.portfolio_summary().people_count == 0
        assert not flow.ensure_seeded()
        assert AuditEventType.SYSTEM_ERROR in event_types(audit_storage)

    def test_share_link_resolves_not_found(self, unreachable, audit_logger):
        flow = ShareFlow(unreachable, audit_logger=audit_logger)

        assert flow.resolve("abc", now=NOW).status == ShareStatus.NOT_FOUND
        assert flow.list_links() == []
        assert flow.stats(now=NOW).total_links == 0

    def test_commands_report_the_failure(self, unreachable, audit_logger):
        flow = LedgerFlow(unreachable, audit_logger=audit_logger,
                          settings=AppSettings(seed_sample_data=False))

        with pytest.raises(StorageConnectionError):
            flow.add_person("Barbara", now=NOW)
        with pytest.raises(StorageConnectionError):
            flow.record_transaction("1", draft(TransactionKind.LOAN, 10), now=NOW)
