"""
Shared fixtures.

Every fixture works against an in-memory store; nothing touches the
network or the real configuration file.
"""

from datetime import datetime, timezone

import pytest

from loan_tracker.audit import AuditLogger
from loan_tracker.config import AppSettings, SharingSettings
from loan_tracker.orchestrator import LedgerFlow, ShareFlow
from loan_tracker.services.storage import (
    InMemoryBackend,
    KeyValueAuditStorage,
    LedgerRepository,
)
from loan_tracker.sharing import ShareSnapshotBuilder


NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


class CountingBackend(InMemoryBackend):
    """In-memory backend that records every write."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.writes: list[str] = []

    def set(self, key: str, value: str) -> None:
        self.writes.append(key)
        super().set(key, value)

    def writes_to(self, key: str) -> int:
        return self.writes.count(key)


@pytest.fixture
def backend():
    return CountingBackend()


@pytest.fixture
def repository(backend):
    return LedgerRepository(backend)


@pytest.fixture
def audit_storage(backend):
    return KeyValueAuditStorage(backend)


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def app_settings():
    return AppSettings(seed_sample_data=False, upcoming_payments_limit=3)


@pytest.fixture
def sharing_settings():
    return SharingSettings(
        base_url="https://loans.example.com/",
        default_expiry_days=7,
        max_expiry_days=31,
        bcrypt_rounds=4,
    )


@pytest.fixture
def ledger_flow(repository, audit_logger, app_settings):
    return LedgerFlow(repository, audit_logger=audit_logger, settings=app_settings)


@pytest.fixture
def share_builder(repository, sharing_settings):
    return ShareSnapshotBuilder(repository, settings=sharing_settings)


@pytest.fixture
def share_flow(repository, share_builder, audit_logger):
    return ShareFlow(repository, builder=share_builder, audit_logger=audit_logger)
