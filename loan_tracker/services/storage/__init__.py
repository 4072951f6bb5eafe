"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The ledger lives in a flat key-value store; the backend (memory, JSON file
or Google Sheets) is chosen by configuration and is swappable.
"""

from loan_tracker.services.storage.interface import (
    AuditStorageInterface,
    KeyValueBackend,
    LedgerStorageInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    StoreUnreadableError,
)
from loan_tracker.services.storage.local import (
    InMemoryBackend,
    JsonFileBackend,
)
from loan_tracker.services.storage.google_sheets import (
    GoogleSheetsBackend,
    GoogleSheetsClient,
)
from loan_tracker.services.storage.repository import (
    DEFAULT_AUDIT_MAX_EVENTS,
    DEFAULT_KEY_PREFIX,
    KeyValueAuditStorage,
    LedgerRepository,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueBackend",
    "LedgerStorageInterface",
    # Exceptions
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    "StoreUnreadableError",
    # Backends
    "GoogleSheetsBackend",
    "GoogleSheetsClient",
    "InMemoryBackend",
    "JsonFileBackend",
    # Repositories
    "DEFAULT_AUDIT_MAX_EVENTS",
    "DEFAULT_KEY_PREFIX",
    "KeyValueAuditStorage",
    "LedgerRepository",
]
