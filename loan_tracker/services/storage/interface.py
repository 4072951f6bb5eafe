"""
Abstract Storage Interface

DESIGN DECISION: Storage is split into two layers.

1. KeyValueBackend: a flat string-to-string store, the same shape as
   browser local storage. Backends know nothing about people or links.
2. LedgerStorageInterface: the typed repository every flow depends on
   (get_person, save_transactions, ...). It owns the key layout and the
   JSON encoding.

This allows us to:
1. Use in-memory storage for testing
2. Keep data in a local JSON file for personal use
3. Put the same data in Google Sheets without touching business logic

NOTE: There is no locking or versioning. Two processes writing the
same backend can overwrite each other's last write.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from loan_tracker.models.audit import AuditEvent
from loan_tracker.models.ledger import Person, Transaction
from loan_tracker.models.sharing import SharedLink


class KeyValueBackend(ABC):
    """
    Abstract flat key-value store.

    Values are opaque strings (JSON documents in practice).
    """

    # Longest value set() accepts; None means unlimited
    max_value_length: Optional[int] = None

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read a value.

        Returns:
            The stored string, or None if the key is absent

        Raises:
            StoreUnreadableError: If the backend itself cannot be parsed
            StorageConnectionError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Write a value, replacing any previous one.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if the key existed
        """
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """List every stored key."""
        pass

    def contains(self, key: str) -> bool:
        return self.get(key) is not None


class LedgerStorageInterface(ABC):
    """
    Abstract interface for people, transactions and share links.

    Any implementation must keep each person's transactions
    separate from the people index.
    """

    # People

    @abstractmethod
    def has_people_index(self) -> bool:
        """True once a people index has been written (even if empty)."""
        pass

    @abstractmethod
    def list_people(self) -> list[Person]:
        """
        List people in stored order.

        Raises:
            StoreUnreadableError: If the people index cannot be parsed
        """
        pass

    @abstractmethod
    def get_person(self, person_id: str) -> Optional[Person]:
        """
        Retrieve a person by id.

        Returns:
            The person if found, None otherwise

        Raises:
            StoreUnreadableError: If the people index cannot be parsed
        """
        pass

    @abstractmethod
    def save_people(self, people: list[Person]) -> None:
        """Replace the whole people index."""
        pass

    @abstractmethod
    def save_person(self, person: Person) -> None:
        """Insert or replace one person, keeping index order."""
        pass

    @abstractmethod
    def delete_person(self, person_id: str) -> bool:
        """
        Delete a person together with its transaction list.

        Returns:
            True if the person existed
        """
        pass

    # Transactions

    @abstractmethod
    def has_transactions(self, person_id: str) -> bool:
        """True if a transaction list was ever written for the person."""
        pass

    @abstractmethod
    def get_transactions(self, person_id: str) -> list[Transaction]:
        """
        Get a person's transactions in stored order.

        Returns:
            The list, empty if nothing was stored

        Raises:
            StoreUnreadableError: If the stored list cannot be parsed
        """
        pass

    @abstractmethod
    def save_transactions(
        self,
        person_id: str,
        transactions: list[Transaction],
    ) -> None:
        """Replace a person's transaction list."""
        pass

    # Shared links

    @abstractmethod
    def list_shared_links(self) -> list[SharedLink]:
        """List share links in creation order."""
        pass

    @abstractmethod
    def get_shared_link(self, link_id: str) -> Optional[SharedLink]:
        """Retrieve a share link by id."""
        pass

    @abstractmethod
    def save_shared_link(self, link: SharedLink) -> None:
        """Insert or replace one share link."""
        pass

    @abstractmethod
    def delete_shared_link(self, link_id: str) -> bool:
        """
        Delete a share link.

        Returns:
            True if the link existed
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only: events are never modified. An
    implementation may drop the oldest events to bound its size.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for one user action, in chronological order."""
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StoreUnreadableError(StorageError):
    """A stored payload is missing its structure or fails to parse."""

    def __init__(self, key: Optional[str], message: str):
        self.key = key
        super().__init__(message)


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
