"""
Ledger Repository

Typed access to the key-value store. This is the only module that
knows the key layout:

    <prefix>people                    -> [Person, ...]
    <prefix>transactions_<person id>  -> [Transaction, ...]
    <prefix>sharedLinks               -> [SharedLink, ...]
    <prefix>auditLog                  -> [AuditEvent, ...] (newest only)

Values are JSON arrays produced and parsed with pydantic TypeAdapters.
A payload that fails to parse raises StoreUnreadableError; callers
decide how to fail closed.
"""

from typing import Optional
from uuid import UUID

import structlog
from pydantic import TypeAdapter, ValidationError

from loan_tracker.models.audit import AuditEvent
from loan_tracker.models.ledger import Person, Transaction
from loan_tracker.models.sharing import SharedLink
from loan_tracker.services.storage.interface import (
    AuditStorageInterface,
    KeyValueBackend,
    LedgerStorageInterface,
    StoreUnreadableError,
)


DEFAULT_KEY_PREFIX = "loanTracker_"
DEFAULT_AUDIT_MAX_EVENTS = 500

_PEOPLE = TypeAdapter(list[Person])
_TRANSACTIONS = TypeAdapter(list[Transaction])
_LINKS = TypeAdapter(list[SharedLink])
_EVENTS = TypeAdapter(list[AuditEvent])


def _read_list(
    backend: KeyValueBackend,
    key: str,
    adapter: TypeAdapter,
) -> Optional[list]:
    """Parse a stored JSON array; None when the key is absent."""
    raw = backend.get(key)
    if raw is None:
        return None
    try:
        return adapter.validate_json(raw)
    except ValidationError as e:
        raise StoreUnreadableError(key, f"Stored value for {key} is unreadable: {e}")


def _write_list(
    backend: KeyValueBackend,
    key: str,
    adapter: TypeAdapter,
    items: list,
) -> None:
    backend.set(key, adapter.dump_json(items).decode("utf-8"))


class LedgerRepository(LedgerStorageInterface):
    """Key-value implementation of the ledger storage interface."""

    def __init__(
        self,
        backend: KeyValueBackend,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ):
        self._backend = backend
        self._prefix = key_prefix

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    # Keys

    @property
    def people_key(self) -> str:
        return f"{self._prefix}people"

    @property
    def shared_links_key(self) -> str:
        return f"{self._prefix}sharedLinks"

    def transactions_key(self, person_id: str) -> str:
        return f"{self._prefix}transactions_{person_id}"

    # People

    def has_people_index(self) -> bool:
        return self._backend.contains(self.people_key)

    def list_people(self) -> list[Person]:
        return _read_list(self._backend, self.people_key, _PEOPLE) or []

    def get_person(self, person_id: str) -> Optional[Person]:
        for person in self.list_people():
            if person.id == person_id:
                return person
        return None

    def save_people(self, people: list[Person]) -> None:
        _write_list(self._backend, self.people_key, _PEOPLE, people)

    def save_person(self, person: Person) -> None:
        people = self.list_people()
        for idx, existing in enumerate(people):
            if existing.id == person.id:
                people[idx] = person
                break
        else:
            people.append(person)
        self.save_people(people)

    def delete_person(self, person_id: str) -> bool:
        people = self.list_people()
        remaining = [p for p in people if p.id != person_id]
        existed = len(remaining) != len(people)
        if existed:
            self.save_people(remaining)
        self._backend.delete(self.transactions_key(person_id))
        return existed

    # Transactions

    def has_transactions(self, person_id: str) -> bool:
        return self._backend.contains(self.transactions_key(person_id))

    def get_transactions(self, person_id: str) -> list[Transaction]:
        key = self.transactions_key(person_id)
        return _read_list(self._backend, key, _TRANSACTIONS) or []

    def save_transactions(
        self,
        person_id: str,
        transactions: list[Transaction],
    ) -> None:
        key = self.transactions_key(person_id)
        _write_list(self._backend, key, _TRANSACTIONS, transactions)

    # Shared links

    def list_shared_links(self) -> list[SharedLink]:
        return _read_list(self._backend, self.shared_links_key, _LINKS) or []

    def get_shared_link(self, link_id: str) -> Optional[SharedLink]:
        for link in self.list_shared_links():
            if link.id == link_id:
                return link
        return None

    def save_shared_link(self, link: SharedLink) -> None:
        links = self.list_shared_links()
        for idx, existing in enumerate(links):
            if existing.id == link.id:
                links[idx] = link
                break
        else:
            links.append(link)
        _write_list(self._backend, self.shared_links_key, _LINKS, links)

    def delete_shared_link(self, link_id: str) -> bool:
        links = self.list_shared_links()
        remaining = [link for link in links if link.id != link_id]
        if len(remaining) == len(links):
            return False
        _write_list(self._backend, self.shared_links_key, _LINKS, remaining)
        return True


class KeyValueAuditStorage(AuditStorageInterface):
    """
    Audit log kept as one JSON array in the same store.

    Only the most recent events are kept: the array is capped at
    max_events, and further trimmed from the oldest end when the
    backend limits how long a value may be (a Sheets cell).
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        max_events: int = DEFAULT_AUDIT_MAX_EVENTS,
    ):
        if max_events < 1:
            raise ValueError("max_events must be at least 1")
        self._backend = backend
        self._key = f"{key_prefix}auditLog"
        self._max_events = max_events
        self._logger = structlog.get_logger()

    @property
    def max_events(self) -> int:
        return self._max_events

    def _events(self) -> list[AuditEvent]:
        return _read_list(self._backend, self._key, _EVENTS) or []

    def _encode(self, events: list[AuditEvent]) -> str:
        """Serialize the newest events that fit the backend's value limit."""
        events = events[-self._max_events:]
        payload = _EVENTS.dump_json(events).decode("utf-8")
        limit = self._backend.max_value_length
        while limit is not None and len(payload) > limit and len(events) > 1:
            # Drop the oldest quarter and try again
            events = events[max(1, len(events) // 4):]
            payload = _EVENTS.dump_json(events).decode("utf-8")
        return payload

    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event, dropping the oldest ones past the cap."""
        try:
            events = self._events()
            events.append(event)
            self._backend.set(self._key, self._encode(events))
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            self._logger.warning(
                "audit_append_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events(), key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
