"""
Share Snapshot Builder

Creates share links and resolves them into a read-only snapshot.

DESIGN DECISION: The stored link record is authoritative. The URL
repeats the person id, expiry and disclosure flags for readability,
but resolution only trusts the record found by link id.

Resolution order:
1. Unknown link id -> NOT_FOUND
2. now >= expires_at -> EXPIRED (terminal)
3. Protected and no password -> PASSWORD_REQUIRED
4. Protected and wrong password -> PASSWORD_REJECTED (no lockout)
5. Person missing from the store and from the sample data -> NOT_FOUND
6. Otherwise RESOLVED, and the view counter goes up by one

CRITICAL: Only the RESOLVED path writes. Refused openings never
touch the view counter.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

from loan_tracker.config import SharingSettings, get_settings
from loan_tracker.ledger.aggregator import repayment_progress, status_for_balance
from loan_tracker.ledger.sample_data import sample_person, sample_transactions
from loan_tracker.models.ledger import ensure_aware, utc_now
from loan_tracker.models.sharing import (
    CreatedShareLink,
    SharedLink,
    SharedSnapshot,
    ShareLinkStats,
    ShareResolution,
    ShareStatus,
    ShareUrlParams,
)
from loan_tracker.services.storage import LedgerStorageInterface, NotFoundError
from loan_tracker.sharing.passwords import (
    generate_password,
    hash_password,
    verify_password,
)


LINK_ID_BYTES = 9


def _to_millis(value: datetime) -> int:
    return int(ensure_aware(value).timestamp() * 1000)


def build_share_url(
    base_url: str,
    link_id: str,
    person_id: str,
    expires_at: datetime,
    includes_transactions: bool,
    includes_personal_info: bool,
) -> str:
    """<base>/?share=<id>&pid=<person>&exp=<ms>&tx=<0|1>&pi=<0|1>"""
    query = urlencode({
        "share": link_id,
        "pid": person_id,
        "exp": _to_millis(expires_at),
        "tx": int(includes_transactions),
        "pi": int(includes_personal_info),
    })
    return f"{base_url.rstrip('/')}/?{query}"


def parse_share_url(url: str) -> ShareUrlParams:
    """
    Read the query parameters of a share URL.

    Raises:
        ValueError: If the URL carries no share id
    """
    params = parse_qs(urlsplit(url).query)

    def first(name: str) -> Optional[str]:
        values = params.get(name)
        return values[0] if values else None

    link_id = first("share")
    if not link_id:
        raise ValueError("Not a share link: missing 'share' parameter")

    expires_at = None
    exp = first("exp")
    if exp:
        try:
            expires_at = datetime.fromtimestamp(int(exp) / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            expires_at = None

    return ShareUrlParams(
        link_id=link_id,
        person_id=first("pid"),
        expires_at=expires_at,
        includes_transactions=first("tx") == "1",
        includes_personal_info=first("pi") == "1",
    )


def link_stats(links: Iterable[SharedLink], now: Optional[datetime] = None) -> ShareLinkStats:
    """Counts for the shared links page."""
    now = ensure_aware(now) if now else utc_now()
    links = list(links)
    return ShareLinkStats(
        total_links=len(links),
        active_links=sum(1 for link in links if not link.is_expired(now)),
        total_views=sum(link.views for link in links),
    )


class ShareSnapshotBuilder:
    """
    Creates and resolves share links against a ledger repository.

    Audit logging is left to the caller (ShareFlow), which sees the
    returned status.
    """

    def __init__(
        self,
        repository: LedgerStorageInterface,
        settings: Optional[SharingSettings] = None,
        bcrypt_rounds: Optional[int] = None,
    ):
        self._repository = repository
        self._settings = settings or get_settings().sharing
        self._rounds = bcrypt_rounds or self._settings.bcrypt_rounds

    def _new_link_id(self) -> str:
        while True:
            link_id = secrets.token_urlsafe(LINK_ID_BYTES)
            if self._repository.get_shared_link(link_id) is None:
                return link_id

    def _lifetime(self, expires_in: Optional[timedelta]) -> timedelta:
        if expires_in is None:
            return timedelta(days=self._settings.default_expiry_days)
        if expires_in <= timedelta(0):
            raise ValueError("Link lifetime must be positive")
        if expires_in > timedelta(days=self._settings.max_expiry_days):
            raise ValueError(
                f"Link lifetime cannot exceed {self._settings.max_expiry_days} days"
            )
        return expires_in

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
        Create and store a share link for one person.

        Args:
            person_id: Person whose status is shared
            include_transactions: Disclose the transaction list
            include_personal_info: Disclose contact details
            password_protected: Require a password to open
            expires_in: Lifetime; defaults to the configured expiry
            password: Password to use; generated when omitted
            now: Creation time (defaults to the current time)

        Returns:
            CreatedShareLink. Its password is the only copy of the cleartext.

        Raises:
            NotFoundError: If the person is not in the store
            ValueError: If the lifetime or password is not acceptable
        """
        person = self._repository.get_person(person_id)
        if person is None:
            raise NotFoundError(f"Person not found: {person_id}")

        lifetime = self._lifetime(expires_in)
        created_at = ensure_aware(now) if now else utc_now()
        expires_at = created_at + lifetime

        cleartext = None
        password_hash = None
        if password_protected:
            cleartext = password or generate_password(
                self._settings.generated_password_bytes
            )
            password_hash = hash_password(cleartext, rounds=self._rounds)

        link_id = self._new_link_id()
        link = SharedLink(
            id=link_id,
            person_id=person.id,
            person_name=person.name,
            url=build_share_url(
                self._settings.normalized_base_url,
                link_id,
                person.id,
                expires_at,
                include_transactions,
                include_personal_info,
            ),
            created_at=created_at,
            expires_at=expires_at,
            includes_transactions=include_transactions,
            includes_personal_info=include_personal_info,
            is_password_protected=password_protected,
            password_hash=password_hash,
        )
        self._repository.save_shared_link(link)

        return CreatedShareLink(link=link, password=cleartext)

    def resolve(
        self,
        link_id: str,
        password: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ShareResolution:
        """
        Resolve a link id into a snapshot, or say why not.

        Raises:
            StoreUnreadableError: If stored data cannot be parsed
        """
        now = ensure_aware(now) if now else utc_now()

        link = self._repository.get_shared_link(link_id)
        if link is None:
            return ShareResolution(
                status=ShareStatus.NOT_FOUND,
                link_id=link_id,
                message="This link does not exist or was deleted.",
            )

        if link.is_expired(now):
            return ShareResolution(
                status=ShareStatus.EXPIRED,
                link_id=link_id,
                message="This link has expired.",
            )

        if link.is_password_protected:
            if not password:
                return ShareResolution(
                    status=ShareStatus.PASSWORD_REQUIRED,
                    link_id=link_id,
                    message="This link is password protected.",
                )
            if not verify_password(password, link.password_hash or ""):
                return ShareResolution(
                    status=ShareStatus.PASSWORD_REJECTED,
                    link_id=link_id,
                    message="Incorrect password.",
                )

        snapshot = self._snapshot(link)
        if snapshot is None:
            return ShareResolution(
                status=ShareStatus.NOT_FOUND,
                link_id=link_id,
                message="The person behind this link is no longer tracked.",
            )

        viewed = link.model_copy(update={"views": link.views + 1})
        self._repository.save_shared_link(viewed)

        return ShareResolution(
            status=ShareStatus.RESOLVED,
            link_id=link_id,
            snapshot=snapshot,
            views=viewed.views,
        )

    def _snapshot(self, link: SharedLink) -> Optional[SharedSnapshot]:
        person = self._repository.get_person(link.person_id)
        from_store = person is not None
        if person is None:
            person = sample_person(link.person_id)
        if person is None:
            return None

        transactions = None
        if link.includes_transactions:
            if from_store:
                transactions = self._repository.get_transactions(person.id)
            else:
                transactions = sample_transactions(person.id)

        personal_info = None
        if link.includes_personal_info:
            personal_info = person.personal_info

        return SharedSnapshot(
            person_id=person.id,
            name=person.name,
            total_loaned=person.total_loaned,
            total_paid=person.total_paid,
            balance=person.balance,
            status=status_for_balance(person.balance),
            progress_percent=repayment_progress(person.total_loaned, person.total_paid),
            transactions=transactions,
            personal_info=personal_info,
        )
