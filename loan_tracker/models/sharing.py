"""
Share Link Models

A SharedLink is a capability: whoever holds the URL (and, when the
link is protected, the password) can see a read-only snapshot of one
person's loan status.

CRITICAL: The stored link only ever holds a bcrypt verifier.
The cleartext password exists once, in CreatedShareLink, and is
handed back to the owner at creation time.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from loan_tracker.models.ledger import (
    PersonalInfo,
    PersonStatus,
    Transaction,
    ensure_aware,
    utc_now,
)


class SharedLink(BaseModel):
    """One generated share reference."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    person_id: str = Field(..., min_length=1)
    person_name: str = Field(
        ...,
        description="Name cached at creation time for the links table"
    )
    url: str
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime

    # Disclosure flags
    includes_transactions: bool = False
    includes_personal_info: bool = False
    is_password_protected: bool = False
    password_hash: Optional[str] = Field(
        default=None,
        description="bcrypt verifier; never the cleartext password"
    )

    views: int = Field(default=0, ge=0)

    @field_validator('created_at', 'expires_at')
    @classmethod
    def make_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @model_validator(mode='after')
    def validate_link(self) -> 'SharedLink':
        """Expiry must come after creation; protection needs a verifier."""
        if self.expires_at <= self.created_at:
            raise ValueError("Link expiry must be after its creation time")

        if self.is_password_protected and not self.password_hash:
            raise ValueError("Password protected links need a password hash")

        return self

    def is_expired(self, now: datetime) -> bool:
        return ensure_aware(now) >= self.expires_at


class CreatedShareLink(BaseModel):
    """
    What the owner gets back from link creation.

    password is only set for protected links, and only here.
    """

    link: SharedLink
    password: Optional[str] = None


class ShareUrlParams(BaseModel):
    """Parameters carried in a share URL's query string."""

    link_id: str
    person_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    includes_transactions: bool = False
    includes_personal_info: bool = False


class ShareStatus(str, Enum):
    """Outcome of resolving a share link."""
    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    PASSWORD_REQUIRED = "password_required"
    PASSWORD_REJECTED = "password_rejected"


class SharedSnapshot(BaseModel):
    """
    The read-only view a resolved link discloses.

    transactions and personal_info are None when the link does not
    include them, even if the person has data on record.
    """

    person_id: str
    name: str
    total_loaned: Decimal
    total_paid: Decimal
    balance: Decimal
    status: PersonStatus
    progress_percent: int = Field(ge=0, le=100)
    transactions: Optional[list[Transaction]] = None
    personal_info: Optional[PersonalInfo] = None


class ShareResolution(BaseModel):
    """Result of ShareSnapshotBuilder.resolve."""

    status: ShareStatus
    link_id: str
    snapshot: Optional[SharedSnapshot] = None
    message: str = ""
    views: Optional[int] = Field(
        default=None,
        description="View count after this resolution; only set when resolved"
    )

    @property
    def is_resolved(self) -> bool:
        return self.status == ShareStatus.RESOLVED


class ShareLinkStats(BaseModel):
    """Numbers for the shared links page header."""

    total_links: int = Field(default=0, ge=0)
    active_links: int = Field(default=0, ge=0)
    total_views: int = Field(default=0, ge=0)
