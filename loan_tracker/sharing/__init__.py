"""Share link package."""

from loan_tracker.sharing.builder import (
    ShareSnapshotBuilder,
    build_share_url,
    link_stats,
    parse_share_url,
)
from loan_tracker.sharing.passwords import (
    generate_password,
    hash_password,
    verify_password,
)

__all__ = [
    "ShareSnapshotBuilder",
    "build_share_url",
    "link_stats",
    "parse_share_url",
    "generate_password",
    "hash_password",
    "verify_password",
]
