"""
Share Link Passwords

Each protected link gets its own bcrypt verifier. The cleartext is
shown to the owner once and never stored.
"""

import secrets

import bcrypt


# bcrypt only looks at the first 72 bytes and refuses longer input
MAX_PASSWORD_BYTES = 72


def generate_password(num_bytes: int = 6) -> str:
    """Random url-safe password, easy to paste into a message."""
    return secrets.token_urlsafe(num_bytes)


def hash_password(password: str, rounds: int = 12) -> str:
    """bcrypt verifier for a link password."""
    encoded = password.encode("utf-8")
    if not encoded:
        raise ValueError("Password cannot be empty")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored verifier. Never raises."""
    encoded = password.encode("utf-8")
    if not encoded or len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
    except ValueError:
        # Malformed verifier
        return False
