"""
Security utilities for authentication.

This module provides:
- Password hashing and verification using bcrypt
- Password strength validation
- Refresh token fingerprinting (SHA-256) for server-side storage
- MAC address normalization
"""

import base64
import hashlib
import re

import bcrypt

from nac_api.core.errors import BadRequestError, InternalError

_MAC_HEX_RE = re.compile(r"^[0-9a-f]{12}$")
_MAC_SEPARATED_RE = re.compile(
    r"^[0-9a-f]{2}([:-])[0-9a-f]{2}(\1[0-9a-f]{2}){4}$|^[0-9a-f]{4}\.[0-9a-f]{4}\.[0-9a-f]{4}$"
)


def validate_password_strength(password: str) -> tuple[bool, str | None]:
    """
    Validate password meets security requirements.

    Requirements:
    - At least 8 characters
    - Contains at least one letter
    - Contains at least one digit

    Returns:
        Tuple of (is_valid, error_message)
    """
    if len(password) < 8:
        return False, "Password must be at least 8 characters long"

    if not re.search(r"[A-Za-z]", password):
        return False, "Password must contain at least one letter"

    if not re.search(r"\d", password):
        return False, "Password must contain at least one digit"

    return True, None


def _prepare_password_for_bcrypt(password: str) -> bytes:
    """
    Prepare password for bcrypt by handling long passwords.

    Bcrypt has a 72 byte limit. For passwords longer than 72 bytes,
    we SHA256 hash them first and encode as base64.
    """
    password_bytes = password.encode("utf-8")

    if len(password_bytes) <= 72:
        return password_bytes

    # SHA256 produces 32 bytes, base64 encoding produces 44 chars (well under 72)
    return base64.b64encode(hashlib.sha256(password_bytes).digest())


def get_password_hash(password: str, rounds: int = 12) -> str:
    """
    Hash a password using bcrypt with a fresh salt.

    Args:
        password: The plain text password to hash
        rounds: bcrypt work factor (log2 of iterations)

    Returns:
        The bcrypt hashed password

    Raises:
        InternalError: if the hashing library fails
    """
    try:
        salt = bcrypt.gensalt(rounds=rounds)
        hashed = bcrypt.hashpw(_prepare_password_for_bcrypt(password), salt)
    except (ValueError, TypeError) as exc:
        raise InternalError("Password hashing failed") from exc
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a bcrypt hash.

    A malformed stored hash verifies as False rather than raising.
    """
    try:
        return bcrypt.checkpw(
            _prepare_password_for_bcrypt(plain_password), hashed_password.encode("utf-8")
        )
    except ValueError:
        return False


def hash_token(token: str) -> str:
    """Fingerprint a refresh token for storage (deterministic, so it can be compared in SQL)."""
    return hashlib.sha256(token.encode()).hexdigest()


def normalize_mac(mac: str) -> str:
    """
    Normalize a MAC address to upper-case colon form (AA:BB:CC:DD:EE:FF).

    Accepts colon, hyphen or Cisco dot separated input, or 12 bare hex digits.

    Raises:
        BadRequestError: if the value is not a MAC address
    """
    value = mac.strip().lower()
    if not (_MAC_HEX_RE.match(value) or _MAC_SEPARATED_RE.match(value)):
        raise BadRequestError(f"Invalid MAC address: {mac!r}")
    digits = re.sub(r"[^0-9a-f]", "", value)
    return ":".join(digits[i : i + 2] for i in range(0, 12, 2)).upper()
