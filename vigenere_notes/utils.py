import hashlib
import hmac
import re
import secrets
import uuid
from datetime import datetime, UTC
from typing import Optional

PBKDF2_ITERATIONS = 200_000

_BEARER_RE = re.compile(r"^\s*Bearer\s+(.*)$", re.IGNORECASE)


def make_token() -> str:
    """Generate a fresh bearer token (32 hex characters)."""
    return uuid.uuid4().hex


def time_now() -> str:
    """Return the current time in ISO format (UTC, no microseconds)."""
    return datetime.now(UTC).replace(microsecond=0).isoformat()


def hash_password(password: str, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Hash a password with a random salt, PBKDF2-HMAC-SHA256."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return f"pbkdf2_sha256${iterations}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    """Check a password against a value produced by `hash_password`."""
    try:
        algorithm, iterations, salt, expected = stored.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """
    Pull the token out of an Authorization header value.

    "Bearer abc" and a bare "abc" both give "abc"; a missing or blank
    header gives None.
    """
    if not authorization or not authorization.strip():
        return None
    match = _BEARER_RE.match(authorization)
    token = match.group(1) if match else authorization
    return token.strip() or None
