"""
auth/tokens.py -- JWT issuance/validation and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (username), user_id, roles, iat and exp. Validation is a purely
       local check -- signature and expiry, no DB lookup, no server-side
       session. validate_token() returns None on any failure; the route layer
       turns that into a 401.

  Passwords: bcrypt directly (no passlib wrapper). Bcrypt's cost factor makes
       brute-forcing low-entropy secrets expensive, and checkpw() compares in
       constant time.

  SECRET_KEY: sourced from core.config.get_settings(). The Settings class
       validates the key at startup: dev mode (DEBUG=true) auto-generates a
       random key with a warning; production mode refuses to start without one.
       Short keys (<32 chars) are rejected with ValueError [M6].

Layer rule: no imports from api/, org/, or notify/. Import from core/ is
allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import Identity, parse_roles
from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User

logger = logging.getLogger("orgregistry.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton [M6]
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes. The API layer caps passwords at
    100 characters; longer multi-byte inputs are truncated by bcrypt itself.
    """
    return bcrypt.hashpw(plain.encode("utf-8")[:72], bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash -- treat as a mismatch, never as a crash.
        return False


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def _is_canonical_segment(segment: str) -> bool:
    """True if segment is exactly how base64url would encode its own bytes.

    The decoder python-jose uses ignores the unused low bits of the final
    character, so several spellings of one signature decode alike. Only the
    spelling issue_token() produces is accepted.
    """
    try:
        raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
    except (binascii.Error, ValueError):
        return False
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii") == segment


def issue_token(user: User, expire_seconds: int = 0, issued_at: datetime | None = None) -> str:
    """Encode a signed JWT for a verified user.

    Args:
        user:           The authenticated User (must have an id).
        expire_seconds: Token lifetime in seconds. If 0 (default), uses
                        Settings.token_expire_seconds.
        issued_at:      Issue time; defaults to now. Tests pass a past time to
                        mint already-expired tokens.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    issued = issued_at or datetime.now(timezone.utc)
    payload = {
        "sub": user.username,
        "user_id": user.id,
        "roles": sorted(role.value for role in user.roles),
        "iat": issued,
        "exp": issued + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def validate_token(token: str) -> Identity | None:
    """Verify a JWT and return the Identity it carries, or None if invalid.

    None covers every failure: malformed token, bad signature, elapsed expiry,
    missing claims, unknown role names. Returning None (rather than raising)
    keeps the caller simple: any invalid token is treated as unauthenticated.
    """
    segments = token.split(".")
    if len(segments) != 3 or not all(_is_canonical_segment(s) for s in segments):
        return None
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    user_id = payload.get("user_id")
    raw_roles = payload.get("roles")
    if not isinstance(subject, str) or not isinstance(user_id, int) or not isinstance(raw_roles, list):
        return None
    try:
        roles = parse_roles(raw_roles)
    except ValueError:
        logger.warning("Rejected token for %s: unknown role claim", subject)
        return None
    if not roles:
        return None
    return Identity(user_id=user_id, username=subject, roles=roles)
