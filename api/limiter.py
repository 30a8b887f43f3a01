"""
api/limiter.py -- Shared slowapi rate limiter for the login endpoint.

api/main.py mounts it as middleware; api/routes/auth.py applies it to
POST /api/auth/login with @limiter.limit(login_limit). One shared instance
means one in-memory counter store: a limiter per module would count
separately and never trip.

Counters are keyed by client address and live in process memory, so the limit
is per worker. That is enough to slow password guessing; it is not an
account lockout.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_limit() -> str:
    """Return LOGIN_RATE_LIMIT (e.g. "10/minute"), resolved when the limit is evaluated."""
    return get_settings().login_rate_limit
