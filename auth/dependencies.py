"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Tokens arrive only as an Authorization: Bearer <token> header. There is no
cookie or session fallback -- every protected call carries its own proof.

try_get_identity() is the soft variant (returns None on failure).
require(operation) builds the dependency a route declares: it validates the
token, asks auth.policy for a decision, raises 401/403 accordingly, and hands
the Identity to the handler as an ordinary argument.

Layer rule: no imports from api/, org/, or notify/.
  auth/dependencies.py may import from fastapi (for Depends/HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.models import Identity
from auth.policy import Decision, authorize, required_role
from auth.tokens import validate_token

_BEARER_PREFIX = "Bearer "


def try_get_identity(request: Request) -> Identity | None:
    """Return the Identity carried by the request's bearer token, or None.

    Never raises -- callers that need a hard 401 should use require().
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(_BEARER_PREFIX):
        return None
    token = auth_header[len(_BEARER_PREFIX) :].strip()
    if not token:
        return None
    return validate_token(token)


def require(operation: str) -> Callable[[Request], Identity]:
    """Build a dependency enforcing the access rule declared for `operation`.

    Use as a FastAPI dependency:
        @router.post("/departments")
        def route(identity: Identity = Depends(require("department:create"))): ...
    """
    role = required_role(operation)

    def dependency(request: Request) -> Identity:
        identity = try_get_identity(request)
        decision = authorize(identity, role)
        if decision is Decision.UNAUTHENTICATED:
            raise HTTPException(
                status_code=401,
                detail="Full authentication is required to access this resource.",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if decision is Decision.FORBIDDEN:
            raise HTTPException(status_code=403, detail="Access denied.")
        return identity

    dependency.__name__ = f"require_{operation.replace(':', '_')}"
    return dependency
