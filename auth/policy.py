"""
auth/policy.py -- Role-based access decisions.

Every protected operation is listed in REQUIRED_ROLES with the role it needs
(None = any authenticated identity). The table is the single source of truth;
route handlers name their operation and never spell out roles themselves.

authorize() distinguishes two failures that must reach the client as
different status codes:
  UNAUTHENTICATED -- no identity (missing, malformed or expired token) -> 401
  FORBIDDEN       -- valid identity without the required role        -> 403

Layer rule: no imports from api/, org/, or notify/.
"""

from __future__ import annotations

from enum import Enum

from auth.models import Identity, Role


class Decision(str, Enum):
    ALLOWED = "allowed"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"


REQUIRED_ROLES: dict[str, Role | None] = {
    # Identity
    "auth:me": None,
    # Departments
    "department:list": None,
    "department:read": None,
    "department:create": Role.ADMIN,
    "department:update": Role.ADMIN,
    "department:delete": Role.ADMIN,
    # Employees
    "employee:list": None,
    "employee:read": None,
    "employee:create": Role.ADMIN,
    "employee:update": Role.ADMIN,
    "employee:delete": Role.ADMIN,
    # Projects
    "project:list": None,
    "project:read": None,
    "project:create": Role.ADMIN,
    "project:update": Role.ADMIN,
    "project:delete": Role.ADMIN,
    "project:assign": Role.ADMIN,
    "project:unassign": Role.ADMIN,
}


def required_role(operation: str) -> Role | None:
    """Look up an operation's required role.

    An operation missing from REQUIRED_ROLES is a programming error and
    raises KeyError at router import time, not at request time.
    """
    if operation not in REQUIRED_ROLES:
        raise KeyError(f"No access rule declared for operation {operation!r}")
    return REQUIRED_ROLES[operation]


def authorize(identity: Identity | None, role: Role | None) -> Decision:
    """Decide whether `identity` satisfies `role`."""
    if identity is None:
        return Decision.UNAUTHENTICATED
    if role is None or role in identity.roles:
        return Decision.ALLOWED
    return Decision.FORBIDDEN
