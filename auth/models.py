"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in org/models.py -- dataclasses own domain shape; stores and routes do the
work.

Roles are an explicit enum held in a frozenset. Raw role strings (DB rows,
token claims) are parsed exactly once, by parse_roles(), at the boundary where
they enter the process. Policy checks only ever see Role members.

Layer rule: no imports from api/, org/, or notify/.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


DEFAULT_ROLES: frozenset[Role] = frozenset({Role.USER})


def parse_roles(raw: Iterable[str]) -> frozenset[Role]:
    """Convert role names to a frozenset of Role members.

    Accepts the legacy "ROLE_" prefix ("ROLE_ADMIN" -> Role.ADMIN).
    Raises ValueError on an unknown role name -- callers at trust boundaries
    (token validation) treat that as an invalid credential.
    """
    roles = set()
    for name in raw:
        name = str(name).strip().upper()
        if name.startswith("ROLE_"):
            name = name[len("ROLE_") :]
        roles.add(Role(name))
    return frozenset(roles)


@dataclass
class User:
    """A registered principal with credentials and roles.

    hashed_password is a bcrypt hash; the plaintext is never stored.
    roles is never empty -- registration assigns DEFAULT_ROLES.
    """

    username: str
    email: str
    hashed_password: str
    first_name: str = ""
    last_name: str = ""
    roles: frozenset[Role] = field(default_factory=lambda: DEFAULT_ROLES)
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class Identity:
    """The authenticated principal recovered from a validated token.

    Passed explicitly from the route layer into every call that needs to know
    who is acting. There is no ambient "current user".
    """

    user_id: int
    username: str
    roles: frozenset[Role]


@dataclass(frozen=True)
class Registration:
    """Self-service registration input. password is plaintext until hashed."""

    username: str
    password: str
    email: str
    first_name: str
    last_name: str
