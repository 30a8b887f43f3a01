"""
auth/credentials.py -- Credential verification and self-service registration.

authenticate() is the only place a submitted password is checked. It always
runs bcrypt, whether or not the username exists, so response time does not
reveal which half of the credential pair was wrong [C1]. Both failure cases
produce the same None.

register() creates a USER identity. Username and email uniqueness are checked
on the same transaction as the insert; the UNIQUE constraints on the users
table catch the concurrent-writer window and are reported as the same Conflict.

Layer rule: no imports from api/, org/, or notify/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.models import DEFAULT_ROLES, Registration, Role, User
from auth.store import USER_UNIQUE_FIELDS, UserStore
from auth.tokens import hash_password, verify_password
from core.results import Conflict
from core.uniqueness import conflict_from_integrity_error, ensure_unique

logger = logging.getLogger("orgregistry.auth")

# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("orgregistry_timing_dummy")


def authenticate(store: UserStore, username: str, password: str) -> User | None:
    """Return the User if username/password match, None otherwise.

    - Unknown username: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)
    """
    user = store.get_by_username(username)
    if user is None:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def register(store: UserStore, registration: Registration) -> User | Conflict:
    """Create a new identity holding the default USER role.

    Returns the stored User, or a Conflict naming the duplicate field
    (username is checked before email).
    """
    user = User(
        username=registration.username,
        email=registration.email,
        hashed_password=hash_password(registration.password),
        first_name=registration.first_name,
        last_name=registration.last_name,
        roles=DEFAULT_ROLES,
    )
    values = {"username": user.username, "email": user.email}
    try:
        with store.transaction() as conn:
            for field in USER_UNIQUE_FIELDS:
                conflict = ensure_unique(conn, field, values[field.column])
                if conflict is not None:
                    logger.info("Registration rejected: %s", conflict.message)
                    return conflict
            user_id = store.insert_user(conn, user)
    except IntegrityError as exc:
        conflict = conflict_from_integrity_error(exc, USER_UNIQUE_FIELDS, values)
        logger.info("Registration lost a uniqueness race: %s", conflict.message)
        return conflict

    logger.info("Registered user %s (id=%d)", user.username, user_id)
    created = store.get_by_id(user_id)
    if created is None:
        raise RuntimeError(f"User {user_id} missing immediately after insert")
    return created


def create_admin(store: UserStore, registration: Registration) -> User | Conflict:
    """Register an identity and grant it ADMIN on top of the default USER role.

    Only reachable from the command line; the HTTP API never creates admins.
    """
    result = register(store, registration)
    if isinstance(result, Conflict):
        return result
    store.grant_role(result.id, Role.ADMIN)
    logger.info("Granted ADMIN to %s (id=%d)", result.username, result.id)
    return store.get_by_id(result.id)


def promote(store: UserStore, username: str) -> User | None:
    """Grant ADMIN to an existing identity. Idempotent.

    Returns the updated User, or None if the username is unknown.
    """
    user = store.get_by_username(username)
    if user is None:
        return None
    if not store.grant_role(user.id, Role.ADMIN):
        return user
    logger.info("Granted ADMIN to %s (id=%d)", user.username, user.id)
    return store.get_by_id(user.id)
