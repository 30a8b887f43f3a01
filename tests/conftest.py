"""
tests/conftest.py -- Shared test fixtures for OrgRegistry tests.

This module provides:
  - memory_url(): a fresh named shared-memory SQLite URL
  - user_store / org_store: isolated stores for unit tests (function scope)
  - services: the three resource services plus the RelationshipManager
  - admin / regular: Identity values to pass as the acting user
  - api_client: TestClient over the real app with an ADMIN and a USER token

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment variables must be set before any core/auth/api import:
  DEBUG            -- get_settings() auto-generates SECRET_KEY instead of raising
  ALLOWED_HOSTS    -- TestClient sends Host: testserver
  LOGIN_RATE_LIMIT -- high enough that the suite never trips it
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import MagicMock

os.environ.setdefault("DEBUG", "true")
os.environ["ALLOWED_HOSTS"] = '["testserver", "localhost"]'
os.environ["LOGIN_RATE_LIMIT"] = "1000/minute"

import pytest
from fastapi.testclient import TestClient

from api.main import app, wire_services
from auth.models import Identity, Role, User
from auth.store import UserStore
from auth.tokens import hash_password, issue_token
from org.relations import RelationshipManager
from org.service import DepartmentService, EmployeeService, ProjectService
from org.store import OrgStore

ADMIN_PASSWORD = "adminpass123"
USER_PASSWORD = "userpass123"


def memory_url(prefix: str = "test") -> str:
    """Return a URL for a brand-new shared-memory SQLite database."""
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def make_user(store: UserStore, username: str, password: str, roles: frozenset[Role]) -> User:
    """Insert a user directly (bypassing registration) and return the stored row."""
    uid = store.create_user(
        User(
            username=username,
            email=f"{username}@example.com",
            hashed_password=hash_password(password),
            first_name=username.capitalize(),
            last_name="Tester",
            roles=roles,
        )
    )
    user = store.get_by_id(uid)
    assert user is not None
    return user


# ---------------------------------------------------------------------------
# Unit-level fixtures -- fresh database per test
# ---------------------------------------------------------------------------


@pytest.fixture()
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore(db_url=memory_url("users"))
    yield store
    store.close()


@pytest.fixture()
def org_store() -> Generator[OrgStore, None, None]:
    store = OrgStore(db_url=memory_url("org"))
    yield store
    store.close()


@pytest.fixture()
def services(org_store: OrgStore) -> SimpleNamespace:
    """The object graph the app wires on startup, over an isolated store."""
    relations = RelationshipManager(org_store)
    return SimpleNamespace(
        store=org_store,
        relations=relations,
        departments=DepartmentService(org_store, relations),
        employees=EmployeeService(org_store, relations),
        projects=ProjectService(org_store, relations),
    )


@pytest.fixture()
def admin() -> Identity:
    return Identity(user_id=1, username="root", roles=frozenset({Role.ADMIN, Role.USER}))


@pytest.fixture()
def regular() -> Identity:
    return Identity(user_id=2, username="jdoe", roles=frozenset({Role.USER}))


# ---------------------------------------------------------------------------
# Integration fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, org_store: OrgStore, mailer: MagicMock):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured DATABASE_URL. The mailer is
    a MagicMock so registration tests can assert on it without SMTP.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_services(app, user_store, org_store, mailer)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, admin_token, user_token) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use isolated in-memory stores.
    "testadmin" holds ADMIN and USER; "testuser" holds USER only.
    """
    url = memory_url("api")
    user_store = UserStore(db_url=url)
    org_store = OrgStore(db_url=url)

    admin_user = make_user(user_store, "testadmin", ADMIN_PASSWORD, frozenset({Role.ADMIN, Role.USER}))
    plain_user = make_user(user_store, "testuser", USER_PASSWORD, frozenset({Role.USER}))

    app.router.lifespan_context = _patch_lifespan(user_store, org_store, MagicMock())

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, issue_token(admin_user), issue_token(plain_user)

    org_store.close()
    user_store.close()

