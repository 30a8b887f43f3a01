"""
tests/test_credentials.py -- Unit tests for auth/credentials.py and auth/store.py.

Covers:
  - authenticate: success, unknown username, wrong password (same None)
  - register: default USER role, hashed password, username/email conflicts
    (username reported first), UNIQUE-constraint race translated to Conflict
  - create_admin / promote: ADMIN granted only through these helpers
"""

from __future__ import annotations

from auth import credentials
from auth.credentials import authenticate, create_admin, promote, register
from auth.models import Registration, Role
from auth.store import UserStore
from core.results import Conflict


def _registration(username: str = "alice", email: str = "alice@example.com") -> Registration:
    return Registration(username=username, password="wonderland", email=email, first_name="Alice", last_name="Liddell")


class TestAuthenticate:
    def test_valid_credentials(self, user_store: UserStore) -> None:
        register(user_store, _registration())
        user = authenticate(user_store, "alice", "wonderland")
        assert user is not None
        assert user.username == "alice"

    def test_unknown_username(self, user_store: UserStore) -> None:
        assert authenticate(user_store, "nobody", "wonderland") is None

    def test_wrong_password(self, user_store: UserStore) -> None:
        register(user_store, _registration())
        assert authenticate(user_store, "alice", "looking-glass") is None


class TestRegister:
    def test_new_identity_holds_user_role_only(self, user_store: UserStore) -> None:
        user = register(user_store, _registration())
        assert not isinstance(user, Conflict)
        assert user.id is not None
        assert user.roles == frozenset({Role.USER})
        assert user.hashed_password != "wonderland"
        assert user.first_name == "Alice"

    def test_duplicate_username(self, user_store: UserStore) -> None:
        register(user_store, _registration())
        result = register(user_store, _registration(email="other@example.com"))
        assert isinstance(result, Conflict)
        assert result.field == "username"
        assert "alice" in result.message

    def test_duplicate_email(self, user_store: UserStore) -> None:
        register(user_store, _registration())
        result = register(user_store, _registration(username="alice2"))
        assert isinstance(result, Conflict)
        assert result.field == "email"
        assert "alice@example.com" in result.message

    def test_username_reported_before_email(self, user_store: UserStore) -> None:
        register(user_store, _registration())
        result = register(user_store, _registration())
        assert isinstance(result, Conflict)
        assert result.field == "username"

    def test_duplicate_leaves_single_row(self, user_store: UserStore) -> None:
        register(user_store, _registration())
        register(user_store, _registration())
        assert authenticate(user_store, "alice", "wonderland") is not None

    def test_race_past_the_guard_becomes_conflict(self, user_store: UserStore, monkeypatch) -> None:
        """A concurrent writer that slips between check and insert hits the UNIQUE constraint."""
        register(user_store, _registration())
        monkeypatch.setattr(credentials, "ensure_unique", lambda conn, field, value, excluding_id=None: None)
        result = register(user_store, _registration(username="alice", email="fresh@example.com"))
        assert isinstance(result, Conflict)
        assert result.field == "username"


class TestAdminBootstrap:
    def test_create_admin_grants_both_roles(self, user_store: UserStore) -> None:
        user = create_admin(user_store, _registration(username="root", email="root@example.com"))
        assert not isinstance(user, Conflict)
        assert user.roles == frozenset({Role.ADMIN, Role.USER})
        assert user_store.has_admin()

    def test_create_admin_conflict(self, user_store: UserStore) -> None:
        register(user_store, _registration())
        assert isinstance(create_admin(user_store, _registration()), Conflict)
        assert not user_store.has_admin()

    def test_promote_existing_user(self, user_store: UserStore) -> None:
        register(user_store, _registration())
        user = promote(user_store, "alice")
        assert user is not None
        assert Role.ADMIN in user.roles
        # Idempotent
        again = promote(user_store, "alice")
        assert again is not None and again.roles == user.roles

    def test_promote_unknown_user(self, user_store: UserStore) -> None:
        assert promote(user_store, "ghost") is None
