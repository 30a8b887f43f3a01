"""
tests/test_tokens.py -- Unit tests for auth/tokens.py.

Covers:
  - issue_token -> validate_token returns the same username, id and roles
  - altering any one of the three JWT segments invalidates the token,
    including re-spellings of the final base64url character
  - expiry: a token whose lifetime has elapsed is rejected
  - garbage, empty and wrongly signed tokens are rejected, never raised
  - unknown role claims are rejected
  - bcrypt helpers
"""

from __future__ import annotations

import string
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import Identity, Role, User
from auth.tokens import _ALGORITHM, hash_password, issue_token, validate_token, verify_password
from core.config import get_settings


def _user(roles=frozenset({Role.USER})) -> User:
    return User(id=42, username="alice", email="alice@example.com", hashed_password="x", roles=roles)


_ALPHABET = string.ascii_letters + string.digits + "-_"


def _flip(segment: str) -> str:
    """Change one character in the middle of a base64url segment."""
    i = len(segment) // 2
    replacement = "A" if segment[i] != "A" else "B"
    return segment[:i] + replacement + segment[i + 1 :]


class TestRoundTrip:
    def test_identity_matches_user(self) -> None:
        token = issue_token(_user(frozenset({Role.ADMIN, Role.USER})))
        identity = validate_token(token)
        assert identity == Identity(user_id=42, username="alice", roles=frozenset({Role.ADMIN, Role.USER}))

    def test_claims_carry_sorted_role_names(self) -> None:
        token = issue_token(_user(frozenset({Role.USER, Role.ADMIN})))
        claims = jwt.get_unverified_claims(token)
        assert claims["roles"] == ["ADMIN", "USER"]
        assert claims["sub"] == "alice"
        assert claims["user_id"] == 42

    def test_default_lifetime_comes_from_settings(self) -> None:
        issued = datetime(2030, 1, 1, tzinfo=timezone.utc)
        claims = jwt.get_unverified_claims(issue_token(_user(), issued_at=issued))
        assert claims["exp"] - claims["iat"] == get_settings().token_expire_seconds

    def test_explicit_lifetime(self) -> None:
        claims = jwt.get_unverified_claims(issue_token(_user(), expire_seconds=60))
        assert claims["exp"] - claims["iat"] == 60


class TestTampering:
    @pytest.mark.parametrize("segment", [0, 1, 2], ids=["header", "payload", "signature"])
    def test_altered_segment_is_rejected(self, segment: int) -> None:
        parts = issue_token(_user()).split(".")
        parts[segment] = _flip(parts[segment])
        assert validate_token(".".join(parts)) is None

    @pytest.mark.parametrize("segment", [0, 1, 2], ids=["header", "payload", "signature"])
    def test_every_other_final_character_is_rejected(self, segment: int) -> None:
        """The last character carries padding bits; no other spelling may validate."""
        parts = issue_token(_user()).split(".")
        original = parts[segment]
        accepted = []
        for char in _ALPHABET:
            if char == original[-1]:
                continue
            parts[segment] = original[:-1] + char
            if validate_token(".".join(parts)) is not None:
                accepted.append(char)
        assert accepted == []

    def test_role_escalation_in_payload_is_rejected(self) -> None:
        """Re-encoding the payload with ADMIN but keeping the old signature fails."""
        token = issue_token(_user())
        header, _payload, signature = token.split(".")
        forged = jwt.encode(
            {"sub": "alice", "user_id": 42, "roles": ["ADMIN"], "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            "some-other-key-that-is-long-enough-to-sign",
            algorithm=_ALGORITHM,
        )
        _, forged_payload, _ = forged.split(".")
        assert validate_token(f"{header}.{forged_payload}.{signature}") is None

    def test_wrong_key_is_rejected(self) -> None:
        forged = jwt.encode(
            {"sub": "alice", "user_id": 42, "roles": ["ADMIN"], "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            "x" * 64,
            algorithm=_ALGORITHM,
        )
        assert validate_token(forged) is None


class TestExpiry:
    def test_elapsed_token_is_rejected(self) -> None:
        issued = datetime.now(timezone.utc) - timedelta(hours=2)
        token = issue_token(_user(), expire_seconds=3600, issued_at=issued)
        assert validate_token(token) is None

    def test_unexpired_token_is_accepted(self) -> None:
        issued = datetime.now(timezone.utc) - timedelta(minutes=30)
        token = issue_token(_user(), expire_seconds=3600, issued_at=issued)
        assert validate_token(token) is not None


class TestMalformed:
    @pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c", "....", "Bearer x"])
    def test_garbage_returns_none(self, token: str) -> None:
        assert validate_token(token) is None

    def test_unknown_role_claim_is_rejected(self) -> None:
        token = jwt.encode(
            {"sub": "alice", "user_id": 42, "roles": ["SUPERUSER"], "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            get_settings().secret_key,
            algorithm=_ALGORITHM,
        )
        assert validate_token(token) is None

    def test_missing_user_id_is_rejected(self) -> None:
        token = jwt.encode(
            {"sub": "alice", "roles": ["USER"], "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            get_settings().secret_key,
            algorithm=_ALGORITHM,
        )
        assert validate_token(token) is None

    def test_empty_roles_are_rejected(self) -> None:
        token = jwt.encode(
            {"sub": "alice", "user_id": 42, "roles": [], "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            get_settings().secret_key,
            algorithm=_ALGORITHM,
        )
        assert validate_token(token) is None


class TestPasswords:
    def test_hash_verifies(self) -> None:
        hashed = hash_password("s3cret!")
        assert hashed != "s3cret!"
        assert verify_password("s3cret!", hashed)
        assert not verify_password("s3cret?", hashed)

    def test_malformed_hash_is_a_mismatch(self) -> None:
        assert verify_password("anything", "not-a-bcrypt-hash") is False
