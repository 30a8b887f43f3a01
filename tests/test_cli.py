"""
tests/test_cli.py -- Tests for the admin command line in main.py.

getpass is patched so the prompts read from a list instead of the terminal.
The CLI opens and closes its own store, so these tests use a file database
under tmp_path rather than shared memory.
"""

from __future__ import annotations

import main
from auth.models import Role
from auth.store import UserStore


def _answers(monkeypatch, *values: str) -> None:
    it = iter(values)
    monkeypatch.setattr(main.getpass, "getpass", lambda prompt="": next(it))


def _create_admin_args(url: str, username: str = "root") -> list[str]:
    return [
        "--database-url",
        url,
        "create-admin",
        "--username",
        username,
        "--email",
        f"{username}@example.com",
        "--first-name",
        "Ada",
        "--last-name",
        "Admin",
    ]


class TestCreateAdmin:
    def test_creates_admin(self, tmp_path, monkeypatch, capsys) -> None:
        url = f"sqlite:///{tmp_path / 'cli.db'}"
        _answers(monkeypatch, "hunter22", "hunter22")
        assert main.main(_create_admin_args(url)) == 0
        assert "Created admin 'root'" in capsys.readouterr().out

        store = UserStore(db_url=url)
        try:
            user = store.get_by_username("root")
            assert user is not None
            assert user.roles == frozenset({Role.ADMIN, Role.USER})
        finally:
            store.close()

    def test_mismatched_passwords(self, tmp_path, monkeypatch) -> None:
        url = f"sqlite:///{tmp_path / 'cli.db'}"
        _answers(monkeypatch, "hunter22", "hunter23")
        assert main.main(_create_admin_args(url)) == 1

    def test_duplicate_username(self, tmp_path, monkeypatch, capsys) -> None:
        url = f"sqlite:///{tmp_path / 'cli.db'}"
        _answers(monkeypatch, "hunter22", "hunter22", "hunter22", "hunter22")
        assert main.main(_create_admin_args(url)) == 0
        assert main.main(_create_admin_args(url)) == 1
        assert "already exists" in capsys.readouterr().out


class TestPromote:
    def test_unknown_user(self, tmp_path) -> None:
        url = f"sqlite:///{tmp_path / 'cli.db'}"
        assert main.main(["--database-url", url, "promote", "ghost"]) == 1

    def test_no_command_prints_help(self, capsys) -> None:
        assert main.main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()
