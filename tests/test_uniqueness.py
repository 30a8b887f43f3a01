"""
tests/test_uniqueness.py -- Unit tests for core/uniqueness.py against real tables.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from core.results import Conflict
from core.uniqueness import changed, conflict_from_integrity_error, ensure_unique
from org.models import Department
from org.store import DEPARTMENT_NAME, EMPLOYEE_EMAIL, PROJECT_NAME, OrgStore


class TestEnsureUnique:
    def test_free_value_passes(self, org_store: OrgStore) -> None:
        with org_store.transaction() as conn:
            assert ensure_unique(conn, DEPARTMENT_NAME, "HR") is None

    def test_taken_value_conflicts_on_create(self, org_store: OrgStore) -> None:
        with org_store.transaction() as conn:
            org_store.insert(conn, Department(name="HR"))
            conflict = ensure_unique(conn, DEPARTMENT_NAME, "HR")
        assert isinstance(conflict, Conflict)
        assert conflict.message == "Department with name 'HR' already exists."

    def test_own_row_is_not_a_conflict(self, org_store: OrgStore) -> None:
        with org_store.transaction() as conn:
            dept_id = org_store.insert(conn, Department(name="HR"))
            assert ensure_unique(conn, DEPARTMENT_NAME, "HR", excluding_id=dept_id) is None

    def test_other_row_conflicts_on_update(self, org_store: OrgStore) -> None:
        with org_store.transaction() as conn:
            org_store.insert(conn, Department(name="HR"))
            other = org_store.insert(conn, Department(name="IT"))
            conflict = ensure_unique(conn, DEPARTMENT_NAME, "HR", excluding_id=other)
        assert conflict is not None
        assert conflict.message == "Department name 'HR' is already in use by another department."


class TestChanged:
    def test_same_value(self) -> None:
        assert not changed("HR", "HR")

    def test_different_value(self) -> None:
        assert changed("HR", "hr")


class TestIntegrityTranslation:
    def _error(self, detail: str) -> IntegrityError:
        return IntegrityError("INSERT ...", {}, Exception(detail))

    def test_sqlite_message_picks_column(self) -> None:
        conflict = conflict_from_integrity_error(
            self._error("UNIQUE constraint failed: employees.email"),
            [EMPLOYEE_EMAIL],
            {"email": "a@b.c"},
        )
        assert conflict.field == "email"
        assert conflict.kind == "Employee"

    def test_postgres_constraint_name_picks_column(self) -> None:
        conflict = conflict_from_integrity_error(
            self._error('duplicate key value violates unique constraint "projects_name_key"'),
            [PROJECT_NAME],
            {"name": "Apollo"},
            updating=True,
        )
        assert conflict.message == "Project name 'Apollo' is already in use by another project."
