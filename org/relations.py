"""
org/relations.py -- Project <-> employee assignment management.

There is exactly one record of an assignment: a (project_id, employee_id) row
in project_employees. Project.employees and Employee.project_ids are both
queries over that table, so "e is a member of p" and "p is one of e's
projects" can never disagree. Mutations here touch the join table only.

Every operation that reads then writes runs inside one transaction. assign()
is idempotent at the database level (insert-or-ignore on the composite
primary key), so two concurrent assigns of the same pair leave one row.
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import Connection

from auth.models import Identity
from core.results import NotFound
from org.models import Project
from org.store import OrgStore

logger = logging.getLogger("orgregistry.org")


def _who(actor: Identity | None) -> str:
    return actor.username if actor is not None else "system"


class RelationshipManager:
    def __init__(self, store: OrgStore) -> None:
        self.store = store

    def assign(self, project_id: int, employee_id: int, actor: Identity | None = None) -> Project | NotFound:
        """Add employee_id to project_id. Re-assigning an existing member is a no-op.

        The project is checked first, so a request naming two missing ids
        reports the project.
        """
        with self.store.transaction() as conn:
            missing = self._missing(conn, project_id, employee_id)
            if missing is not None:
                return missing
            added = self.store.add_member(conn, project_id, employee_id)
            project = self.store.get(conn, "project", project_id)
        if added:
            logger.info("Assigned employee %d to project %d by %s", employee_id, project_id, _who(actor))
        return project

    def unassign(self, project_id: int, employee_id: int, actor: Identity | None = None) -> Project | NotFound:
        """Remove employee_id from project_id. Removing a non-member is a no-op."""
        with self.store.transaction() as conn:
            missing = self._missing(conn, project_id, employee_id)
            if missing is not None:
                return missing
            removed = self.store.remove_member(conn, project_id, employee_id)
            project = self.store.get(conn, "project", project_id)
        if removed:
            logger.info("Removed employee %d from project %d by %s", employee_id, project_id, _who(actor))
        return project

    def on_project_deleted(self, conn: Connection, project_id: int) -> int:
        """Drop every assignment of a project. Runs on the deleting transaction."""
        return self.store.clear_project_members(conn, project_id)

    def on_employee_deleted(self, conn: Connection, employee_id: int) -> int:
        """Drop every assignment of an employee. Runs on the deleting transaction."""
        return self.store.clear_employee_projects(conn, employee_id)

    def projects_of(self, employee_id: int) -> list[int] | NotFound:
        """Project ids the employee currently works on, ascending."""
        with self.store.transaction() as conn:
            if self.store.get(conn, "employee", employee_id) is None:
                return NotFound("Employee", employee_id)
            return self.store.project_ids_for(conn, employee_id)

    def _missing(self, conn: Connection, project_id: int, employee_id: int) -> NotFound | None:
        if self.store.get(conn, "project", project_id) is None:
            return NotFound("Project", project_id)
        if self.store.get(conn, "employee", employee_id) is None:
            return NotFound("Employee", employee_id)
        return None
