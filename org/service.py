"""
org/service.py -- Create/read/update/delete orchestration for organizational records.

One service per resource kind, all sharing ResourceService's shape:

    list(page, size, sort_by, sort_dir)     -> list[Entity]
    paginate(page, size, sort_by, sort_dir) -> Page[Entity]
    read(entity_id)                         -> Entity | NotFound
    create(draft, actor)                    -> Entity | Conflict
    update(entity_id, draft, actor)         -> Entity | NotFound | Conflict
    delete(entity_id, actor)                -> Deleted | NotFound

Each mutation runs in a single transaction: existence check, uniqueness
guard, write and (for deletes) assignment cleanup commit or roll back
together. A UNIQUE violation raised by the write itself, which only happens
when a concurrent request slipped in between check and write, is reported as
the same Conflict the guard would have returned.

Updates are full replacements of the mutable columns. Unique fields are
re-checked only when their value actually changes.

actor is the caller's Identity. It is used for the audit log line and
nothing else; access decisions were made before the service was called.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from auth.models import Identity
from core.results import Conflict, Deleted, NotFound
from core.uniqueness import UniqueField, changed, conflict_from_integrity_error, ensure_unique
from org.models import Department, Employee, Project
from org.relations import RelationshipManager
from org.store import DEPARTMENT_NAME, EMPLOYEE_EMAIL, PROJECT_NAME, OrgStore, sortable_columns

logger = logging.getLogger("orgregistry.org")

T = TypeVar("T", Department, Employee, Project)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of records plus the size of the whole collection."""

    content: list[T]
    total_elements: int
    number: int
    size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_elements / self.size)


def _check_window(page: int, size: int) -> None:
    if page < 0:
        raise ValueError("page must not be negative")
    if not 1 <= size <= MAX_PAGE_SIZE:
        raise ValueError(f"size must be between 1 and {MAX_PAGE_SIZE}")


class ResourceService(Generic[T]):
    kind: str = ""
    label: str = ""
    unique_fields: tuple[UniqueField, ...] = ()

    def __init__(self, store: OrgStore, relations: RelationshipManager) -> None:
        self.store = store
        self.relations = relations

    @property
    def sortable(self) -> tuple[str, ...]:
        return sortable_columns(self.kind)

    def list(
        self,
        page: int | None = None,
        size: int | None = None,
        sort_by: str = "id",
        sort_dir: str = "asc",
    ) -> list[T]:
        """Return records ordered by sort_by.

        With neither page nor size every record is returned. Otherwise one
        0-indexed page is returned; a missing page means 0 and a missing size
        means DEFAULT_PAGE_SIZE.

        Raises ValueError for a negative page, a size outside 1..MAX_PAGE_SIZE,
        or a sort column not in self.sortable.
        """
        limit = None
        offset = 0
        if page is not None or size is not None:
            page = 0 if page is None else page
            size = DEFAULT_PAGE_SIZE if size is None else size
            _check_window(page, size)
            limit, offset = size, page * size
        with self.store.transaction() as conn:
            return self.store.list_all(
                conn,
                self.kind,
                sort_by=sort_by,
                descending=sort_dir.lower() == "desc",
                limit=limit,
                offset=offset,
            )

    def paginate(
        self,
        page: int = 0,
        size: int = DEFAULT_PAGE_SIZE,
        sort_by: str = "id",
        sort_dir: str = "asc",
    ) -> Page[T]:
        """Return one page plus the total record count, read in one transaction."""
        _check_window(page, size)
        with self.store.transaction() as conn:
            content = self.store.list_all(
                conn,
                self.kind,
                sort_by=sort_by,
                descending=sort_dir.lower() == "desc",
                limit=size,
                offset=page * size,
            )
            total = self.store.count(conn, self.kind)
        return Page(content=content, total_elements=total, number=page, size=size)

    def read(self, entity_id: int) -> T | NotFound:
        with self.store.transaction() as conn:
            entity = self.store.get(conn, self.kind, entity_id)
        if entity is None:
            return NotFound(self.label, entity_id)
        return entity

    def create(self, draft: T, actor: Identity) -> T | Conflict:
        values = self._unique_values(draft)
        try:
            with self.store.transaction() as conn:
                for field in self.unique_fields:
                    conflict = ensure_unique(conn, field, values[field.column])
                    if conflict is not None:
                        logger.info("%s create rejected for %s: %s", self.label, actor.username, conflict.message)
                        return conflict
                entity_id = self.store.insert(conn, draft)
                created = self.store.get(conn, self.kind, entity_id)
        except IntegrityError as exc:
            conflict = conflict_from_integrity_error(exc, self.unique_fields, values)
            logger.info("%s create lost a uniqueness race for %s: %s", self.label, actor.username, conflict.message)
            return conflict

        logger.info("%s %d created by %s", self.label, entity_id, actor.username)
        return created

    def update(self, entity_id: int, draft: T, actor: Identity) -> T | NotFound | Conflict:
        values = self._unique_values(draft)
        try:
            with self.store.transaction() as conn:
                existing = self.store.get(conn, self.kind, entity_id)
                if existing is None:
                    return NotFound(self.label, entity_id)
                for field in self.unique_fields:
                    if not changed(getattr(existing, field.column), values[field.column]):
                        continue
                    conflict = ensure_unique(conn, field, values[field.column], excluding_id=entity_id)
                    if conflict is not None:
                        logger.info("%s %d update rejected for %s: %s", self.label, entity_id, actor.username, conflict.message)
                        return conflict
                self.store.update(conn, entity_id, draft)
                updated = self.store.get(conn, self.kind, entity_id)
        except IntegrityError as exc:
            conflict = conflict_from_integrity_error(exc, self.unique_fields, values, updating=True)
            logger.info("%s %d update lost a uniqueness race for %s: %s", self.label, entity_id, actor.username, conflict.message)
            return conflict

        logger.info("%s %d updated by %s", self.label, entity_id, actor.username)
        return updated

    def delete(self, entity_id: int, actor: Identity) -> Deleted | NotFound:
        with self.store.transaction() as conn:
            if self.store.get(conn, self.kind, entity_id) is None:
                return NotFound(self.label, entity_id)
            self._before_delete(conn, entity_id)
            self.store.delete(conn, self.kind, entity_id)
        logger.info("%s %d deleted by %s", self.label, entity_id, actor.username)
        return Deleted(self.label, entity_id)

    def _before_delete(self, conn: Connection, entity_id: int) -> None:
        """Hook run on the deleting transaction before the row goes away."""

    def _unique_values(self, draft: T) -> dict[str, object]:
        return {field.column: getattr(draft, field.column) for field in self.unique_fields}


class DepartmentService(ResourceService[Department]):
    kind = "department"
    label = "Department"
    unique_fields = (DEPARTMENT_NAME,)


class EmployeeService(ResourceService[Employee]):
    kind = "employee"
    label = "Employee"
    unique_fields = (EMPLOYEE_EMAIL,)

    def _before_delete(self, conn: Connection, entity_id: int) -> None:
        removed = self.relations.on_employee_deleted(conn, entity_id)
        if removed:
            logger.info("Employee %d removed from %d project(s)", entity_id, removed)


class ProjectService(ResourceService[Project]):
    kind = "project"
    label = "Project"
    unique_fields = (PROJECT_NAME,)

    def _before_delete(self, conn: Connection, entity_id: int) -> None:
        removed = self.relations.on_project_deleted(conn, entity_id)
        if removed:
            logger.info("Project %d released %d assignment(s)", entity_id, removed)
