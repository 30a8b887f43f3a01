"""
org/store.py -- SQLAlchemy-backed persistence layer for organizational records.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in org/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. OrgStore is the repository; the _row_to_*
functions are the mappers. Services never touch SQL directly.

Transactions: every read/write method takes the caller's Connection, so a
service can run a uniqueness check, a write and a cascade inside one
`with store.transaction() as conn:` block. The store never commits on its own.

Assignments: project_employees is the only record of which employee works on
which project. Its composite primary key gives set semantics (a pair exists
at most once) and its foreign keys cascade on delete. Both directions of the
relation are read from it by query; no second copy exists to drift.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = OrgStore()                                # settings.database_url
    store = OrgStore("postgresql://user:pw@host/db")  # PostgreSQL
    with store.transaction() as conn:
        dept_id = store.insert(conn, Department(name="HR"))
    store.close()
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Optional, Union

from sqlalchemy import (
    Column,
    Date,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine

from core.config import get_settings
from core.uniqueness import UniqueField
from org.models import Department, Employee, Project

Entity = Union[Department, Employee, Project]

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_departments = Table(
    "departments",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("location", String(100)),
)

_employees = Table(
    "employees",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("first_name", String(50), nullable=False),
    Column("last_name", String(50), nullable=False),
    Column("email", String(100), nullable=False, unique=True),
    Column("phone_number", String(20)),
    Column("hire_date", Date),
    Column("job_title", String(100)),
    Column("salary", Float),
)

_projects = Table(
    "projects",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("description", Text),
    Column("start_date", Date),
    Column("end_date", Date),
)

_project_employees = Table(
    "project_employees",
    _metadata,
    Column("project_id", Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
    Column("employee_id", Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False),
    PrimaryKeyConstraint("project_id", "employee_id", name="pk_project_employees"),
)

DEPARTMENT_NAME = UniqueField(kind="Department", table=_departments, column="name")
EMPLOYEE_EMAIL = UniqueField(kind="Employee", table=_employees, column="email")
PROJECT_NAME = UniqueField(kind="Project", table=_projects, column="name")

# kind -> (table, writable columns). "id" is never writable.
_KINDS: dict[str, tuple[Table, tuple[str, ...]]] = {
    "department": (_departments, ("name", "location")),
    "employee": (
        _employees,
        ("first_name", "last_name", "email", "phone_number", "hire_date", "job_title", "salary"),
    ),
    "project": (_projects, ("name", "description", "start_date", "end_date")),
}

_KIND_OF: dict[type, str] = {Department: "department", Employee: "employee", Project: "project"}


def sortable_columns(kind: str) -> tuple[str, ...]:
    """Columns a list query may sort by for this kind."""
    return ("id",) + _KINDS[kind][1]


# ---------------------------------------------------------------------------
# Connection setup
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Without foreign_keys=ON SQLite ignores the ON DELETE CASCADE clauses on
    project_employees. Both PRAGMAs are per-connection.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrgStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # SQLite requires check_same_thread=False when used from FastAPI's
            # threadpool, where one pooled connection may serve several threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        _metadata.create_all(self.engine)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a connection inside BEGIN ... COMMIT (ROLLBACK on exception)."""
        with self.engine.begin() as conn:
            yield conn

    # ------------------------------------------------------------------
    # Generic CRUD
    # ------------------------------------------------------------------

    def insert(self, conn: Connection, entity: Entity) -> int:
        """Insert a new record and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError on a UNIQUE violation.
        """
        table, columns = _KINDS[_KIND_OF[type(entity)]]
        result = conn.execute(table.insert().values(**{c: getattr(entity, c) for c in columns}))
        return result.inserted_primary_key[0]

    def update(self, conn: Connection, entity_id: int, entity: Entity) -> bool:
        """Overwrite every writable column of an existing record.

        Returns True if a row was updated, False if entity_id was not found.
        Raises sqlalchemy.exc.IntegrityError on a UNIQUE violation.
        """
        table, columns = _KINDS[_KIND_OF[type(entity)]]
        result = conn.execute(
            table.update().where(table.c.id == entity_id).values(**{c: getattr(entity, c) for c in columns})
        )
        return result.rowcount > 0

    def delete(self, conn: Connection, kind: str, entity_id: int) -> bool:
        """Delete a record. Returns True if deleted, False if not found."""
        table, _ = _KINDS[kind]
        result = conn.execute(table.delete().where(table.c.id == entity_id))
        return result.rowcount > 0

    def get(self, conn: Connection, kind: str, entity_id: int) -> Optional[Entity]:
        """Fetch a single record by ID with its derived views. None if not found."""
        table, _ = _KINDS[kind]
        row = conn.execute(table.select().where(table.c.id == entity_id)).fetchone()
        if row is None:
            return None
        return self._hydrate(conn, kind, [row])[0]

    def list_all(
        self,
        conn: Connection,
        kind: str,
        sort_by: str = "id",
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Entity]:
        """Return records of `kind` ordered by `sort_by`, optionally one page.

        sort_by must be one of sortable_columns(kind); anything else raises
        ValueError (column names are never taken from raw input).
        """
        table, _ = _KINDS[kind]
        if sort_by not in sortable_columns(kind):
            raise ValueError(f"Cannot sort {kind} by {sort_by!r}")
        column = table.c[sort_by]
        stmt = table.select().order_by(column.desc() if descending else column.asc(), table.c.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit).offset(offset)
        rows = conn.execute(stmt).fetchall()
        return self._hydrate(conn, kind, rows)

    def count(self, conn: Connection, kind: str) -> int:
        table, _ = _KINDS[kind]
        return conn.execute(select(func.count()).select_from(table)).scalar_one()

    # ------------------------------------------------------------------
    # Assignments (project_employees)
    # ------------------------------------------------------------------

    def add_member(self, conn: Connection, project_id: int, employee_id: int) -> bool:
        """Record that employee_id works on project_id.

        Idempotent: returns True if a new pair was written, False if the pair
        already existed (including when a concurrent request wrote it first).
        """
        values = {"project_id": project_id, "employee_id": employee_id}
        dialect = conn.dialect.name
        if dialect == "sqlite":
            stmt = sqlite_insert(_project_employees).values(**values).on_conflict_do_nothing()
        elif dialect == "postgresql":
            stmt = pg_insert(_project_employees).values(**values).on_conflict_do_nothing()
        else:
            if self.is_member(conn, project_id, employee_id):
                return False
            stmt = _project_employees.insert().values(**values)
        return conn.execute(stmt).rowcount > 0

    def remove_member(self, conn: Connection, project_id: int, employee_id: int) -> bool:
        """Delete one pair. Returns False if it was not present."""
        result = conn.execute(
            _project_employees.delete().where(
                (_project_employees.c.project_id == project_id) & (_project_employees.c.employee_id == employee_id)
            )
        )
        return result.rowcount > 0

    def is_member(self, conn: Connection, project_id: int, employee_id: int) -> bool:
        row = conn.execute(
            select(_project_employees.c.project_id).where(
                (_project_employees.c.project_id == project_id) & (_project_employees.c.employee_id == employee_id)
            )
        ).fetchone()
        return row is not None

    def clear_project_members(self, conn: Connection, project_id: int) -> int:
        """Delete every pair for a project. Returns the number removed."""
        result = conn.execute(_project_employees.delete().where(_project_employees.c.project_id == project_id))
        return result.rowcount

    def clear_employee_projects(self, conn: Connection, employee_id: int) -> int:
        """Delete every pair for an employee. Returns the number removed."""
        result = conn.execute(_project_employees.delete().where(_project_employees.c.employee_id == employee_id))
        return result.rowcount

    def member_ids(self, conn: Connection, project_id: int) -> list[int]:
        """Employee IDs assigned to a project, ascending."""
        return list(
            conn.execute(
                select(_project_employees.c.employee_id)
                .where(_project_employees.c.project_id == project_id)
                .order_by(_project_employees.c.employee_id)
            ).scalars()
        )

    def project_ids_for(self, conn: Connection, employee_id: int) -> list[int]:
        """Project IDs an employee is assigned to, ascending."""
        return list(
            conn.execute(
                select(_project_employees.c.project_id)
                .where(_project_employees.c.employee_id == employee_id)
                .order_by(_project_employees.c.project_id)
            ).scalars()
        )

    def count_assignments(self, conn: Connection, project_id: Optional[int] = None) -> int:
        """Count join rows, optionally only those referencing project_id."""
        stmt = select(func.count()).select_from(_project_employees)
        if project_id is not None:
            stmt = stmt.where(_project_employees.c.project_id == project_id)
        return conn.execute(stmt).scalar() or 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def _hydrate(self, conn: Connection, kind: str, rows) -> list[Entity]:
        """Map rows to dataclasses and fill the read-only relation views.

        Batched: one query for the pairs and one for member rows, regardless
        of how many records are being returned.
        """
        if kind == "department":
            return [_row_to_department(r) for r in rows]
        if kind == "employee":
            employees = [_row_to_employee(r) for r in rows]
            self._attach_project_ids(conn, employees)
            return employees

        projects = [_row_to_project(r) for r in rows]
        project_ids = [p.id for p in projects]
        if not project_ids:
            return projects
        pairs = conn.execute(
            select(_project_employees.c.project_id, _project_employees.c.employee_id)
            .where(_project_employees.c.project_id.in_(project_ids))
            .order_by(_project_employees.c.employee_id)
        ).fetchall()
        employee_ids = sorted({p.employee_id for p in pairs})
        by_id: dict[int, Employee] = {}
        if employee_ids:
            employee_rows = conn.execute(_employees.select().where(_employees.c.id.in_(employee_ids))).fetchall()
            members = [_row_to_employee(r) for r in employee_rows]
            self._attach_project_ids(conn, members)
            by_id = {e.id: e for e in members}
        for project in projects:
            project.employees = [by_id[p.employee_id] for p in pairs if p.project_id == project.id]
        return projects

    @staticmethod
    def _attach_project_ids(conn: Connection, employees: Iterable[Employee]) -> None:
        employees = list(employees)
        if not employees:
            return
        pairs = conn.execute(
            select(_project_employees.c.employee_id, _project_employees.c.project_id)
            .where(_project_employees.c.employee_id.in_([e.id for e in employees]))
            .order_by(_project_employees.c.project_id)
        ).fetchall()
        for employee in employees:
            employee.project_ids = [p.project_id for p in pairs if p.employee_id == employee.id]


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_department(row) -> Department:
    return Department(id=row.id, name=row.name, location=row.location)


def _row_to_employee(row) -> Employee:
    return Employee(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        phone_number=row.phone_number,
        hire_date=row.hire_date,
        job_title=row.job_title,
        salary=row.salary,
    )


def _row_to_project(row) -> Project:
    return Project(
        id=row.id,
        name=row.name,
        description=row.description,
        start_date=row.start_date,
        end_date=row.end_date,
    )
