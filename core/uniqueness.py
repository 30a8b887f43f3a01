"""
core/uniqueness.py -- Uniqueness guard for create and update operations.

Every unique field in the system (department name, project name, employee
email, user username, user email) is checked through ensure_unique() before a
write. The check runs on the caller's connection, so it shares the caller's
transaction with the write that follows.

Check-then-write is best effort under truly concurrent writers: two requests
can both pass the check before either commits. Each guarded column therefore
also carries a UNIQUE constraint in its table definition, and
conflict_from_integrity_error() turns the resulting IntegrityError into the
same Conflict value the check would have produced.

Layer rule: core/ is the kernel. No imports from api/, auth/, org/, notify/.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import Table, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from core.results import Conflict


@dataclass(frozen=True)
class UniqueField:
    """A (table, column) pair whose values must not repeat across live rows.

    kind is the human label used in conflict messages ("Department").
    The table must have an integer primary key column named "id".
    """

    kind: str
    table: Table
    column: str


def changed(old: Any, new: Any) -> bool:
    """Return True if an update actually changes a unique field's value.

    Unchanged values are never re-checked, so an entity cannot conflict with
    itself during update.
    """
    return old != new


def conflict_message(field: UniqueField, value: Any, updating: bool) -> str:
    if updating:
        return f"{field.kind} {field.column} '{value}' is already in use by another {field.kind.lower()}."
    return f"{field.kind} with {field.column} '{value}' already exists."


def ensure_unique(
    conn: Connection,
    field: UniqueField,
    value: Any,
    excluding_id: Optional[int] = None,
) -> Optional[Conflict]:
    """Return a Conflict if another row already holds `value`, else None.

    excluding_id is the id of the entity being updated; a row with that id is
    the entity itself and never counts as a conflict.
    """
    column = field.table.c[field.column]
    row = conn.execute(select(field.table.c.id).where(column == value).limit(1)).fetchone()
    if row is None or (excluding_id is not None and row.id == excluding_id):
        return None
    return Conflict(
        kind=field.kind,
        field=field.column,
        value=str(value),
        message=conflict_message(field, value, updating=excluding_id is not None),
    )


def conflict_from_integrity_error(
    exc: IntegrityError,
    fields: Sequence[UniqueField],
    values: dict[str, Any],
    updating: bool = False,
) -> Conflict:
    """Translate a UNIQUE constraint violation into a Conflict.

    The driver message names the violated column: SQLite reports
    "UNIQUE constraint failed: departments.name", PostgreSQL reports the
    constraint name ("departments_name_key"). Both contain the column name,
    which picks the field. If no field matches, the first field is reported.
    """
    if not fields:
        raise ValueError("conflict_from_integrity_error() needs at least one UniqueField")
    detail = str(exc.orig).lower()
    chosen = fields[0]
    for field in fields:
        if f"{field.table.name}.{field.column}" in detail or f"{field.table.name}_{field.column}" in detail:
            chosen = field
            break
    value = values.get(chosen.column, "")
    return Conflict(
        kind=chosen.kind,
        field=chosen.column,
        value=str(value),
        message=conflict_message(chosen, value, updating=updating),
    )
