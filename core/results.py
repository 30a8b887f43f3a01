"""
core/results.py -- Explicit outcome values for business results.

Not-found and duplicate-value outcomes are ordinary answers, not faults, so
services return these values instead of raising. Callers branch with
isinstance() and the HTTP layer maps each variant to a status code.

Pattern: Data class (pure data container, zero logic beyond message text).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class NotFound:
    """The entity of `kind` with `entity_id` does not exist."""

    kind: str  # "Department", "Employee", "Project", "User"
    entity_id: int

    @property
    def message(self) -> str:
        return f"{self.kind} not found with id: {self.entity_id}"


@dataclass(frozen=True)
class Conflict:
    """A unique field value is already held by another live entity.

    message names both the field and the offending value so API clients can
    show it verbatim.
    """

    kind: str
    field: str
    value: str
    message: str


@dataclass(frozen=True)
class Deleted:
    """Successful removal of the entity of `kind` with `entity_id`."""

    kind: str
    entity_id: int
