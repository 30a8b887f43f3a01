"""
org/models.py -- Domain dataclasses for organizational records.

These are pure data containers with zero logic. Uniqueness, assignment and
deletion rules live in org/service.py and org/relations.py.

The project<->employee association has one authoritative home: the
project_employees join table. Project.employees and Employee.project_ids are
read-only views filled in by the store from that table. Nothing writes to
them; assignment goes through org/relations.py.

id is None before the record is written to the database.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional


@dataclass
class Department:
    name: str
    location: Optional[str] = None
    id: Optional[int] = None


@dataclass
class Employee:
    first_name: str
    last_name: str
    email: str
    phone_number: Optional[str] = None
    hire_date: Optional[date] = None
    job_title: Optional[str] = None
    salary: Optional[float] = None
    id: Optional[int] = None
    project_ids: list[int] = field(default_factory=list)  # derived, read-only


@dataclass
class Project:
    """A project and its current members.

    employees is ordered by employee id so responses are stable.
    """

    name: str
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    id: Optional[int] = None
    employees: list[Employee] = field(default_factory=list)  # derived, read-only
