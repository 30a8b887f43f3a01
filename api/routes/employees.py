"""
api/routes/employees.py -- Employee CRUD endpoints.

Same shape as api/routes/departments.py. Employee email is the unique field.
projectIds in responses is read-only; membership changes go through
/api/projects/{projectId}/employees/{employeeId}. Deleting an employee
removes them from every project first.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import EmployeeIn, EmployeeOut, ErrorResponse
from api.routes.common import ListParams, list_page, list_params, unwrap
from auth.dependencies import require
from auth.models import Identity
from org.service import EmployeeService

router = APIRouter()

_ERRORS = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


def _service(request: Request) -> EmployeeService:
    return request.app.state.employee_service


@router.get("/employees", response_model=list[EmployeeOut])
def list_employees(
    request: Request,
    identity: Identity = Depends(require("employee:list")),
    params: ListParams = Depends(list_params),
) -> list[EmployeeOut]:
    return [EmployeeOut.from_domain(e) for e in list_page(_service(request), params)]


@router.get("/employees/{employee_id}", response_model=EmployeeOut, responses=_ERRORS)
def get_employee(
    request: Request,
    employee_id: int,
    identity: Identity = Depends(require("employee:read")),
) -> EmployeeOut:
    return EmployeeOut.from_domain(unwrap(_service(request).read(employee_id)))


@router.post("/employees", response_model=EmployeeOut, status_code=201, responses=_ERRORS)
def create_employee(
    request: Request,
    body: EmployeeIn,
    identity: Identity = Depends(require("employee:create")),
) -> EmployeeOut:
    return EmployeeOut.from_domain(unwrap(_service(request).create(body.to_domain(), identity)))


@router.put("/employees/{employee_id}", response_model=EmployeeOut, responses=_ERRORS)
def update_employee(
    request: Request,
    employee_id: int,
    body: EmployeeIn,
    identity: Identity = Depends(require("employee:update")),
) -> EmployeeOut:
    return EmployeeOut.from_domain(unwrap(_service(request).update(employee_id, body.to_domain(), identity)))


@router.delete("/employees/{employee_id}", status_code=204, responses=_ERRORS)
def delete_employee(
    request: Request,
    employee_id: int,
    identity: Identity = Depends(require("employee:delete")),
) -> Response:
    unwrap(_service(request).delete(employee_id, identity))
    return Response(status_code=204)
