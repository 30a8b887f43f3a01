"""
api/routes/departments.py -- Department CRUD endpoints.

Routes:
  GET    /api/departments       -- one page with totals (any authenticated identity)
  GET    /api/departments/{id}  -- detail (any authenticated identity)
  POST   /api/departments       -- create, 201 (ADMIN)
  PUT    /api/departments/{id}  -- full update, 200 (ADMIN)
  DELETE /api/departments/{id}  -- 204 (ADMIN)

Duplicate names are rejected with 400 and a message naming the value.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import DepartmentIn, DepartmentOut, DepartmentPage, ErrorResponse
from api.routes.common import ListParams, list_params, page_of, unwrap
from auth.dependencies import require
from auth.models import Identity
from org.service import DepartmentService

router = APIRouter()

_ERRORS = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


def _service(request: Request) -> DepartmentService:
    return request.app.state.department_service


@router.get("/departments", response_model=DepartmentPage)
def list_departments(
    request: Request,
    identity: Identity = Depends(require("department:list")),
    params: ListParams = Depends(list_params),
) -> DepartmentPage:
    return DepartmentPage.from_page(page_of(_service(request), params))


@router.get("/departments/{department_id}", response_model=DepartmentOut, responses=_ERRORS)
def get_department(
    request: Request,
    department_id: int,
    identity: Identity = Depends(require("department:read")),
) -> DepartmentOut:
    return DepartmentOut.from_domain(unwrap(_service(request).read(department_id)))


@router.post("/departments", response_model=DepartmentOut, status_code=201, responses=_ERRORS)
def create_department(
    request: Request,
    body: DepartmentIn,
    identity: Identity = Depends(require("department:create")),
) -> DepartmentOut:
    return DepartmentOut.from_domain(unwrap(_service(request).create(body.to_domain(), identity)))


@router.put("/departments/{department_id}", response_model=DepartmentOut, responses=_ERRORS)
def update_department(
    request: Request,
    department_id: int,
    body: DepartmentIn,
    identity: Identity = Depends(require("department:update")),
) -> DepartmentOut:
    return DepartmentOut.from_domain(unwrap(_service(request).update(department_id, body.to_domain(), identity)))


@router.delete("/departments/{department_id}", status_code=204, responses=_ERRORS)
def delete_department(
    request: Request,
    department_id: int,
    identity: Identity = Depends(require("department:delete")),
) -> Response:
    unwrap(_service(request).delete(department_id, identity))
    return Response(status_code=204)
