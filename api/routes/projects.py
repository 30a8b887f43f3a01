"""
api/routes/projects.py -- Project CRUD and membership endpoints.

Routes:
  GET    /api/projects                                    -- all projects, or one page
  GET    /api/projects/{id}                               -- detail with members
  POST   /api/projects                                    -- create, 201 (ADMIN)
  PUT    /api/projects/{id}                               -- full update (ADMIN)
  DELETE /api/projects/{id}                               -- 204 (ADMIN)
  POST   /api/projects/{projectId}/employees/{employeeId} -- assign (ADMIN)
  DELETE /api/projects/{projectId}/employees/{employeeId} -- unassign (ADMIN)

Assign and unassign both answer 200 with the updated project. Assigning an
existing member and unassigning a non-member are successful no-ops.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import ErrorResponse, ProjectIn, ProjectOut
from api.routes.common import ListParams, list_page, list_params, unwrap
from auth.dependencies import require
from auth.models import Identity
from org.relations import RelationshipManager
from org.service import ProjectService

router = APIRouter()

_ERRORS = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


def _service(request: Request) -> ProjectService:
    return request.app.state.project_service


def _relations(request: Request) -> RelationshipManager:
    return request.app.state.relations


@router.get("/projects", response_model=list[ProjectOut])
def list_projects(
    request: Request,
    identity: Identity = Depends(require("project:list")),
    params: ListParams = Depends(list_params),
) -> list[ProjectOut]:
    return [ProjectOut.from_domain(p) for p in list_page(_service(request), params)]


@router.get("/projects/{project_id}", response_model=ProjectOut, responses=_ERRORS)
def get_project(
    request: Request,
    project_id: int,
    identity: Identity = Depends(require("project:read")),
) -> ProjectOut:
    return ProjectOut.from_domain(unwrap(_service(request).read(project_id)))


@router.post("/projects", response_model=ProjectOut, status_code=201, responses=_ERRORS)
def create_project(
    request: Request,
    body: ProjectIn,
    identity: Identity = Depends(require("project:create")),
) -> ProjectOut:
    return ProjectOut.from_domain(unwrap(_service(request).create(body.to_domain(), identity)))


@router.put("/projects/{project_id}", response_model=ProjectOut, responses=_ERRORS)
def update_project(
    request: Request,
    project_id: int,
    body: ProjectIn,
    identity: Identity = Depends(require("project:update")),
) -> ProjectOut:
    return ProjectOut.from_domain(unwrap(_service(request).update(project_id, body.to_domain(), identity)))


@router.delete("/projects/{project_id}", status_code=204, responses=_ERRORS)
def delete_project(
    request: Request,
    project_id: int,
    identity: Identity = Depends(require("project:delete")),
) -> Response:
    unwrap(_service(request).delete(project_id, identity))
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


@router.post("/projects/{project_id}/employees/{employee_id}", response_model=ProjectOut, responses=_ERRORS)
def assign_employee(
    request: Request,
    project_id: int,
    employee_id: int,
    identity: Identity = Depends(require("project:assign")),
) -> ProjectOut:
    project = unwrap(_relations(request).assign(project_id, employee_id, identity))
    return ProjectOut.from_domain(project)


@router.delete("/projects/{project_id}/employees/{employee_id}", response_model=ProjectOut, responses=_ERRORS)
def unassign_employee(
    request: Request,
    project_id: int,
    employee_id: int,
    identity: Identity = Depends(require("project:unassign")),
) -> ProjectOut:
    project = unwrap(_relations(request).unassign(project_id, employee_id, identity))
    return ProjectOut.from_domain(project)
