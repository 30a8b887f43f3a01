"""
api/routes/common.py -- Helpers shared by the resource routers.

unwrap() is the single place where service result variants become HTTP
status codes:
  NotFound -> 404 {"message": "<Kind> not found with id: <id>"}
  Conflict -> conflict_status (400 for resources, 409 for registration)

list_params() is the dependency behind every list endpoint's
page/size/sortBy/sortDir query parameters. Two response shapes use it:
  list_page() -> bare JSON array; all records unless page or size is given
  page_of()   -> {content, totalElements, totalPages, number, size}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from fastapi import HTTPException, Query
from pydantic.alias_generators import to_snake

from core.results import Conflict, NotFound
from org.service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, Page, ResourceService


def unwrap(result: Any, conflict_status: int = 400) -> Any:
    """Return `result` unchanged, or raise the HTTPException its variant maps to."""
    if isinstance(result, NotFound):
        raise HTTPException(status_code=404, detail=result.message)
    if isinstance(result, Conflict):
        raise HTTPException(status_code=conflict_status, detail=result.message)
    return result


@dataclass(frozen=True)
class ListParams:
    page: Optional[int]
    size: Optional[int]
    sort_by: str
    sort_dir: str


def list_params(
    page: Optional[int] = Query(None, ge=0, description="Page number, 0-indexed"),
    size: Optional[int] = Query(None, ge=1, le=MAX_PAGE_SIZE, description="Number of items per page"),
    sort_by: str = Query("id", alias="sortBy", description="Sort by field"),
    sort_dir: str = Query("asc", alias="sortDir", description="Sort direction: asc or desc"),
) -> ListParams:
    direction = sort_dir.lower()
    if direction not in ("asc", "desc"):
        raise HTTPException(status_code=400, detail=f"Invalid sort direction '{sort_dir}'. Use 'asc' or 'desc'.")
    # Clients send camelCase field names (hireDate); columns are snake_case.
    return ListParams(page=page, size=size, sort_by=to_snake(sort_by), sort_dir=direction)


def _check_sortable(service: ResourceService, params: ListParams) -> None:
    if params.sort_by not in service.sortable:
        raise HTTPException(status_code=400, detail=f"Cannot sort by '{params.sort_by}'.")


def list_page(service: ResourceService, params: ListParams) -> list:
    """Run service.list(). Without page and size every record comes back."""
    _check_sortable(service, params)
    return service.list(page=params.page, size=params.size, sort_by=params.sort_by, sort_dir=params.sort_dir)


def page_of(service: ResourceService, params: ListParams) -> Page:
    """Run service.paginate(), defaulting to the first page of DEFAULT_PAGE_SIZE."""
    _check_sortable(service, params)
    return service.paginate(
        page=0 if params.page is None else params.page,
        size=DEFAULT_PAGE_SIZE if params.size is None else params.size,
        sort_by=params.sort_by,
        sort_dir=params.sort_dir,
    )
