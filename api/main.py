"""
api/main.py -- FastAPI application entry point for OrgRegistry.

Exposes departments, employees and projects over HTTP, guarded by bearer
tokens and role checks.

Run with:      python main.py serve
               uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for the web frontend origin
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan opens the stores and builds the services on startup, and disposes
the engines on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.departments import router as departments_router
from api.routes.employees import router as employees_router
from api.routes.projects import router as projects_router
from auth.store import UserStore
from core.config import get_settings
from notify.mailer import RegistrationMailer
from org.relations import RelationshipManager
from org.service import DepartmentService, EmployeeService, ProjectService
from org.store import OrgStore

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("orgregistry.api")

_settings = get_settings()


def wire_services(app: FastAPI, user_store: UserStore, org_store: OrgStore, mailer: RegistrationMailer) -> None:
    """Attach stores and the services built on them to app.state.

    Shared by the real lifespan and the test lifespan so both wire the same
    object graph.
    """
    relations = RelationshipManager(org_store)
    app.state.user_store = user_store
    app.state.org_store = org_store
    app.state.relations = relations
    app.state.department_service = DepartmentService(org_store, relations)
    app.state.employee_service = EmployeeService(org_store, relations)
    app.state.project_service = ProjectService(org_store, relations)
    app.state.mailer = mailer


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the stores on startup and dispose of their engines on shutdown.

    Both stores point at the same DATABASE_URL. Tables are created on first
    start if missing.
    """
    logger.info("OrgRegistry API starting up")
    user_store = UserStore()
    org_store = OrgStore()
    wire_services(app, user_store, org_store, RegistrationMailer(_settings))
    if not user_store.has_admin():
        logger.warning("No ADMIN identity exists yet. Create one with: python main.py create-admin")
    logger.info("Stores initialized")

    yield

    org_store.close()
    user_store.close()
    logger.info("OrgRegistry API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="OrgRegistry API",
    description="Employees, departments and projects behind token-based authentication.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette wraps middleware in reverse registration order; the last one
# added is the outermost. Added here innermost-first so a request meets
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Pattern: Interceptor / Chain of Responsibility. Every request passes through
# this coroutine before reaching any route handler. Wall-clock time is taken
# before and after call_next so latency is reported on every response.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(departments_router, prefix="/api", tags=["Departments"])
app.include_router(employees_router, prefix="/api", tags=["Employees"])
app.include_router(projects_router, prefix="/api", tags=["Projects"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All JSON errors share the ErrorResponse envelope: {"message": ...} plus an
# "errors" map on validation failures. The one exception is the login 401,
# which the route returns as plain text.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str, errors: dict[str, str] | None = None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, errors=errors).model_dump(exclude_none=True),
        headers=headers,
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when the login rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    logger.warning("Rate limit exceeded on %s from %s", request.url.path, request.client.host if request.client else "unknown")
    retry_after = int(getattr(exc, "retry_after", 60))
    return _error(429, "Too many requests.", headers={"Retry-After": str(retry_after)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one reason per offending field.

    The field key is the last element of the error location ("firstName",
    "size"), i.e. the name the client sent.
    """
    errors: dict[str, str] = {}
    for err in exc.errors():
        loc = err.get("loc") or ("request",)
        message = str(err.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, ") :]
        errors.setdefault(str(loc[-1]), message)
    return _error(400, "Validation failed for one or more fields.", errors=errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap every HTTPException (route-raised or routing 404/405) in the envelope."""
    return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the server log only; the client receives a generic
    message so internals are never exposed.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. Unauthenticated and not rate
# limited -- load balancers poll it.
# ---------------------------------------------------------------------------


@app.get("/api/health", response_model=HealthResponse, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    try:
        db_ok = request.app.state.user_store.ping() and request.app.state.org_store.ping()
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        db_ok = False
    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        version=API_VERSION,
        components={"app": "ok", "database": "ok" if db_ok else "error"},
    )
