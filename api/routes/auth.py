"""
api/routes/auth.py -- Login, self-registration and current-identity endpoints.

Routes:
  POST /api/auth/login     -- username/password -> {"jwt": ...}
  POST /api/auth/register  -- create a USER identity; 201 user view
  GET  /api/auth/me        -- the caller's own user view (requires auth)

Security:
  Login is rate-limited per client address (LOGIN_RATE_LIMIT).
  authenticate() provides timing equalization -- use it, never inline the
  lookup + bcrypt check here.
  Login responses carry Cache-Control: no-store.
  Registration always grants USER. ADMIN identities come from the CLI only.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from api.limiter import limiter, login_limit
from api.models import ErrorResponse, LoginRequest, LoginResponse, RegisterRequest, UserResponse
from api.routes.common import unwrap
from auth.credentials import authenticate, register
from auth.dependencies import require
from auth.models import Identity
from auth.store import UserStore
from auth.tokens import issue_token
from core.config import get_settings
from notify.mailer import RegistrationMailer

router = APIRouter()


@limiter.limit(login_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse, responses={401: {"description": "Bad credentials"}})
def login(request: Request, body: LoginRequest):
    """Exchange username and password for a bearer token.

    Unknown username and wrong password produce the same 401 body so the
    response does not reveal which one was wrong.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate(user_store, body.username, body.password)
    if user is None:
        return PlainTextResponse(
            "Incorrect username or password",
            status_code=401,
            headers={"Cache-Control": "no-store"},
        )
    resp = JSONResponse(content=LoginResponse(jwt=issue_token(user)).model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post(
    "/auth/register",
    response_model=UserResponse,
    status_code=201,
    responses={409: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def register_user(request: Request, body: RegisterRequest, background_tasks: BackgroundTasks) -> UserResponse:
    """Create a USER identity and queue the confirmation email."""
    if not get_settings().self_registration_enabled:
        raise HTTPException(status_code=403, detail="Self-registration is disabled.")
    user_store: UserStore = request.app.state.user_store
    user = unwrap(register(user_store, body.to_registration()), conflict_status=409)
    mailer: RegistrationMailer = request.app.state.mailer
    background_tasks.add_task(mailer.send_registration_confirmation, user)
    return UserResponse.from_domain(user)


@router.get("/auth/me", response_model=UserResponse)
def me(request: Request, identity: Identity = Depends(require("auth:me"))) -> UserResponse:
    """Return the stored profile of the authenticated caller."""
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(identity.user_id)
    if user is None:
        # Token outlived its user row; treat as unauthenticated.
        raise HTTPException(status_code=401, detail="Full authentication is required to access this resource.")
    return UserResponse.from_domain(user)
