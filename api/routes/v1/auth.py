"""
api/routes/v1/auth.py -- SSO REST endpoints.

Routes:
  POST /api/v1/auth/login                      -- email/password/app_id -> session token
  POST /api/v1/auth/register                   -- email/password -> new user id
  GET  /api/v1/auth/users/{user_id}/is-admin   -- admin flag for a user

All routes are public: they are how a client app obtains identity in the
first place. Request bodies are shape-checked by the models in api/models.py
before the service runs; domain errors are mapped by api/errors.py.

Handlers are plain `def`, so Starlette runs each one on its worker thread
pool. bcrypt and the storage calls block that worker, not the event loop.
If the client disconnects mid-request, the worker still runs the service
call to completion (a registration is never half-applied) and the response
is dropped.

Security:
  Login returns the same error for unknown email and wrong password.
  Cache-Control: no-store on login responses so tokens are not cached.
  INTERNAL failures carry a fixed per-route message, never exception text.
"""

from __future__ import annotations

from fastapi import APIRouter, Path, Request, Response

from api.errors import invalid_argument, to_http_exception
from api.models import INT64_MAX, IsAdminResponse, LoginRequest, LoginResponse, RegisterRequest, RegisterResponse
from auth.errors import AuthError
from auth.service import AuthService

router = APIRouter()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Authenticate with email and password; return a token scoped to app_id."""
    response.headers["Cache-Control"] = "no-store"
    try:
        token = _service(request).login(body.email, body.password, body.app_id)
    except AuthError as exc:
        raise to_http_exception(exc, "failed to log in", headers={"Cache-Control": "no-store"}) from exc
    return LoginResponse(token=token)


@router.post("/auth/register", response_model=RegisterResponse)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Create a user account and return its id."""
    try:
        user_id = _service(request).register_new_user(body.email, body.password)
    except AuthError as exc:
        raise to_http_exception(exc, "failed to register new user") from exc
    return RegisterResponse(user_id=user_id)


@router.get("/auth/users/{user_id}/is-admin", response_model=IsAdminResponse)
def is_admin(
    request: Request,
    user_id: int = Path(ge=-INT64_MAX - 1, le=INT64_MAX),
) -> IsAdminResponse:
    """Report whether user_id has administrator privilege."""
    if user_id == 0:
        raise invalid_argument("user_id is required")
    try:
        flag = _service(request).is_admin(user_id)
    except AuthError as exc:
        raise to_http_exception(exc, "failed to check admin status") from exc
    return IsAdminResponse(is_admin=flag)
