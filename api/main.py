"""
api/main.py -- FastAPI application factory for the SSO service.

create_app(settings) builds the ASGI app; asgi.py and main.py call it with
the process Settings, tests call it with their own Settings and an in-memory
store.

Lifespan opens the storage (unless a store was injected), builds the single
AuthService instance and keeps both on app.state. A storage that cannot be
opened aborts startup -- the server never accepts traffic without one.

Error envelope: every non-2xx response is {"error": {"code", "message"}}.
Shape-validation failures become 400 invalid_argument with the message of
the first failing field, so clients see "email is required" rather than a
pydantic error dump.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.service import AuthService
from auth.store import SqlStore
from core.config import Settings

__version__ = "0.1.0"

logger = logging.getLogger("sso.api")


def _validation_message(exc: RequestValidationError) -> str:
    """Human-readable message for the first failing field."""
    for err in exc.errors():
        ctx_error = (err.get("ctx") or {}).get("error")
        if ctx_error is not None:
            return str(ctx_error)
        loc = err.get("loc") or ()
        field = loc[-1] if loc else "request"
        if err.get("type") == "missing":
            return f"{field} is required"
        return f"{field}: {err.get('msg', 'invalid value')}"
    return "invalid request"


def create_app(settings: Settings, store: Optional[SqlStore] = None) -> FastAPI:
    """Build the SSO API.

    Args:
        settings: Process settings (storage location, token TTL, bcrypt cost).
        store:    Pre-built store. When given, the lifespan uses it and does
                  not close it on shutdown; the caller owns it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owns_store = store is None
        app.state.store = store if store is not None else SqlStore(settings.storage_url)
        app.state.auth_service = AuthService(
            user_saver=app.state.store,
            user_provider=app.state.store,
            app_provider=app.state.store,
            token_ttl=settings.token_ttl,
            bcrypt_cost=settings.bcrypt_cost,
        )
        logger.info(
            "SSO API started",
            extra={"env": settings.env, "token_ttl_seconds": int(settings.token_ttl.total_seconds())},
        )

        yield

        if owns_store:
            app.state.store.close()
        logger.info("SSO API shutdown complete")

    app = FastAPI(
        title="SSO API",
        description="Single sign-on identity core: login, registration and admin checks.",
        version=__version__,
        lifespan=lifespan,
    )

    # ---------------------------------------------------------------------------
    # Request logging middleware
    # ---------------------------------------------------------------------------

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            extra={"client": request.client.host if request.client else "unknown"},
        )
        return response

    # ---------------------------------------------------------------------------
    # Router registration
    # ---------------------------------------------------------------------------

    app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])

    # ---------------------------------------------------------------------------
    # Exception handlers
    #
    # All handlers return the same ErrorResponse envelope so API clients can
    # parse errors uniformly.
    # ---------------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Return 400 invalid_argument when the request body or path fails validation."""
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                error=ErrorDetail(code="invalid_argument", message=_validation_message(exc))
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Return a structured error for HTTPExceptions raised by routes.

        Routes raise HTTPException with detail=ErrorDetail(...).model_dump()
        (a dict); that dict becomes the error field as-is.
        """
        if isinstance(exc.detail, dict):
            content = {"error": exc.detail}
        else:
            content = ErrorResponse(
                error=ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail))
            ).model_dump(exclude_none=True)
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected server errors.

        The traceback goes to the log only; the client gets a generic message.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error=ErrorDetail(code="internal", message="An unexpected error occurred.")
            ).model_dump(exclude_none=True),
        )

    # ---------------------------------------------------------------------------
    # Health endpoint
    # ---------------------------------------------------------------------------

    @app.get("/api/v1/health", tags=["Health"])
    async def health() -> HealthResponse:
        """Return API liveness and current version."""
        return HealthResponse(version=__version__)

    return app
