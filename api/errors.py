"""
api/errors.py -- Fixed translation from domain error kinds to HTTP responses.

The auth service already collapsed every failure into an ErrorKind. This
module does the second, transport-level step: kind -> status code, error
code and a short message. For INTERNAL the message is a generic per-route
string chosen by the caller; the exception text is never forwarded.

    | kind                | status | code             |
    |---------------------|--------|------------------|
    | INVALID_CREDENTIALS | 400    | invalid_argument |
    | INVALID_APP_ID      | 400    | invalid_argument |
    | USER_ALREADY_EXISTS | 409    | already_exists   |
    | NOT_FOUND           | 404    | not_found        |
    | INTERNAL            | 500    | internal         |
"""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException

from api.models import ErrorDetail
from auth.errors import AuthError, ErrorKind

_STATUS = {
    ErrorKind.INVALID_CREDENTIALS: (400, "invalid_argument", "invalid email or password"),
    ErrorKind.INVALID_APP_ID: (400, "invalid_argument", "invalid app_id"),
    ErrorKind.USER_ALREADY_EXISTS: (409, "already_exists", "user already exists"),
    ErrorKind.NOT_FOUND: (404, "not_found", "user not found"),
}


def to_http_exception(exc: AuthError, internal_message: str, headers: Optional[dict] = None) -> HTTPException:
    """Return the HTTPException for a domain error.

    Args:
        exc:              The AuthError raised by the service.
        internal_message: Generic text used when exc.kind is INTERNAL
                          (e.g. "failed to log in").
        headers:          Extra response headers (e.g. Cache-Control on login).
    """
    status, code, message = _STATUS.get(exc.kind, (500, "internal", internal_message))
    return HTTPException(
        status_code=status,
        detail=ErrorDetail(code=code, message=message).model_dump(exclude_none=True),
        headers=headers,
    )


def invalid_argument(message: str) -> HTTPException:
    """400 for a request that fails shape validation before reaching the service."""
    return HTTPException(
        status_code=400,
        detail=ErrorDetail(code="invalid_argument", message=message).model_dump(exclude_none=True),
    )
