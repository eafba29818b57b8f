"""
auth/errors.py -- Closed error taxonomy for the auth service.

Every failure that leaves AuthService is an AuthError carrying exactly one
ErrorKind. Callers branch on `exc.kind`, never on message text or on the
identity of the underlying storage exception:

    try:
        token = service.login(email, password, app_id)
    except AuthError as exc:
        if exc.kind is ErrorKind.INVALID_APP_ID:
            ...

The original storage/hashing/signing exception is kept as __cause__ for
server-side logs. It is never part of str(exc), so transport code can log
or display str(exc) without leaking implementation detail.

INVALID_CREDENTIALS deliberately covers both "unknown email" and "wrong
password" so a caller cannot enumerate registered addresses.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_APP_ID = "invalid_app_id"
    USER_ALREADY_EXISTS = "user_already_exists"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


_MESSAGES = {
    ErrorKind.INVALID_CREDENTIALS: "invalid credentials",
    ErrorKind.INVALID_APP_ID: "invalid app id",
    ErrorKind.USER_ALREADY_EXISTS: "user already exists",
    ErrorKind.NOT_FOUND: "user not found",
    ErrorKind.INTERNAL: "internal error",
}


class AuthError(Exception):
    """Domain failure raised by AuthService.

    op names the service operation that failed (e.g. "auth.login") and is
    included in the message for log readability.
    """

    def __init__(self, kind: ErrorKind, op: str) -> None:
        self.kind = kind
        self.op = op
        super().__init__(f"{op}: {_MESSAGES[kind]}")
