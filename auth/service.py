"""
auth/service.py -- The authentication domain service.

AuthService composes the credential verifier (auth/passwords.py), the token
issuer (auth/tokens.py) and three storage capabilities (auth/ports.py) into
the three operations the transport exposes:

    login(email, password, app_id)   -> signed token for that app
    register_new_user(email, password) -> new user id
    is_admin(user_id)                -> admin flag

Every failure leaves as AuthError with exactly one ErrorKind. Storage,
hashing and signing exceptions are classified here and chained as
__cause__; their text never becomes part of the domain error.

Concurrency: the instance holds only immutable, injected dependencies.
One instance serves any number of worker threads without locking. There is
no caching and no retry; a storage failure propagates on the first attempt.

Logging: each call builds its own context dict (op + request fields) and
passes it as `extra` on every record. Passwords and hashes are never logged.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import NoReturn, Optional

from auth.errors import AuthError, ErrorKind
from auth.passwords import DEFAULT_COST, PasswordHashError, hash_password, verify_password
from auth.ports import AppProvider, UserProvider, UserSaver
from auth.store import AppNotFoundError, UserExistsError, UserNotFoundError
from auth.tokens import TokenError, issue_token


class AuthService:
    """Login, registration and admin checks over injected storage capabilities.

    Args:
        user_saver:    Creates users (UserSaver).
        user_provider: Looks up users and admin flags (UserProvider).
        app_provider:  Looks up client apps (AppProvider).
        token_ttl:     Lifetime of issued session tokens.
        bcrypt_cost:   Work factor for new password hashes.
        logger:        Defaults to the "sso.auth" logger.
    """

    def __init__(
        self,
        user_saver: UserSaver,
        user_provider: UserProvider,
        app_provider: AppProvider,
        token_ttl: timedelta,
        bcrypt_cost: int = DEFAULT_COST,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if token_ttl <= timedelta(0):
            raise ValueError("token_ttl must be positive")
        self._user_saver = user_saver
        self._user_provider = user_provider
        self._app_provider = app_provider
        self._token_ttl = token_ttl
        self._bcrypt_cost = bcrypt_cost
        self._log = logger or logging.getLogger("sso.auth")
        # Timing equalization: an unknown email costs the same bcrypt work as a
        # wrong password, so response time does not reveal registered addresses.
        self._dummy_hash = hash_password("sso_timing_dummy", bcrypt_cost)

    @property
    def token_ttl(self) -> timedelta:
        return self._token_ttl

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str, app_id: int) -> str:
        """Check credentials and return a session token scoped to app_id.

        Unknown email and wrong password both raise INVALID_CREDENTIALS.
        The app is looked up only after the password checks out, so a token
        is never issued for an unknown app or a wrong password.
        """
        op = "auth.login"
        ctx = {"op": op, "email": email, "app_id": app_id}
        self._log.info("attempting to log in", extra=ctx)

        try:
            user = self._user_provider.get_user(email)
        except UserNotFoundError:
            verify_password(self._dummy_hash, password)
            self._reject(op, ErrorKind.INVALID_CREDENTIALS, ctx, "user not found")
        except Exception as exc:
            self._fail(op, ctx, "failed to get user", exc)

        if not verify_password(user.pass_hash, password):
            self._reject(op, ErrorKind.INVALID_CREDENTIALS, ctx, "invalid password")

        try:
            app = self._app_provider.get_app(app_id)
        except AppNotFoundError:
            self._reject(op, ErrorKind.INVALID_APP_ID, ctx, "app not found")
        except Exception as exc:
            self._fail(op, ctx, "failed to get app", exc)

        try:
            token = issue_token(app, user, self._token_ttl)
        except TokenError as exc:
            self._fail(op, ctx, "failed to generate token", exc)

        self._log.info("user logged in successfully", extra={**ctx, "user_id": user.id})
        return token

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_new_user(self, email: str, password: str) -> int:
        """Hash password, create the user, return the new id.

        A duplicate email raises USER_ALREADY_EXISTS; the existing record
        is left untouched.
        """
        op = "auth.register_new_user"
        ctx = {"op": op, "email": email}
        self._log.info("registering user", extra=ctx)

        try:
            pass_hash = hash_password(password, self._bcrypt_cost)
        except PasswordHashError as exc:
            self._fail(op, ctx, "failed to generate password hash", exc)

        try:
            user_id = self._user_saver.save_user(email, pass_hash)
        except UserExistsError:
            self._reject(op, ErrorKind.USER_ALREADY_EXISTS, ctx, "user already exists")
        except Exception as exc:
            self._fail(op, ctx, "failed to save user", exc)

        self._log.info("user registered", extra={**ctx, "user_id": user_id})
        return user_id

    # ------------------------------------------------------------------
    # Admin check
    # ------------------------------------------------------------------

    def is_admin(self, user_id: int) -> bool:
        """Return the admin flag for user_id. Unknown ids raise NOT_FOUND."""
        op = "auth.is_admin"
        ctx = {"op": op, "user_id": user_id}
        self._log.info("checking if user is admin", extra=ctx)

        try:
            flag = self._user_provider.is_admin(user_id)
        except UserNotFoundError:
            self._reject(op, ErrorKind.NOT_FOUND, ctx, "user not found")
        except Exception as exc:
            self._fail(op, ctx, "failed to get user", exc)

        self._log.info("checked if user is admin", extra={**ctx, "is_admin": flag})
        return flag

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _reject(self, op: str, kind: ErrorKind, ctx: dict, message: str) -> NoReturn:
        """Log an expected rejection and raise it as a domain error.

        Raised with `from None`: the storage-level "not found" / "exists"
        signal is fully described by the kind.
        """
        self._log.warning(message, extra={**ctx, "kind": kind.value})
        raise AuthError(kind, op) from None

    def _fail(self, op: str, ctx: dict, message: str, exc: BaseException) -> NoReturn:
        """Log an unexpected failure and raise it as INTERNAL, chained to exc."""
        self._log.error(
            message,
            extra={**ctx, "kind": ErrorKind.INTERNAL.value, "error": f"{type(exc).__name__}: {exc}"},
        )
        raise AuthError(ErrorKind.INTERNAL, op) from exc
