"""Unit tests for auth/service.py -- AuthService against a real SqlStore.

Covers:
- login happy path: token claims are exactly uid/email/app_id, exp = now + TTL
- unknown email and wrong password produce the same error kind and message
- unknown app -> INVALID_APP_ID; bad password wins over bad app
- register: duplicate email -> USER_ALREADY_EXISTS with the first id intact
- register then login succeeds
- is_admin: false for new users, true once storage flags them, NOT_FOUND for
  unknown ids (one classification used by both service and transport)
- repeated logins never mutate storage
- storage / hashing / signing failures -> INTERNAL, original chained, not leaked
- log records never contain the password or hash
- concurrent logins on one instance
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest
from conftest import APP_ID, APP_SECRET, TEST_COST, TEST_TTL

from auth.errors import AuthError, ErrorKind
from auth.models import App
from auth.service import AuthService
from auth.store import AppNotFoundError, StorageError, UserExistsError, UserNotFoundError
from auth.tokens import TokenError, decode_token

EMAIL = "user@example.com"
PASSWORD = "correct horse battery staple"
PEM_PUBLIC_KEY = "-----BEGIN PUBLIC KEY-----\nMFkw\n-----END PUBLIC KEY-----"


@pytest.fixture
def registered(service: AuthService, client_app: App) -> int:
    return service.register_new_user(EMAIL, PASSWORD)


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_token_claims(self, service, registered):
        before = int(datetime.now(timezone.utc).timestamp())
        token = service.login(EMAIL, PASSWORD, APP_ID)
        after = int(datetime.now(timezone.utc).timestamp())

        assert token
        claims = decode_token(token, APP_SECRET)
        assert claims.uid == registered
        assert claims.email == EMAIL
        assert claims.app_id == APP_ID
        ttl = int(TEST_TTL.total_seconds())
        assert before + ttl <= claims.exp <= after + ttl

    def test_wrong_password(self, service, registered):
        with pytest.raises(AuthError) as excinfo:
            service.login(EMAIL, "wrong password", APP_ID)
        assert excinfo.value.kind is ErrorKind.INVALID_CREDENTIALS

    def test_unknown_email(self, service, client_app):
        with pytest.raises(AuthError) as excinfo:
            service.login("nobody@example.com", PASSWORD, APP_ID)
        assert excinfo.value.kind is ErrorKind.INVALID_CREDENTIALS

    def test_unknown_email_indistinguishable_from_wrong_password(self, service, registered):
        with pytest.raises(AuthError) as wrong_password:
            service.login(EMAIL, "wrong password", APP_ID)
        with pytest.raises(AuthError) as unknown_email:
            service.login("nobody@example.com", PASSWORD, APP_ID)
        assert wrong_password.value.kind is unknown_email.value.kind
        assert str(wrong_password.value) == str(unknown_email.value)
        assert wrong_password.value.__cause__ is None
        assert unknown_email.value.__cause__ is None

    def test_unknown_app(self, service, registered):
        with pytest.raises(AuthError) as excinfo:
            service.login(EMAIL, PASSWORD, 999)
        assert excinfo.value.kind is ErrorKind.INVALID_APP_ID

    def test_wrong_password_checked_before_app(self, service, registered):
        with pytest.raises(AuthError) as excinfo:
            service.login(EMAIL, "wrong password", 999)
        assert excinfo.value.kind is ErrorKind.INVALID_CREDENTIALS

    def test_token_scoped_to_requesting_app(self, service, store, registered):
        other = App(id=2, name="other-app", secret="other-app-secret-0123456789")
        store.save_app(other)
        token = service.login(EMAIL, PASSWORD, other.id)
        assert decode_token(token, other.secret).app_id == other.id
        with pytest.raises(TokenError):
            decode_token(token, APP_SECRET)

    def test_repeated_login_is_idempotent(self, service, store, registered):
        before = store.get_user(EMAIL)
        for _ in range(3):
            token = service.login(EMAIL, PASSWORD, APP_ID)
            assert decode_token(token, APP_SECRET).uid == registered
        after = store.get_user(EMAIL)
        assert after == before
        assert after.pass_hash == before.pass_hash

    def test_concurrent_logins(self, service, registered):
        with ThreadPoolExecutor(max_workers=8) as pool:
            tokens = list(pool.map(lambda _: service.login(EMAIL, PASSWORD, APP_ID), range(16)))
        assert all(decode_token(t, APP_SECRET).uid == registered for t in tokens)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegister:
    def test_returns_new_id(self, service, store):
        uid = service.register_new_user(EMAIL, PASSWORD)
        assert store.get_user(EMAIL).id == uid

    def test_password_stored_hashed(self, service, store):
        service.register_new_user(EMAIL, PASSWORD)
        pass_hash = store.get_user(EMAIL).pass_hash
        assert PASSWORD.encode() not in pass_hash
        assert pass_hash.startswith(b"$2b$")

    def test_duplicate_email(self, service, store):
        first = service.register_new_user(EMAIL, PASSWORD)
        with pytest.raises(AuthError) as excinfo:
            service.register_new_user(EMAIL, "another password")
        assert excinfo.value.kind is ErrorKind.USER_ALREADY_EXISTS
        assert store.get_user(EMAIL).id == first

    def test_duplicate_does_not_overwrite_password(self, service, client_app):
        service.register_new_user(EMAIL, PASSWORD)
        with pytest.raises(AuthError):
            service.register_new_user(EMAIL, "another password")
        assert service.login(EMAIL, PASSWORD, APP_ID)

    def test_register_then_login(self, service, client_app):
        uid = service.register_new_user("fresh@example.com", "fresh-pass")
        token = service.login("fresh@example.com", "fresh-pass", APP_ID)
        assert decode_token(token, APP_SECRET).uid == uid


# ---------------------------------------------------------------------------
# Admin check
# ---------------------------------------------------------------------------


class TestIsAdmin:
    def test_new_user_is_not_admin(self, service, registered):
        assert service.is_admin(registered) is False

    def test_flagged_user_is_admin(self, service, store, registered):
        store.set_admin(registered)
        assert service.is_admin(registered) is True

    def test_unknown_user_is_not_found(self, service):
        # Unknown ids are NOT_FOUND here and 404 at the HTTP layer; they are
        # never reported as INVALID_CREDENTIALS.
        with pytest.raises(AuthError) as excinfo:
            service.is_admin(123456)
        assert excinfo.value.kind is ErrorKind.NOT_FOUND


# ---------------------------------------------------------------------------
# Internal failures
# ---------------------------------------------------------------------------


class BrokenStore:
    """Storage double whose every call fails with an unexpected error."""

    def save_user(self, email, pass_hash):
        raise StorageError("disk I/O error at /var/lib/sso/sso.db")

    def get_user(self, email):
        raise StorageError("disk I/O error at /var/lib/sso/sso.db")

    def is_admin(self, user_id):
        raise StorageError("disk I/O error at /var/lib/sso/sso.db")

    def get_app(self, app_id):
        raise StorageError("disk I/O error at /var/lib/sso/sso.db")


def _service(user_saver, user_provider, app_provider) -> AuthService:
    return AuthService(user_saver, user_provider, app_provider, TEST_TTL, bcrypt_cost=TEST_COST)


class TestInternalErrors:
    def test_login_user_lookup_failure(self):
        svc = _service(BrokenStore(), BrokenStore(), BrokenStore())
        with pytest.raises(AuthError) as excinfo:
            svc.login(EMAIL, PASSWORD, APP_ID)
        assert excinfo.value.kind is ErrorKind.INTERNAL
        assert isinstance(excinfo.value.__cause__, StorageError)
        assert "disk I/O" not in str(excinfo.value)

    def test_login_app_lookup_failure(self, store, registered):
        svc = _service(store, store, BrokenStore())
        with pytest.raises(AuthError) as excinfo:
            svc.login(EMAIL, PASSWORD, APP_ID)
        assert excinfo.value.kind is ErrorKind.INTERNAL

    def test_login_signing_failure(self, store, service):
        service.register_new_user(EMAIL, PASSWORD)
        store.save_app(App(id=5, name="no-secret", secret=""))
        with pytest.raises(AuthError) as excinfo:
            service.login(EMAIL, PASSWORD, 5)
        assert excinfo.value.kind is ErrorKind.INTERNAL

    def test_login_secret_rejected_by_signer(self, store, service):
        service.register_new_user(EMAIL, PASSWORD)
        store.save_app(App(id=9, name="pem-secret", secret=PEM_PUBLIC_KEY))
        with pytest.raises(AuthError) as excinfo:
            service.login(EMAIL, PASSWORD, 9)
        assert excinfo.value.kind is ErrorKind.INTERNAL
        assert isinstance(excinfo.value.__cause__, TokenError)

    def test_register_storage_failure(self):
        svc = _service(BrokenStore(), BrokenStore(), BrokenStore())
        with pytest.raises(AuthError) as excinfo:
            svc.register_new_user(EMAIL, PASSWORD)
        assert excinfo.value.kind is ErrorKind.INTERNAL

    def test_register_hash_failure(self, service, monkeypatch):
        import auth.service as service_module
        from auth.passwords import PasswordHashError

        def boom(password, cost):
            raise PasswordHashError("bcrypt refused input")

        monkeypatch.setattr(service_module, "hash_password", boom)
        with pytest.raises(AuthError) as excinfo:
            service.register_new_user(EMAIL, PASSWORD)
        assert excinfo.value.kind is ErrorKind.INTERNAL

    def test_is_admin_storage_failure(self):
        svc = _service(BrokenStore(), BrokenStore(), BrokenStore())
        with pytest.raises(AuthError) as excinfo:
            svc.is_admin(1)
        assert excinfo.value.kind is ErrorKind.INTERNAL

    def test_non_storage_exception_is_internal(self):
        class Exploding(BrokenStore):
            def get_user(self, email):
                raise RuntimeError("unexpected")

        svc = _service(Exploding(), Exploding(), Exploding())
        with pytest.raises(AuthError) as excinfo:
            svc.login(EMAIL, PASSWORD, APP_ID)
        assert excinfo.value.kind is ErrorKind.INTERNAL

    def test_storage_signals_do_not_leak_as_internal(self):
        """Each storage signal maps to its own kind, never to INTERNAL."""

        class Signals(BrokenStore):
            def save_user(self, email, pass_hash):
                raise UserExistsError()

            def is_admin(self, user_id):
                raise UserNotFoundError()

            def get_app(self, app_id):
                raise AppNotFoundError()

        svc = _service(Signals(), Signals(), Signals())
        with pytest.raises(AuthError) as exists:
            svc.register_new_user(EMAIL, PASSWORD)
        with pytest.raises(AuthError) as missing:
            svc.is_admin(1)
        assert exists.value.kind is ErrorKind.USER_ALREADY_EXISTS
        assert missing.value.kind is ErrorKind.NOT_FOUND


def test_non_positive_ttl_rejected(store):
    with pytest.raises(ValueError):
        AuthService(store, store, store, timedelta(0), bcrypt_cost=TEST_COST)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def test_logs_never_contain_password_or_hash(service, store, registered, caplog):
    caplog.set_level(logging.DEBUG, logger="sso.auth")
    service.login(EMAIL, PASSWORD, APP_ID)
    with pytest.raises(AuthError):
        service.login(EMAIL, "wrong password", APP_ID)
    with pytest.raises(AuthError):
        service.register_new_user(EMAIL, PASSWORD)

    pass_hash = store.get_user(EMAIL).pass_hash.decode()
    assert caplog.records
    for record in caplog.records:
        dumped = repr(vars(record))
        assert PASSWORD not in dumped
        assert "wrong password" not in dumped
        assert pass_hash not in dumped


def test_rejections_logged_with_kind_and_op(service, registered, caplog):
    caplog.set_level(logging.INFO, logger="sso.auth")
    with pytest.raises(AuthError):
        service.login(EMAIL, PASSWORD, 999)
    rejected = [r for r in caplog.records if getattr(r, "kind", None) == "invalid_app_id"]
    assert len(rejected) == 1
    assert rejected[0].op == "auth.login"
    assert rejected[0].levelno == logging.WARNING
