"""
auth/store.py -- SQLAlchemy Core persistence for users and apps.

Pattern: Repository + Data Mapper.
SqlStore is the repository; _row_to_user / _row_to_app are the mappers.
It implements all three storage capabilities from auth/ports.py
(UserSaver, UserProvider, AppProvider). The auth service never touches SQL.

Error contract:
  Lookups that find nothing raise UserNotFoundError / AppNotFoundError.
  A duplicate email on insert raises UserExistsError (translated from the
  UNIQUE constraint's IntegrityError, so two concurrent registrations for
  the same address cannot both succeed).
  Every other SQLAlchemyError is wrapped in StorageError and chained.

Security:
  All queries use bound parameters. No f-strings in SQL.

Apps are managed outside the auth service. save_app() and set_admin() exist
for the management CLI (main.py) and for tests.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, LargeBinary, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import App, User

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class StorageError(Exception):
    """Unexpected persistence failure (connection, schema, driver)."""


class UserExistsError(StorageError):
    """A user with this email is already registered."""


class UserNotFoundError(StorageError):
    """No user matches the lookup key."""


class AppNotFoundError(StorageError):
    """No app matches the lookup key."""


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("pass_hash", LargeBinary, nullable=False),
    Column("is_admin", Integer, nullable=False, server_default="0"),
)

_apps = Table(
    "apps",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("name", String(255), nullable=False, unique=True),
    Column("secret", Text, nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by a writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SqlStore:
    """Repository for User and App records.

    Usage:
        store = SqlStore("sqlite:///sso.db")
        uid = store.save_user("a@example.com", pass_hash)
        user = store.get_user("a@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        try:
            self.engine: Engine = create_engine(db_url, connect_args=connect_args)
            if db_url.startswith("sqlite"):
                event.listen(self.engine, "connect", _set_wal_mode)
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"cannot open storage: {exc}") from exc

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def save_user(self, email: str, pass_hash: bytes) -> int:
        """Insert a user and return the assigned id. Raises UserExistsError on duplicate email."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_users.insert().values(email=email, pass_hash=pass_hash))
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise UserExistsError("user already exists") from exc
        except SQLAlchemyError as exc:
            raise StorageError("failed to save user") from exc

    def get_user(self, email: str) -> User:
        """Look up a user by exact email (case-sensitive)."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        except SQLAlchemyError as exc:
            raise StorageError("failed to get user") from exc
        if row is None:
            raise UserNotFoundError("user not found")
        return _row_to_user(row)

    def is_admin(self, user_id: int) -> bool:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        except SQLAlchemyError as exc:
            raise StorageError("failed to get user") from exc
        if row is None:
            raise UserNotFoundError("user not found")
        return bool(row.is_admin)

    def set_admin(self, user_id: int, is_admin: bool = True) -> None:
        """Set or clear the admin flag. Raises UserNotFoundError for an unknown id."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.update().where(_users.c.id == user_id).values(is_admin=1 if is_admin else 0)
                )
        except SQLAlchemyError as exc:
            raise StorageError("failed to update user") from exc
        if result.rowcount == 0:
            raise UserNotFoundError("user not found")

    # ------------------------------------------------------------------
    # Apps
    # ------------------------------------------------------------------

    def get_app(self, app_id: int) -> App:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_apps.select().where(_apps.c.id == app_id)).fetchone()
        except SQLAlchemyError as exc:
            raise StorageError("failed to get app") from exc
        if row is None:
            raise AppNotFoundError("app not found")
        return _row_to_app(row)

    def save_app(self, app: App) -> None:
        """Register a client app under its caller-chosen id.

        Raises StorageError if the id or name is already taken.
        """
        try:
            with self.engine.begin() as conn:
                conn.execute(_apps.insert().values(id=app.id, name=app.name, secret=app.secret))
        except SQLAlchemyError as exc:
            raise StorageError(f"failed to save app {app.id}") from exc

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        pass_hash=bytes(row.pass_hash),
        is_admin=bool(row.is_admin),
    )


def _row_to_app(row) -> App:
    return App(id=row.id, name=row.name, secret=row.secret)
