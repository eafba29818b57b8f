"""
auth/ports.py -- Storage capabilities the auth service depends on.

Three narrow Protocols instead of one repository interface: the service
takes each capability separately, so a deployment can back users and apps
with different stores. Any class with matching methods satisfies them;
auth.store.SqlStore implements all three.

Error contract (exceptions live in auth.store so adapters and the service
share one definition):
  save_user  -- UserExistsError when the email is already registered
  get_user   -- UserNotFoundError
  is_admin   -- UserNotFoundError
  get_app    -- AppNotFoundError
  any other failure -- StorageError (or a subclass)

Each call is atomic on its own. The service never needs a transaction that
spans two calls.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from auth.models import App, User


@runtime_checkable
class UserSaver(Protocol):
    def save_user(self, email: str, pass_hash: bytes) -> int:
        """Create a user if the email is free; return the new id."""
        ...


@runtime_checkable
class UserProvider(Protocol):
    def get_user(self, email: str) -> User:
        """Return the user registered under email."""
        ...

    def is_admin(self, user_id: int) -> bool:
        """Return the admin flag for user_id."""
        ...


@runtime_checkable
class AppProvider(Protocol):
    def get_app(self, app_id: int) -> App:
        """Return the app registered under app_id."""
        ...
