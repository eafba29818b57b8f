"""
auth/models.py -- Domain dataclasses for identity entities.

Pattern: Data class (pure data container, zero logic). Stores and the auth
service do the work; these classes only own the shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class User:
    """A registered identity.

    pass_hash is the raw bcrypt output. It is excluded from repr() so a
    stray log line or traceback never prints it.
    """

    id: int
    email: str
    pass_hash: bytes = field(repr=False)
    is_admin: bool = False


@dataclass(frozen=True)
class App:
    """A client application allowed to request session tokens.

    id is chosen by whoever registers the app, not by the store. secret is
    the HS256 key for tokens scoped to this app and is excluded from repr().
    """

    id: int
    name: str
    secret: str = field(repr=False)


@dataclass(frozen=True)
class TokenClaims:
    """Decoded claim set of a session token. exp is a Unix timestamp (seconds)."""

    uid: int
    email: str
    app_id: int
    exp: int
