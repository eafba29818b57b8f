"""
auth/passwords.py -- Password hashing and verification (bcrypt).

bcrypt is used directly rather than through passlib: passlib's internal
wrap-bug detection feeds bcrypt a password longer than 72 bytes, which
bcrypt 4.x+ rejects outright.

The cost factor is fixed per process (Settings.bcrypt_cost, passed in by the
service constructor). It is never derived from the input.

Hashes are bytes end to end -- the store keeps them in a BLOB column -- so
there is no encode/decode step where a malformed value could slip through.
"""

from __future__ import annotations

import bcrypt

DEFAULT_COST = 10


class PasswordHashError(Exception):
    """bcrypt refused to hash the password (NUL byte, > 72 bytes, bad cost)."""


def hash_password(password: str, cost: int = DEFAULT_COST) -> bytes:
    """Return a salted bcrypt hash of password.

    Output length is fixed (60 bytes) while the content differs on every
    call because of the random salt.
    """
    try:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=cost))
    except (ValueError, TypeError) as exc:
        raise PasswordHashError(str(exc)) from exc


def verify_password(pass_hash: bytes, password: str) -> bool:
    """Return True if password matches pass_hash.

    bcrypt.checkpw compares in constant time. Anything it cannot parse
    (truncated hash, wrong type, over-long password) is reported as a
    mismatch, never raised.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), pass_hash)
    except (ValueError, TypeError, AttributeError):
        return False
