"""
auth/tokens.py -- Session token issuing (JWT, HS256, per-app secret).

Token format (the contract downstream consumers verify against):

  Compact JWS, header {"alg": "HS256", "typ": "JWT"}, signed with the
  requesting app's secret. Claims, and nothing else:

    uid     int  user id
    email   str  user email
    app_id  int  id of the app the token was issued for
    exp     int  expiry, Unix seconds = issue time + TTL

Because the key is the app's own secret, a token issued for one app fails
signature verification under any other app's secret. There is no
revocation: a token stays valid until exp whatever happens to the account.

The core only issues tokens. decode_token() documents the verification side
for consumers and is what the round-trip tests use.

Library: python-jose. Signing failures (missing secret, or any JOSEError,
e.g. a PEM key python-jose refuses for HMAC) surface as TokenError, which
the service maps to an internal error.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt
from jose.exceptions import JOSEError

from auth.models import App, TokenClaims, User

ALGORITHM = "HS256"

_CLAIM_TYPES = {"uid": int, "email": str, "app_id": int, "exp": int}


class TokenError(Exception):
    """A token could not be signed, or failed verification."""


def issue_token(app: App, user: User, ttl: timedelta, now: Optional[datetime] = None) -> str:
    """Sign a session token for user, scoped to app, valid for ttl.

    Args:
        app:  The requesting app. Its secret is the signing key.
        user: The authenticated user.
        ttl:  Token lifetime.
        now:  Issue time; defaults to the current UTC time. Tests pass a fixed
              value to assert on exp exactly.
    """
    if not isinstance(app.secret, str) or not app.secret:
        raise TokenError(f"app {app.id} has no usable signing secret")
    issued_at = now or datetime.now(timezone.utc)
    claims = {
        "uid": user.id,
        "email": user.email,
        "app_id": app.id,
        "exp": int((issued_at + ttl).timestamp()),
    }
    try:
        return jwt.encode(claims, app.secret, algorithm=ALGORITHM)
    except JOSEError as exc:
        raise TokenError(f"failed to sign token for app {app.id}") from exc


def decode_token(token: str, secret: str) -> TokenClaims:
    """Verify token against secret and return its claims.

    Raises TokenError on a bad signature, a non-HS256 algorithm, an expired
    token, or a missing / mistyped claim.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JOSEError as exc:
        raise TokenError("invalid token") from exc
    for name, expected in _CLAIM_TYPES.items():
        value = payload.get(name)
        # bool is an int subclass; a True uid is still malformed.
        if not isinstance(value, expected) or isinstance(value, bool):
            raise TokenError(f"claim {name!r} missing or malformed")
    return TokenClaims(
        uid=payload["uid"],
        email=payload["email"],
        app_id=payload["app_id"],
        exp=payload["exp"],
    )
