"""
API request and response models for the SSO REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Shape rules enforced here, before the auth service is called:
  email, password -- present and non-empty
  app_id          -- non-zero, fits in int32
  user_id         -- non-zero, fits in int64 (checked on the path parameter)
Any violation is reported as 400 invalid_argument by the validation handler
in api/main.py, using the message attached to the failing field.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

INT32_MAX = 2**31 - 1
INT64_MAX = 2**63 - 1


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(validate_default=True)

    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=255)
    app_id: int = Field(default=0, ge=-INT32_MAX - 1, le=INT32_MAX)

    @field_validator("email")
    @classmethod
    def email_required(cls, v: str) -> str:
        if not v:
            raise ValueError("email is required")
        return v

    @field_validator("password")
    @classmethod
    def password_required(cls, v: str) -> str:
        if not v:
            raise ValueError("password is required")
        return v

    @field_validator("app_id")
    @classmethod
    def app_id_required(cls, v: int) -> int:
        if v == 0:
            raise ValueError("app_id is required")
        return v


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    Passwords are capped at 255 characters at the API layer. bcrypt itself
    only looks at the first 72 bytes; longer inputs are rejected by the
    hasher and surface as an internal error.
    """

    model_config = ConfigDict(validate_default=True)

    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=255)

    @field_validator("email")
    @classmethod
    def email_required(cls, v: str) -> str:
        if not v:
            raise ValueError("email is required")
        return v

    @field_validator("password")
    @classmethod
    def password_required(cls, v: str) -> str:
        if not v:
            raise ValueError("password is required")
        return v


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int


class IsAdminResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_admin: bool


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
