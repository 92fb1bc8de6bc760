"""
API request and response models for the Quill auth endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Validation of malformed input happens here, before the auth core is reached.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints

# Display names are trimmed. Passwords never are: login compares the exact
# string the user typed, so register must hash that same string.
_DisplayName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    There is no role field: self-registration always yields the default role.
    Unknown fields (including "role") are ignored rather than rejected.
    """

    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    name: _DisplayName


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    """Request body for POST /api/v1/auth/refresh and /auth/logout."""

    refresh_token: str = Field(min_length=1, max_length=256)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    role: str
    permissions: list[str]


class AuthResponse(BaseModel):
    """Response for register, login and refresh: the user plus a fresh token pair."""

    model_config = ConfigDict(frozen=True)

    user: UserInfo
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(BaseModel):
    """Identity carried by the caller's access token."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    role: str
    permissions: list[str]


class PermissionCheckResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: str
    allowed: bool


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


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

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
