"""
API request and response models for the meetai auth endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Session, User
from core.models import EMAIL_PATTERN

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignUpRequest(BaseModel):
    """Request body for POST /api/auth/sign-up/email.

    Password length rules live in the auth library so the API and any other
    caller report the same PASSWORD_TOO_SHORT / PASSWORD_TOO_LONG errors.
    """

    # The email pattern uses lookaheads, which the default Rust engine rejects.
    model_config = ConfigDict(str_strip_whitespace=True, regex_engine="python-re")

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(json_schema_extra={"format": "password"})


class SignInRequest(BaseModel):
    """Request body for POST /api/auth/sign-in/email."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, json_schema_extra={"format": "password"})


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    email_verified: bool
    image: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            email_verified=user.email_verified,
            image=user.image,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class SessionResponse(BaseModel):
    """Session metadata. The raw session token is never returned."""

    user_id: int
    expires_at: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        return cls(
            user_id=session.user_id,
            expires_at=session.expires_at,
            ip_address=session.ip_address,
            user_agent=session.user_agent,
            created_at=session.created_at,
        )


class AuthResponse(BaseModel):
    """Returned by sign-up and sign-in. token is the same value as the session cookie."""

    token: str
    user: UserResponse
    redirect: bool = False


class GetSessionResponse(BaseModel):
    session: SessionResponse
    user: UserResponse


class SignOutResponse(BaseModel):
    success: bool = True


class ProviderInfo(BaseModel):
    name: str
    label: str


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
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
