"""
Auth API routes - registration, sign-in, sign-out and the current user.

Credentials never touch the portal's database; they go straight to the
identity provider. Registration additionally creates the student profile.
"""

from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from portal.dependencies import get_auth_session, get_identity_adapter
from portal.models.student import Student
from portal.services.identity import AuthTokens
from portal.services.session import AuthSession, IdentityAdapter
from portal.logging_config import get_logger

router = APIRouter()
logger = get_logger("http")


# ── Pydantic schemas ─────────────────────────────────────────

class RegisterRequest(BaseModel):
    """Schema for student registration."""
    email: str = Field(..., min_length=3, description="Login email")
    password: str = Field(..., min_length=6, description="Password (kept by the identity provider)")
    full_name: str = Field(..., min_length=1, description="Student's full name")
    phone: str = Field(..., min_length=1, description="Contact phone number")


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class PrincipalResponse(BaseModel):
    id: str
    email: str


class SessionResponse(BaseModel):
    """Tokens plus who they belong to and whether that principal is an admin."""
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    user: PrincipalResponse
    is_admin: bool


def _session_response(tokens: AuthTokens, session: AuthSession) -> SessionResponse:
    return SessionResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        user=PrincipalResponse(id=tokens.principal.id, email=tokens.principal.email),
        is_admin=session.is_admin,
    )


@router.post("/api/auth/register", status_code=201, response_model=PrincipalResponse)
def register(request: RegisterRequest, adapter: IdentityAdapter = Depends(get_identity_adapter)):
    """Create a credential and the linked student profile."""
    principal = adapter.register(request.email.strip(), request.password,
                                 request.full_name.strip(), request.phone.strip())
    return PrincipalResponse(id=principal.id, email=principal.email)


@router.post("/api/auth/login", response_model=SessionResponse)
def login(request: LoginRequest, adapter: IdentityAdapter = Depends(get_identity_adapter)):
    tokens = adapter.sign_in(request.email.strip(), request.password)
    return _session_response(tokens, adapter.session)


@router.post("/api/auth/refresh", response_model=SessionResponse)
def refresh(request: RefreshRequest, adapter: IdentityAdapter = Depends(get_identity_adapter)):
    tokens = adapter.refresh(request.refresh_token)
    return _session_response(tokens, adapter.session)


@router.post("/api/auth/logout", status_code=204)
def logout(session: AuthSession = Depends(get_auth_session),
           adapter: IdentityAdapter = Depends(get_identity_adapter)):
    session.require_principal()
    adapter.sign_out()


@router.get("/api/auth/me")
def me(session: AuthSession = Depends(get_auth_session),
       adapter: IdentityAdapter = Depends(get_identity_adapter)):
    """Current principal, its student profile (if any) and admin flag."""
    principal = session.require_principal()
    student = adapter.db.get(Student, principal.id)
    return {
        "user": {"id": principal.id, "email": principal.email},
        "is_admin": session.is_admin,
        "profile": {
            "full_name": student.full_name,
            "email": student.email,
            "phone": student.phone,
        } if student else None,
    }
