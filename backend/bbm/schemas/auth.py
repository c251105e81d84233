from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from bbm.models.enums import Location


class UserOut(BaseModel):
    id: int
    email: str
    name: str
    role: int
    location: Location | None = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Registration ─────────────────────────────────────────────

class RegisterRequest(BaseModel):
    """Self-registration. New accounts are always operational users."""
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=1, max_length=255)
    location: Location | None = None


class UserEnvelope(BaseModel):
    user: UserOut


# ── Login / refresh ──────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    user: UserOut
    access_token: str
    token_type: str = "bearer"
