from pydantic import BaseModel, EmailStr, Field

from bbm.models.enums import Location, UserRole


class CreateUserRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=1, max_length=255)
    role: UserRole = UserRole.OPERATIONAL
    location: Location | None = None


class UserUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=8)
    name: str | None = Field(None, min_length=1, max_length=255)
    role: UserRole | None = None
    location: Location | None = None
    is_active: bool | None = None


class ToggleStatusResponse(BaseModel):
    message: str
    is_active: bool
