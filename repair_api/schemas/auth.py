from pydantic import BaseModel, EmailStr
from datetime import datetime
from typing import Optional, Literal


RoleType = Literal["admin", "manager", "receptionist", "technician", "user"]


class UserResponse(BaseModel):
    """Schema for user response."""

    id: int
    company_id: int
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool
    is_admin: bool
    role: RoleType = "user"
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuthMeResponse(BaseModel):
    """Response wrapper for /auth/me."""

    user: UserResponse


class Token(BaseModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    """Data encoded in JWT token."""

    user_id: Optional[int] = None
    email: Optional[str] = None


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str
