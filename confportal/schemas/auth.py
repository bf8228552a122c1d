"""
Authentication schemas.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from confportal.kernel.models.user import UserRole


class UserCreate(BaseModel):
    """User registration request."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=255)
    role: UserRole = UserRole.STUDENT
    phone: Optional[str] = Field(None, max_length=20)
    institution: Optional[str] = Field(None, max_length=255)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not any(c.isalpha() for c in v):
            raise ValueError("Password must contain at least one letter")
        if not any(c.isdigit() for c in v):
            raise ValueError("Password must contain at least one digit")
        return v


class UserLogin(BaseModel):
    """User login request."""

    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """User profile response."""

    id: uuid.UUID
    email: str
    full_name: str
    role: Optional[str] = None
    phone: Optional[str] = None
    institution: Optional[str] = None
    is_active: bool
    verification_status: str
    created_at: datetime

    @field_validator("role", "verification_status", mode="before")
    @classmethod
    def enum_value(cls, v):
        return v.value if isinstance(v, Enum) else v

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """Authentication token response."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
