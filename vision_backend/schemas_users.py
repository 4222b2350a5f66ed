"""
vision_backend/schemas_users.py

Pydantic schemas for authentication and user management.
Passwords are accepted on input only; no response schema carries them.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from vision_backend.models import UserRole


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, description="Username (case-insensitive)")
    password: str = Field(..., min_length=1, description="Plain-text password")

    @field_validator("username", mode="before")
    @classmethod
    def normalize_username(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class UserCreateRequest(BaseModel):
    """Request schema for creating a broker or admin account.

    username and email are trimmed and lowercased before validation.
    """
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1, max_length=120)
    role: UserRole = UserRole.broker

    @field_validator("username", "email", mode="before")
    @classmethod
    def normalize_identifier(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("role", mode="before")
    @classmethod
    def default_role(cls, v):
        return _blank_to_none(v) or UserRole.broker


class UserUpdateRequest(BaseModel):
    """Partial update; absent or blank fields are left unchanged."""
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    active: Optional[bool] = None
    role: Optional[UserRole] = None

    @field_validator("username", "email", mode="before")
    @classmethod
    def normalize_identifier(cls, v):
        v = _blank_to_none(v)
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        v = _blank_to_none(v)
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("password", "role", mode="before")
    @classmethod
    def blank_is_absent(cls, v):
        return _blank_to_none(v)


class UserResponse(BaseModel):
    """Public user projection (never includes the password hash)."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    username: str
    email: str
    name: str
    role: UserRole
    active: bool
    created_at: str = Field(..., alias="createdAt")
    updated_at: str = Field(..., alias="updatedAt")
