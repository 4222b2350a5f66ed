"""
vision_backend/schemas_appointments.py

Pydantic schemas for client interest submissions ("appointments").
Field names on the wire are camelCase (propertyId, clientName, ...).
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from vision_backend.models import AppointmentStatus


class AppointmentCreateRequest(BaseModel):
    """Public submission. Only the property reference, name and phone are required."""
    model_config = ConfigDict(populate_by_name=True)

    property_id: str = Field(..., alias="propertyId", min_length=1)
    client_name: str = Field(..., alias="clientName", min_length=1, max_length=200)
    client_phone: str = Field(..., alias="clientPhone", min_length=1, max_length=50)
    client_email: Optional[EmailStr] = Field(None, alias="clientEmail")
    client_message: Optional[str] = Field(None, alias="clientMessage", max_length=1000)

    @field_validator("property_id", "client_name", "client_phone", "client_message", mode="before")
    @classmethod
    def trim_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("client_email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v


class AppointmentStatusUpdate(BaseModel):
    """Only the status can change after submission; other keys are ignored."""
    status: Optional[AppointmentStatus] = None


class PropertyInfo(BaseModel):
    """Summary of the referenced listing, when it still exists."""
    id: str
    title: str
    location: str
    price: float
    images: Optional[List[str]] = None


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    property: str
    property_title: str = Field(..., alias="propertyTitle")
    property_info: Optional[PropertyInfo] = Field(None, alias="propertyInfo")
    client_name: str = Field(..., alias="clientName")
    client_phone: str = Field(..., alias="clientPhone")
    client_email: Optional[str] = Field(None, alias="clientEmail")
    client_message: Optional[str] = Field(None, alias="clientMessage")
    status: AppointmentStatus
    created_at: str = Field(..., alias="createdAt")
    updated_at: str = Field(..., alias="updatedAt")
