"""
vision_backend/schemas_properties.py

Pydantic schemas for property listings.

Create/update payloads arrive as multipart form fields; the routes collect
them into dicts and the service validates them through these schemas.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vision_backend.models import PropertyType

# Scalar form fields that must be present on create
REQUIRED_PROPERTY_FIELDS = (
    "title",
    "description",
    "type",
    "price",
    "location",
    "area",
    "bedrooms",
    "bathrooms",
    "garages",
)

# Browsers post this literal for unset FormData values
UNDEFINED_PLACEHOLDER = "undefined"


def is_missing(value) -> bool:
    """True for None, blank strings and the 'undefined' placeholder."""
    if value is None:
        return True
    if isinstance(value, str):
        stripped = value.strip()
        return not stripped or stripped == UNDEFINED_PLACEHOLDER
    return False


class PropertyCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    type: PropertyType
    price: float = Field(..., ge=0)
    location: str = Field(..., min_length=1, max_length=200)
    area: float = Field(..., ge=0)
    bedrooms: int = Field(..., ge=0)
    bathrooms: int = Field(..., ge=0)
    garages: int = Field(..., ge=0)
    featured: bool = False

    @field_validator("title", "description", "location", mode="before")
    @classmethod
    def trim_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class PropertyUpdate(BaseModel):
    """Partial update; only fields present in the request are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    type: Optional[PropertyType] = None
    price: Optional[float] = Field(None, ge=0)
    location: Optional[str] = Field(None, min_length=1, max_length=200)
    area: Optional[float] = Field(None, ge=0)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    garages: Optional[int] = Field(None, ge=0)
    featured: Optional[bool] = None
    active: Optional[bool] = None

    @field_validator("*", mode="before")
    @classmethod
    def placeholder_is_absent(cls, v):
        if is_missing(v):
            return None
        if isinstance(v, str):
            return v.strip()
        return v


class PropertyFilters(BaseModel):
    """Listing filters from the query string; price bounds are inclusive."""
    model_config = ConfigDict(populate_by_name=True)

    type: Optional[PropertyType] = None
    location: Optional[str] = Field(None, max_length=200)
    min_price: Optional[float] = Field(None, alias="minPrice", ge=0)
    max_price: Optional[float] = Field(None, alias="maxPrice", ge=0)
    featured: Optional[bool] = None
    active: Optional[bool] = None


class OwnerSummary(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None


class PropertyResponse(BaseModel):
    """
    Public listing shape.

    owner is a documented alias of createdBy and always carries the same value.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: str
    type: PropertyType
    price: float
    location: str
    area: float
    bedrooms: int
    bathrooms: int
    garages: int
    images: List[str]
    featured: bool
    active: bool
    created_by: OwnerSummary = Field(..., alias="createdBy")
    owner: OwnerSummary
    created_at: str = Field(..., alias="createdAt")
    updated_at: str = Field(..., alias="updatedAt")
