# vision_backend/models.py
# Stored enum values and timestamp format shared by schemas and services

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum


class UserRole(str, Enum):
    admin = "admin"
    broker = "broker"


class PropertyType(str, Enum):
    apartment = "apartment"
    house = "house"
    land = "land"
    commercial = "commercial"


class AppointmentStatus(str, Enum):
    pending = "pending"
    contacted = "contacted"
    scheduled = "scheduled"
    completed = "completed"
    cancelled = "cancelled"


def now_iso() -> str:
    """UTC timestamp, ISO-8601 with microseconds and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")
