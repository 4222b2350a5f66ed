"""
vision_backend/routes_appointments.py

Client interest endpoints.

POST is public (website contact form); everything else is admin-only and
the only mutation available after submission is the status change.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from vision_backend.auth_context import get_db
from vision_backend.dependencies import admin_only
from vision_backend.models import AppointmentStatus
from vision_backend.schemas_appointments import AppointmentCreateRequest, AppointmentStatusUpdate
from vision_backend import appointments_service

router = APIRouter(
    prefix="/api/appointments",
    tags=["appointments"],
)


@router.post("", status_code=201)
def create_appointment(req: AppointmentCreateRequest, conn: sqlite3.Connection = Depends(get_db)):
    """
    Raises:
        ValidationError (400): missing name/phone/property, malformed email
        NotFound (404): referenced property does not exist
    """
    appointment = appointments_service.create_appointment(conn, req)
    return {"success": True, "message": "Interest registered successfully", "data": appointment}


@router.get("", dependencies=[Depends(admin_only)])
def list_appointments(
    status: Optional[AppointmentStatus] = Query(None),
    property_id: Optional[str] = Query(None, alias="propertyId"),
    conn: sqlite3.Connection = Depends(get_db),
):
    appointments = appointments_service.list_appointments(conn, status=status, property_id=property_id)
    return {"success": True, "count": len(appointments), "data": appointments}


@router.get("/{appointment_id}", dependencies=[Depends(admin_only)])
def get_appointment(appointment_id: str = Path(...), conn: sqlite3.Connection = Depends(get_db)):
    return {"success": True, "data": appointments_service.get_appointment(conn, appointment_id)}


@router.put("/{appointment_id}", dependencies=[Depends(admin_only)])
def update_appointment(
    req: AppointmentStatusUpdate,
    appointment_id: str = Path(...),
    conn: sqlite3.Connection = Depends(get_db),
):
    appointment = appointments_service.update_appointment_status(conn, appointment_id, req.status)
    return {"success": True, "message": "Status updated", "data": appointment}


@router.delete("/{appointment_id}", dependencies=[Depends(admin_only)])
def delete_appointment(appointment_id: str = Path(...), conn: sqlite3.Connection = Depends(get_db)):
    appointments_service.delete_appointment(conn, appointment_id)
    return {"success": True, "message": "Appointment deleted"}
