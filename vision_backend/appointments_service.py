"""
vision_backend/appointments_service.py

Appointment (client interest) resource service.

Submissions are public; the property title is copied into the record at
creation so it stays meaningful after the listing is renamed or removed.
Reading, status changes and deletion are admin-only (enforced by routes).
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Dict, List, Optional

from vision_backend.db import new_id
from vision_backend.errors import InternalError, NotFound
from vision_backend.models import AppointmentStatus, now_iso
from vision_backend.schemas_appointments import (
    AppointmentCreateRequest,
    AppointmentResponse,
    PropertyInfo,
)

SELECT_WITH_PROPERTY = """
    SELECT a.*,
           p.title AS p_title, p.location AS p_location, p.price AS p_price, p.images AS p_images
    FROM appointments a
    LEFT JOIN properties p ON p.id = a.property_id
"""


def serialize_appointment(row: Dict[str, Any], include_images: bool = False) -> Dict[str, Any]:
    info = None
    if row.get("p_title") is not None:
        info = PropertyInfo(
            id=row["property_id"],
            title=row["p_title"],
            location=row["p_location"],
            price=row["p_price"],
            images=row["p_images"] if include_images else None,
        )
    return AppointmentResponse(
        id=row["id"],
        property=row["property_id"],
        property_title=row["property_title"],
        property_info=info,
        client_name=row["client_name"],
        client_phone=row["client_phone"],
        client_email=row.get("client_email"),
        client_message=row.get("client_message"),
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    ).model_dump(by_alias=True, mode="json")


def _fetch_appointment(conn: sqlite3.Connection, appointment_id: str) -> Dict[str, Any]:
    cur = conn.cursor()
    cur.execute(SELECT_WITH_PROPERTY + " WHERE a.id = ?", (appointment_id,))
    row = cur.fetchone()
    if row is None:
        raise NotFound("Appointment not found")
    data = dict(row)
    if data.get("p_images") is not None:
        data["p_images"] = json.loads(data["p_images"])
    return data


def create_appointment(conn: sqlite3.Connection, payload: AppointmentCreateRequest) -> Dict[str, Any]:
    """
    Record a client's interest in a property.

    Raises:
        NotFound: the referenced property does not exist
    """
    cur = conn.cursor()
    cur.execute("SELECT id, title FROM properties WHERE id = ?", (payload.property_id,))
    prop = cur.fetchone()
    if prop is None:
        raise NotFound("Property not found")

    appointment_id = new_id()
    now = now_iso()
    try:
        conn.execute(
            """
            INSERT INTO appointments (
                id, property_id, property_title, client_name, client_phone,
                client_email, client_message, status, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                appointment_id,
                prop["id"],
                prop["title"],
                payload.client_name,
                payload.client_phone,
                str(payload.client_email) if payload.client_email else None,
                payload.client_message or None,
                AppointmentStatus.pending.value,
                now,
                now,
            ),
        )
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        print(f"[APPOINTMENTS] DB error on create: {e}")
        raise InternalError("Error registering interest")

    print(f"[APPOINTMENTS] Created appointment_id={appointment_id}, property_id={prop['id']}")
    return get_appointment(conn, appointment_id)


def list_appointments(
    conn: sqlite3.Connection,
    status: Optional[AppointmentStatus] = None,
    property_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    clauses: List[str] = []
    params: List[Any] = []
    if status is not None:
        clauses.append("a.status = ?")
        params.append(status.value)
    if property_id:
        clauses.append("a.property_id = ?")
        params.append(property_id)

    query = SELECT_WITH_PROPERTY
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += " ORDER BY a.created_at DESC, a.rowid DESC"

    cur = conn.cursor()
    cur.execute(query, params)
    return [serialize_appointment(dict(r)) for r in cur.fetchall()]


def get_appointment(conn: sqlite3.Connection, appointment_id: str) -> Dict[str, Any]:
    return serialize_appointment(_fetch_appointment(conn, appointment_id), include_images=True)


def update_appointment_status(
    conn: sqlite3.Connection,
    appointment_id: str,
    status: Optional[AppointmentStatus],
) -> Dict[str, Any]:
    """Change the status; a missing status leaves the record untouched."""
    _fetch_appointment(conn, appointment_id)

    if status is not None:
        try:
            conn.execute(
                "UPDATE appointments SET status = ?, updated_at = ? WHERE id = ?",
                (status.value, now_iso(), appointment_id),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            print(f"[APPOINTMENTS] DB error on update: {e}")
            raise InternalError("Error updating appointment")
        print(f"[APPOINTMENTS] Status updated: appointment_id={appointment_id}, status={status.value}")

    return get_appointment(conn, appointment_id)


def delete_appointment(conn: sqlite3.Connection, appointment_id: str) -> None:
    _fetch_appointment(conn, appointment_id)
    try:
        conn.execute("DELETE FROM appointments WHERE id = ?", (appointment_id,))
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        print(f"[APPOINTMENTS] DB error on delete: {e}")
        raise InternalError("Error deleting appointment")

    print(f"[APPOINTMENTS] Deleted appointment_id={appointment_id}")
