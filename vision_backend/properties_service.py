"""
vision_backend/properties_service.py

Property resource service: listing queries, create/update/delete with
field validation and the ownership rule (owning broker or admin only).

Image files never reach this module; routes hand over the references
returned by the upload adapter.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from vision_backend.auth_context import AuthContext
from vision_backend.db import encode_images, new_id, row_to_dict
from vision_backend.errors import InternalError, NotFound, ValidationError, format_validation_errors
from vision_backend.models import now_iso
from vision_backend.rbac import Capability, authorize
from vision_backend.schemas_properties import (
    REQUIRED_PROPERTY_FIELDS,
    OwnerSummary,
    PropertyCreate,
    PropertyFilters,
    PropertyResponse,
    PropertyUpdate,
    is_missing,
)

FEATURED_LIMIT = 6

SELECT_WITH_OWNER = """
    SELECT p.*, u.name AS owner_name, u.email AS owner_email
    FROM properties p
    LEFT JOIN users u ON u.id = p.created_by
"""

ORDER_FEATURED_NEWEST = " ORDER BY p.featured DESC, p.created_at DESC, p.rowid DESC"


def serialize_property(row: Dict[str, Any]) -> Dict[str, Any]:
    owner = OwnerSummary(
        id=row["created_by"],
        name=row.get("owner_name"),
        email=row.get("owner_email"),
    )
    return PropertyResponse(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        type=row["type"],
        price=row["price"],
        location=row["location"],
        area=row["area"],
        bedrooms=row["bedrooms"],
        bathrooms=row["bathrooms"],
        garages=row["garages"],
        images=row["images"],
        featured=row["featured"],
        active=row["active"],
        created_by=owner,
        owner=owner,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    ).model_dump(by_alias=True, mode="json")


def _fetch_property(conn: sqlite3.Connection, property_id: str) -> Dict[str, Any]:
    cur = conn.cursor()
    cur.execute(SELECT_WITH_OWNER + " WHERE p.id = ?", (property_id,))
    row = row_to_dict(cur.fetchone())
    if not row:
        raise NotFound("Property not found")
    return row


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ---------------------------------------------------------
# Input parsing
# ---------------------------------------------------------
def parse_property_create(form: Mapping[str, Any], image_count: int) -> PropertyCreate:
    """
    Validate create input before any image is uploaded.

    Raises:
        ValidationError: missing fields (named), no image, or invalid values
    """
    missing = [name for name in REQUIRED_PROPERTY_FIELDS if is_missing(form.get(name))]
    if missing:
        raise ValidationError(
            f"All required fields must be filled in: {', '.join(missing)}",
            errors=[{"field": name, "message": "field required"} for name in missing],
        )
    if image_count < 1:
        raise ValidationError(
            "At least one image is required",
            errors=[{"field": "images", "message": "at least one image is required"}],
        )

    data = {name: form.get(name) for name in REQUIRED_PROPERTY_FIELDS}
    if not is_missing(form.get("featured")):
        data["featured"] = form.get("featured")
    try:
        return PropertyCreate.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Invalid property data", errors=format_validation_errors(e.errors()))


def parse_property_filters(query: Mapping[str, Any]) -> PropertyFilters:
    """
    Validate listing filters. Blank values count as absent, since search
    forms submit every field.

    Raises:
        ValidationError: a filter value of the wrong type
    """
    data = {k: v for k, v in query.items() if not is_missing(v)}
    try:
        return PropertyFilters.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Invalid filters", errors=format_validation_errors(e.errors()))


def parse_property_update(form: Mapping[str, Any]) -> PropertyUpdate:
    data = {k: v for k, v in form.items() if k in PropertyUpdate.model_fields and not is_missing(v)}
    try:
        return PropertyUpdate.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Invalid property data", errors=format_validation_errors(e.errors()))


# ---------------------------------------------------------
# Queries
# ---------------------------------------------------------
def list_properties(
    conn: sqlite3.Connection,
    filters: PropertyFilters,
    privileged: bool = False,
) -> List[Dict[str, Any]]:
    """
    List properties, featured first then newest first.

    Public callers only ever see active listings; privileged callers see
    everything unless they pass an explicit active filter.
    """
    clauses: List[str] = []
    params: List[Any] = []

    if not privileged:
        clauses.append("p.active = 1")
    elif filters.active is not None:
        clauses.append("p.active = ?")
        params.append(1 if filters.active else 0)

    if filters.type is not None:
        clauses.append("p.type = ?")
        params.append(filters.type.value)
    if filters.location:
        clauses.append("LOWER(p.location) LIKE ? ESCAPE '\\'")
        params.append(f"%{_escape_like(filters.location.strip().lower())}%")
    if filters.min_price is not None:
        clauses.append("p.price >= ?")
        params.append(filters.min_price)
    if filters.max_price is not None:
        clauses.append("p.price <= ?")
        params.append(filters.max_price)
    if filters.featured is not None:
        clauses.append("p.featured = ?")
        params.append(1 if filters.featured else 0)

    query = SELECT_WITH_OWNER
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += ORDER_FEATURED_NEWEST

    cur = conn.cursor()
    cur.execute(query, params)
    return [serialize_property(row_to_dict(r)) for r in cur.fetchall()]


def list_featured(conn: sqlite3.Connection, limit: int = FEATURED_LIMIT) -> List[Dict[str, Any]]:
    cur = conn.cursor()
    cur.execute(SELECT_WITH_OWNER + " WHERE p.active = 1" + ORDER_FEATURED_NEWEST + " LIMIT ?", (limit,))
    return [serialize_property(row_to_dict(r)) for r in cur.fetchall()]


def get_property(conn: sqlite3.Connection, property_id: str) -> Dict[str, Any]:
    return serialize_property(_fetch_property(conn, property_id))


def load_for_mutation(
    conn: sqlite3.Connection,
    identity: AuthContext,
    property_id: str,
    action: str = "edit",
) -> Dict[str, Any]:
    """
    Load a property and apply the ownership rule.

    Raises:
        NotFound: unknown id
        Forbidden: caller is neither admin nor the owning broker
    """
    row = _fetch_property(conn, property_id)
    authorize(
        identity,
        Capability.BROKER_OR_ADMIN,
        owner_id=row["created_by"],
        message=f"You do not have permission to {action} this property",
    )
    return row


# ---------------------------------------------------------
# Mutations
# ---------------------------------------------------------
def create_property(
    conn: sqlite3.Connection,
    identity: AuthContext,
    payload: PropertyCreate,
    image_refs: Sequence[str],
) -> Dict[str, Any]:
    authorize(identity, Capability.BROKER_OR_ADMIN)
    if not image_refs:
        raise ValidationError("At least one image is required")

    property_id = new_id()
    now = now_iso()
    try:
        conn.execute(
            """
            INSERT INTO properties (
                id, title, description, type, price, location, area,
                bedrooms, bathrooms, garages, images, featured, active,
                created_by, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?, ?)
            """,
            (
                property_id,
                payload.title,
                payload.description,
                payload.type.value,
                payload.price,
                payload.location,
                payload.area,
                payload.bedrooms,
                payload.bathrooms,
                payload.garages,
                encode_images(image_refs),
                1 if payload.featured else 0,
                identity.user_id,
                now,
                now,
            ),
        )
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        print(f"[PROPERTIES] DB error on create: {e}")
        raise InternalError("Error creating property")

    print(f"[PROPERTIES] Created property_id={property_id}, created_by={identity.user_id}, images={len(image_refs)}")
    return get_property(conn, property_id)


def update_property(
    conn: sqlite3.Connection,
    identity: AuthContext,
    property_id: str,
    payload: PropertyUpdate,
    image_refs: Optional[Sequence[str]] = None,
) -> Dict[str, Any]:
    """
    Apply a partial update. The image list is replaced wholesale, and only
    when new references are supplied.
    """
    load_for_mutation(conn, identity, property_id, action="edit")

    updates: Dict[str, Any] = {}
    for field, value in payload.model_dump(exclude_none=True).items():
        if field == "type":
            value = value.value
        elif field in ("featured", "active"):
            value = 1 if value else 0
        updates[field] = value
    if image_refs:
        updates["images"] = encode_images(image_refs)

    if updates:
        updates["updated_at"] = now_iso()
        assignments = ", ".join(f"{column} = ?" for column in updates)
        try:
            conn.execute(
                f"UPDATE properties SET {assignments} WHERE id = ?",
                (*updates.values(), property_id),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            print(f"[PROPERTIES] DB error on update: {e}")
            raise InternalError("Error updating property")
        print(f"[PROPERTIES] Updated property_id={property_id}, fields={sorted(k for k in updates if k != 'updated_at')}")

    return get_property(conn, property_id)


def delete_property(conn: sqlite3.Connection, identity: AuthContext, property_id: str) -> None:
    """Delete after the ownership check. Appointments keep their title snapshot."""
    load_for_mutation(conn, identity, property_id, action="delete")
    try:
        conn.execute("DELETE FROM properties WHERE id = ?", (property_id,))
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        print(f"[PROPERTIES] DB error on delete: {e}")
        raise InternalError("Error deleting property")

    print(f"[PROPERTIES] Deleted property_id={property_id}, by user_id={identity.user_id}")
