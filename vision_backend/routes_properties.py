"""
vision_backend/routes_properties.py

Property listing endpoints.

Security guarantees:
- Listing and detail routes are public; the listing recognises brokers and
  admins (valid bearer token) and lets them see inactive listings
- Create requires broker or admin; created_by comes from the auth context only
- Update/delete require broker or admin AND ownership (admins bypass)
- Input is validated before any image is uploaded, and uploaded images are
  discarded again if the listing cannot be written
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, File, Form, Path, Query, Request, UploadFile
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile as StarletteUploadFile

from vision_backend.auth_context import AuthContext, get_db, optional_auth_context
from vision_backend.dependencies import broker_or_admin
from vision_backend.errors import ValidationError
from vision_backend.rbac import Capability, check_capability
from vision_backend.uploads import UploadAdapter, get_upload_adapter
from vision_backend import properties_service

router = APIRouter(
    prefix="/api/properties",
    tags=["properties"],
)

# Scalar fields accepted on update, from a form or a JSON object
UPDATE_FIELDS = (
    "title",
    "description",
    "type",
    "price",
    "location",
    "area",
    "bedrooms",
    "bathrooms",
    "garages",
    "featured",
    "active",
)

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def read_update_body(request: Request) -> Tuple[Dict[str, Any], List[UploadFile]]:
    """
    Collect update fields and image files from a multipart/urlencoded form
    or a JSON object. Unknown keys are ignored; JSON bodies carry no images.

    Raises:
        ValidationError: body is neither a form nor a JSON object
    """
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        fields = {name: form.get(name) for name in UPDATE_FIELDS if name in form}
        files = [f for f in form.getlist("images") if isinstance(f, StarletteUploadFile)]
        return fields, files

    raw = await request.body()
    if not raw.strip():
        return {}, []
    try:
        body = json.loads(raw)
    except ValueError:
        raise ValidationError("Request body must be JSON or multipart form data")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return {name: body[name] for name in UPDATE_FIELDS if name in body}, []


@router.get("")
def list_properties(
    type: Optional[str] = Query(None, description="Exact property type"),
    location: Optional[str] = Query(None, description="Case-insensitive substring"),
    min_price: Optional[str] = Query(None, alias="minPrice"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    featured: Optional[str] = Query(None),
    active: Optional[str] = Query(None, description="Honoured for brokers/admins only"),
    ctx: Optional[AuthContext] = Depends(optional_auth_context),
    conn: sqlite3.Connection = Depends(get_db),
):
    """
    Raises:
        ValidationError (400): a non-blank filter of the wrong type
    """
    filters = properties_service.parse_property_filters({
        "type": type,
        "location": location,
        "minPrice": min_price,
        "maxPrice": max_price,
        "featured": featured,
        "active": active,
    })
    privileged = check_capability(ctx, Capability.BROKER_OR_ADMIN)
    properties = properties_service.list_properties(conn, filters, privileged=privileged)
    return {"success": True, "count": len(properties), "data": properties}


@router.get("/featured")
def list_featured(conn: sqlite3.Connection = Depends(get_db)):
    properties = properties_service.list_featured(conn)
    return {"success": True, "count": len(properties), "data": properties}


@router.get("/{property_id}")
def get_property(property_id: str = Path(...), conn: sqlite3.Connection = Depends(get_db)):
    return {"success": True, "data": properties_service.get_property(conn, property_id)}


@router.post("", status_code=201)
async def create_property(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    area: Optional[str] = Form(None),
    bedrooms: Optional[str] = Form(None),
    bathrooms: Optional[str] = Form(None),
    garages: Optional[str] = Form(None),
    featured: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    ctx: AuthContext = Depends(broker_or_admin),
    conn: sqlite3.Connection = Depends(get_db),
    uploader: UploadAdapter = Depends(get_upload_adapter),
):
    """
    Create a listing from multipart form fields plus 1..10 image files.

    Raises:
        ValidationError (400): missing/invalid fields or no image
        Forbidden (403): caller is not a broker or admin
    """
    files = images or []
    form = {
        "title": title,
        "description": description,
        "type": type,
        "price": price,
        "location": location,
        "area": area,
        "bedrooms": bedrooms,
        "bathrooms": bathrooms,
        "garages": garages,
        "featured": featured,
    }
    payload = properties_service.parse_property_create(form, image_count=len(files))
    image_refs = await uploader.save(files)

    try:
        created = await run_in_threadpool(properties_service.create_property, conn, ctx, payload, image_refs)
    except Exception:
        await uploader.discard(image_refs)
        raise
    return {"success": True, "message": "Property created", "data": created}


@router.put("/{property_id}")
async def update_property(
    request: Request,
    property_id: str = Path(...),
    ctx: AuthContext = Depends(broker_or_admin),
    conn: sqlite3.Connection = Depends(get_db),
    uploader: UploadAdapter = Depends(get_upload_adapter),
):
    """
    Partial update from multipart form fields (optionally with new images)
    or a JSON object. Images are replaced wholesale only when files are sent.

    Raises:
        ValidationError (400): invalid values, or nothing to update
        NotFound (404): unknown property
        Forbidden (403): caller is neither admin nor the owning broker
    """
    await run_in_threadpool(properties_service.load_for_mutation, conn, ctx, property_id, "edit")

    fields, files = await read_update_body(request)
    payload = properties_service.parse_property_update(fields)
    if not payload.model_dump(exclude_none=True) and not files:
        raise ValidationError("No fields to update")

    image_refs = await uploader.save(files) if files else None
    try:
        updated = await run_in_threadpool(
            properties_service.update_property, conn, ctx, property_id, payload, image_refs
        )
    except Exception:
        if image_refs:
            await uploader.discard(image_refs)
        raise
    return {"success": True, "message": "Property updated", "data": updated}


@router.delete("/{property_id}")
def delete_property(
    property_id: str = Path(...),
    ctx: AuthContext = Depends(broker_or_admin),
    conn: sqlite3.Connection = Depends(get_db),
):
    properties_service.delete_property(conn, ctx, property_id)
    return {"success": True, "message": "Property deleted"}
