"""
vision_backend/routes_users.py

User management endpoints. Every route is admin-only.
"""

from __future__ import annotations

import sqlite3

from fastapi import APIRouter, Depends, Path

from vision_backend.auth_context import get_db
from vision_backend.dependencies import admin_only
from vision_backend.schemas_users import UserCreateRequest, UserUpdateRequest
from vision_backend import users_service

router = APIRouter(
    prefix="/api/users",
    tags=["users"],
    dependencies=[Depends(admin_only)],
)


@router.get("")
def list_users(conn: sqlite3.Connection = Depends(get_db)):
    users = users_service.list_users(conn)
    return {"success": True, "count": len(users), "data": users}


@router.get("/brokers")
def list_brokers(conn: sqlite3.Connection = Depends(get_db)):
    brokers = users_service.list_brokers(conn)
    return {"success": True, "count": len(brokers), "data": brokers}


@router.post("", status_code=201)
def create_user(req: UserCreateRequest, conn: sqlite3.Connection = Depends(get_db)):
    """
    Create a broker (default) or admin account.

    Raises:
        Conflict (400): username or email already registered
    """
    user = users_service.create_user(conn, req)
    return {"success": True, "message": "User created", "data": user}


@router.get("/{user_id}")
def get_user(user_id: str = Path(...), conn: sqlite3.Connection = Depends(get_db)):
    return {"success": True, "data": users_service.get_user(conn, user_id)}


@router.put("/{user_id}")
def update_user(
    req: UserUpdateRequest,
    user_id: str = Path(...),
    conn: sqlite3.Connection = Depends(get_db),
):
    user = users_service.update_user(conn, user_id, req)
    return {"success": True, "message": "User updated", "data": user}


@router.delete("/{user_id}")
def delete_user(user_id: str = Path(...), conn: sqlite3.Connection = Depends(get_db)):
    """
    Raises:
        Forbidden (403): deleting the last administrator
    """
    users_service.delete_user(conn, user_id)
    return {"success": True, "message": "User deleted"}
