"""
vision_backend/routes_auth.py

Authentication endpoints: login, current user, logout.

Tokens are stateless; logout only acknowledges the request and the client
discards its token.
"""

from __future__ import annotations

import sqlite3

from fastapi import APIRouter, Depends

from vision_backend.auth_context import AuthContext, get_app_settings, get_db, require_auth_context
from vision_backend.config import Settings
from vision_backend.schemas_users import LoginRequest
from vision_backend.tokens import issue_token
from vision_backend import users_service

router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
)


@router.post("/login")
def login(
    req: LoginRequest,
    conn: sqlite3.Connection = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """
    Exchange username/password for a 30-day bearer token.

    Raises:
        InvalidCredentials (401): unknown user, inactive user or wrong password
    """
    user = users_service.authenticate(conn, req.username, req.password)
    token = issue_token(user["id"], settings)
    return {
        "success": True,
        "message": "Login successful",
        "token": token,
        "user": {
            "id": user["id"],
            "username": user["username"],
            "email": user["email"],
            "name": user["name"],
            "role": user["role"],
        },
    }


@router.get("/me")
def me(ctx: AuthContext = Depends(require_auth_context)):
    return {"success": True, "user": ctx.public_dict()}


@router.post("/logout")
def logout(ctx: AuthContext = Depends(require_auth_context)):
    print(f"[AUTH] Logout: user_id={ctx.user_id}")
    return {"success": True, "message": "Logged out"}
