"""
vision_backend/auth_context.py

Shared authentication context primitives for FastAPI dependency injection.

Contains:
- AuthContext: immutable identity of the authenticated caller
- get_app_settings / get_db: per-request settings and database connection
- load_identity: token -> active user lookup
- require_auth_context: FastAPI dependency for auth enforcement
- optional_auth_context: same pipeline, but anonymous callers get None

Pipeline per request (linear, no retries):
    Extract bearer token -> Verify signature/expiry -> Load active user
Authorization by role/ownership happens afterwards (see rbac.py and
dependencies.py).
"""

from __future__ import annotations

import sqlite3
from typing import Generator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict

from vision_backend.config import Settings
from vision_backend.db import get_db_connection, row_to_dict
from vision_backend.errors import Unauthenticated
from vision_backend.tokens import verify_token

# auto_error=False: missing/non-Bearer headers are answered with our 401 envelope
security = HTTPBearer(auto_error=False)

# Columns loaded for an identity; password_hash is deliberately absent
IDENTITY_COLUMNS = "id, username, email, name, role, active, created_at, updated_at"


# ---------------------------------------------------------
# DB Helper
# ---------------------------------------------------------
def get_app_settings(request: Request) -> Settings:
    """Settings of the app serving this request (installed by create_app)."""
    return request.app.state.settings


def get_db(settings: Settings = Depends(get_app_settings)) -> Generator[sqlite3.Connection, None, None]:
    """
    Yield a SQLite connection for the duration of one request.
    Used by auth dependencies and endpoints.
    """
    with get_db_connection(settings) as conn:
        yield conn


# ---------------------------------------------------------
# AuthContext
# ---------------------------------------------------------
class AuthContext(BaseModel):
    """
    Immutable identity derived from server-side token verification.

    This is the only source of truth for the caller's id and role in
    protected endpoints. Never trust user ids from request bodies.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    username: str
    email: str
    name: str
    role: str
    active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def public_dict(self) -> dict:
        return {
            "id": self.user_id,
            "username": self.username,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "active": self.active,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


def extract_bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    """Step 1: the Authorization header must be 'Bearer <token>'."""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Not authorized - token not provided")
    if credentials.scheme.lower() != "bearer":
        raise Unauthenticated("Not authorized - token not provided")
    return credentials.credentials


def load_identity(conn: sqlite3.Connection, token: str, settings: Optional[Settings] = None) -> AuthContext:
    """
    Steps 2 and 3: verify the token and load the (active) user it names.

    Raises:
        Unauthenticated: invalid/expired token, unknown or inactive user
    """
    user_id = verify_token(token, settings)

    cur = conn.cursor()
    cur.execute(f"SELECT {IDENTITY_COLUMNS} FROM users WHERE id = ?", (user_id,))
    user = row_to_dict(cur.fetchone())

    if not user:
        print(f"[AUTH] User not found: user_id={user_id}")
        raise Unauthenticated("User not found or inactive")

    if not user["active"]:
        print(f"[AUTH] Inactive user attempted access: user_id={user_id}")
        raise Unauthenticated("User not found or inactive")

    return AuthContext(
        user_id=user["id"],
        username=user["username"],
        email=user["email"],
        name=user["name"],
        role=user["role"],
        active=user["active"],
        created_at=user["created_at"],
        updated_at=user["updated_at"],
    )


def require_auth_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    conn: sqlite3.Connection = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AuthContext:
    """
    Auth context dependency for protected routes.

    On success the identity is attached to request.state.identity for
    downstream use and returned.

    Usage:
        @router.get("/protected")
        def protected_route(ctx: AuthContext = Depends(require_auth_context)):
            ...

    Raises:
        Unauthenticated (401): missing/malformed header, invalid or expired
            token, user not found or inactive
    """
    token = extract_bearer_token(credentials)
    ctx = load_identity(conn, token, settings)
    request.state.identity = ctx

    if settings.is_dev:
        print(f"[AUTH] Authenticated: user_id={ctx.user_id}, role={ctx.role}")

    return ctx


def optional_auth_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    conn: sqlite3.Connection = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Optional[AuthContext]:
    """
    Resolve the caller's identity on public routes.

    Anonymous callers, and callers presenting a token that fails
    verification, are treated as the public and get None.
    """
    if credentials is None:
        return None
    try:
        token = extract_bearer_token(credentials)
        ctx = load_identity(conn, token, settings)
    except Unauthenticated:
        return None
    request.state.identity = ctx
    return ctx
