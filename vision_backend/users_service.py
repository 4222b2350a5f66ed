"""
vision_backend/users_service.py

User resource service: account CRUD, login and the admin bootstrap.

Invariants enforced here:
- passwords are hashed before persistence and never returned or logged
- username and email are unique (checked at write time, named on collision)
- the last admin, and the last active admin, can never be deleted
- an update may not leave the store without an active admin
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional

from vision_backend.config import Settings
from vision_backend.db import new_id, row_to_dict
from vision_backend.errors import Conflict, Forbidden, InternalError, InvalidCredentials, NotFound
from vision_backend.models import UserRole, now_iso
from vision_backend.passwords import hash_password, verify_password
from vision_backend.schemas_users import UserCreateRequest, UserResponse, UserUpdateRequest

PUBLIC_COLUMNS = "id, username, email, name, role, active, created_at, updated_at"


def serialize_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """Render a user row as the public JSON shape (password hash dropped)."""
    return UserResponse(
        id=user["id"],
        username=user["username"],
        email=user["email"],
        name=user["name"],
        role=user["role"],
        active=user["active"],
        created_at=user["created_at"],
        updated_at=user["updated_at"],
    ).model_dump(by_alias=True, mode="json")


def _fetch_user(conn: sqlite3.Connection, user_id: str) -> Dict[str, Any]:
    cur = conn.cursor()
    cur.execute(f"SELECT {PUBLIC_COLUMNS} FROM users WHERE id = ?", (user_id,))
    user = row_to_dict(cur.fetchone())
    if not user:
        raise NotFound("User not found")
    return user


def _ensure_unique(
    conn: sqlite3.Connection,
    username: Optional[str] = None,
    email: Optional[str] = None,
    exclude_id: Optional[str] = None,
) -> None:
    """Raise Conflict naming the first duplicate field."""
    cur = conn.cursor()
    for field, value in (("username", username), ("email", email)):
        if value is None:
            continue
        cur.execute(
            f"SELECT id FROM users WHERE {field} = ? AND id != ?",
            (value, exclude_id or ""),
        )
        if cur.fetchone():
            print(f"[USERS] Duplicate {field} rejected")
            raise Conflict(field, f"{field} already registered")


def _conflict_from_integrity_error(exc: sqlite3.IntegrityError) -> Conflict:
    message = str(exc).lower()
    field = "email" if "users.email" in message else "username"
    return Conflict(field, f"{field} already registered")


def count_admins(conn: sqlite3.Connection, active_only: bool = False) -> int:
    cur = conn.cursor()
    query = "SELECT COUNT(*) FROM users WHERE role = ?"
    if active_only:
        query += " AND active = 1"
    cur.execute(query, (UserRole.admin.value,))
    return int(cur.fetchone()[0])


# ---------------------------------------------------------
# Queries
# ---------------------------------------------------------
def list_users(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    cur = conn.cursor()
    cur.execute(f"SELECT {PUBLIC_COLUMNS} FROM users ORDER BY created_at DESC, rowid DESC")
    return [serialize_user(row_to_dict(r)) for r in cur.fetchall()]


def list_brokers(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    cur = conn.cursor()
    cur.execute(
        f"SELECT {PUBLIC_COLUMNS} FROM users WHERE role = ? ORDER BY created_at DESC, rowid DESC",
        (UserRole.broker.value,),
    )
    return [serialize_user(row_to_dict(r)) for r in cur.fetchall()]


def get_user(conn: sqlite3.Connection, user_id: str) -> Dict[str, Any]:
    return serialize_user(_fetch_user(conn, user_id))


# ---------------------------------------------------------
# Mutations
# ---------------------------------------------------------
def create_user(conn: sqlite3.Connection, payload: UserCreateRequest) -> Dict[str, Any]:
    _ensure_unique(conn, username=payload.username, email=payload.email)

    now = now_iso()
    user_id = new_id()
    try:
        conn.execute(
            """
            INSERT INTO users (id, username, email, password_hash, name, role, active, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?)
            """,
            (
                user_id,
                payload.username,
                str(payload.email),
                hash_password(payload.password),
                payload.name,
                payload.role.value,
                now,
                now,
            ),
        )
        conn.commit()
    except sqlite3.IntegrityError as e:
        conn.rollback()
        raise _conflict_from_integrity_error(e)
    except sqlite3.Error as e:
        conn.rollback()
        print(f"[USERS] DB error on create: {e}")
        raise InternalError("Error creating user")

    print(f"[USERS] Created user_id={user_id}, role={payload.role.value}")
    return get_user(conn, user_id)


def update_user(conn: sqlite3.Connection, user_id: str, payload: UserUpdateRequest) -> Dict[str, Any]:
    existing = _fetch_user(conn, user_id)
    changes = payload.model_dump(exclude_none=True)

    _ensure_unique(
        conn,
        username=changes.get("username"),
        email=str(changes["email"]) if "email" in changes else None,
        exclude_id=user_id,
    )

    new_role = changes.get("role", existing["role"])
    new_active = changes.get("active", existing["active"])
    new_role = getattr(new_role, "value", new_role)
    loses_admin = existing["role"] == UserRole.admin.value and existing["active"] and (
        new_role != UserRole.admin.value or not new_active
    )
    if loses_admin and count_admins(conn, active_only=True) <= 1:
        raise Forbidden("Cannot demote or deactivate the last active administrator")

    updates: Dict[str, Any] = {}
    for field in ("username", "name"):
        if field in changes:
            updates[field] = changes[field]
    if "email" in changes:
        updates["email"] = str(changes["email"])
    if "password" in changes:
        updates["password_hash"] = hash_password(changes["password"])
    if "active" in changes:
        updates["active"] = 1 if changes["active"] else 0
    if "role" in changes:
        updates["role"] = new_role

    if not updates:
        return serialize_user(existing)

    updates["updated_at"] = now_iso()
    assignments = ", ".join(f"{column} = ?" for column in updates)
    try:
        conn.execute(
            f"UPDATE users SET {assignments} WHERE id = ?",
            (*updates.values(), user_id),
        )
        conn.commit()
    except sqlite3.IntegrityError as e:
        conn.rollback()
        raise _conflict_from_integrity_error(e)
    except sqlite3.Error as e:
        conn.rollback()
        print(f"[USERS] DB error on update: {e}")
        raise InternalError("Error updating user")

    changed = sorted(k if k != "password_hash" else "password" for k in updates if k != "updated_at")
    print(f"[USERS] Updated user_id={user_id}, fields={changed}")
    return get_user(conn, user_id)


def delete_user(conn: sqlite3.Connection, user_id: str) -> None:
    """
    Delete a user. Properties they own are kept (no cascade).

    Raises:
        NotFound: unknown id
        Forbidden: the target is the only admin, or the only active admin
    """
    user = _fetch_user(conn, user_id)

    is_admin = user["role"] == UserRole.admin.value
    last_admin = is_admin and count_admins(conn) <= 1
    last_active_admin = is_admin and user["active"] and count_admins(conn, active_only=True) <= 1
    if last_admin or last_active_admin:
        print(f"[USERS] Refused to delete the last admin: user_id={user_id}")
        raise Forbidden("Cannot delete the last administrator")

    try:
        conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        print(f"[USERS] DB error on delete: {e}")
        raise InternalError("Error deleting user")

    print(f"[USERS] Deleted user_id={user_id}")


# ---------------------------------------------------------
# Login
# ---------------------------------------------------------
def authenticate(conn: sqlite3.Connection, username: str, password: str) -> Dict[str, Any]:
    """
    Check credentials and return the public user.

    Raises:
        InvalidCredentials: unknown username, inactive account or wrong password
    """
    cur = conn.cursor()
    cur.execute("SELECT * FROM users WHERE username = ?", (username.strip().lower(),))
    row = row_to_dict(cur.fetchone())

    if not row:
        print("[LOGIN] User not found by username")
        raise InvalidCredentials()

    if not row["active"]:
        print(f"[LOGIN] Inactive user: id={row['id']}")
        raise InvalidCredentials("User is inactive")

    if not verify_password(password, row["password_hash"]):
        print(f"[LOGIN] Wrong password: id={row['id']}")
        raise InvalidCredentials()

    print(f"[LOGIN] Success: id={row['id']}, role={row['role']}")
    return serialize_user(row)


# ---------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------
def ensure_admin(conn: sqlite3.Connection, settings: Settings) -> bool:
    """
    Create the default admin if neither its username nor its email exists.

    Returns True if an admin was created.
    """
    username = settings.admin_username.strip().lower()
    email = settings.admin_email.strip().lower()

    cur = conn.cursor()
    cur.execute("SELECT id FROM users WHERE username = ? OR email = ?", (username, email))
    if cur.fetchone():
        print("[BOOTSTRAP] Admin already exists")
        return False

    now = now_iso()
    conn.execute(
        """
        INSERT INTO users (id, username, email, password_hash, name, role, active, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?)
        """,
        (
            new_id(),
            username,
            email,
            hash_password(settings.admin_password),
            settings.admin_name,
            UserRole.admin.value,
            now,
            now,
        ),
    )
    conn.commit()
    print(f"[BOOTSTRAP] Admin user created: username={username}")
    return True
