# vision_backend/db.py
# SQLite persistence layer: one table per collection, string ids, JSON image lists

from __future__ import annotations

import json
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path as FsPath
from typing import Any, Dict, Generator, Optional

from vision_backend.config import Settings, get_settings


def new_id() -> str:
    """Opaque document identifier."""
    return uuid.uuid4().hex


def resolve_database_path(settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    path = FsPath(settings.database_path)
    if not path.is_absolute():
        path = FsPath.cwd() / path
    return str(path)


def connect(settings: Optional[Settings] = None) -> sqlite3.Connection:
    """Open a SQLite connection with Row factory and foreign keys off (no cascades)."""
    conn = sqlite3.connect(resolve_database_path(settings), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_db_connection(settings: Optional[Settings] = None) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    The connection is always closed on exit; callers commit explicitly.
    """
    conn = connect(settings)
    try:
        yield conn
    finally:
        conn.close()


# ---------------------------------------------------------
# Row Conversion Helpers
# ---------------------------------------------------------
def row_to_dict(row: Optional[sqlite3.Row]) -> Dict[str, Any]:
    """
    Convert a sqlite3.Row to a plain dict, decoding JSON and boolean columns.

    Returns {} if row is None.
    """
    if row is None:
        return {}
    data = dict(row)
    if "images" in data:
        data["images"] = json.loads(data["images"] or "[]")
    for flag in ("active", "featured"):
        if flag in data and data[flag] is not None:
            data[flag] = bool(data[flag])
    return data


def encode_images(images: list) -> str:
    return json.dumps(list(images))


# ---------------------------------------------------------
# Schema
# ---------------------------------------------------------
SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        name TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'broker',
        active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_users_role ON users(role)",
    """
    CREATE TABLE IF NOT EXISTS properties (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        type TEXT NOT NULL,
        price REAL NOT NULL,
        location TEXT NOT NULL,
        area REAL NOT NULL,
        bedrooms INTEGER NOT NULL,
        bathrooms INTEGER NOT NULL,
        garages INTEGER NOT NULL,
        images TEXT NOT NULL DEFAULT '[]',
        featured INTEGER NOT NULL DEFAULT 0,
        active INTEGER NOT NULL DEFAULT 1,
        created_by TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_properties_type_price ON properties(type, price)",
    "CREATE INDEX IF NOT EXISTS idx_properties_featured_active ON properties(featured, active)",
    """
    CREATE TABLE IF NOT EXISTS appointments (
        id TEXT PRIMARY KEY,
        property_id TEXT NOT NULL,
        property_title TEXT NOT NULL,
        client_name TEXT NOT NULL,
        client_phone TEXT NOT NULL,
        client_email TEXT,
        client_message TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_appointments_property ON appointments(property_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_appointments_status ON appointments(status)",
)


def init_db(settings: Optional[Settings] = None) -> None:
    """
    Create tables and indexes if missing.

    Raises sqlite3.Error when the database cannot be opened; the caller
    treats that as fatal.
    """
    settings = settings or get_settings()
    db_path = resolve_database_path(settings)
    FsPath(db_path).parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection(settings) as conn:
        cur = conn.cursor()
        for statement in SCHEMA:
            cur.execute(statement)
        conn.commit()

    print(f"[DB] Using SQLite ({db_path})")
    print("[MIGRATION] Ensured users, properties and appointments tables")
