# vision_backend/passwords.py
# Salted PBKDF2 password hashing

from __future__ import annotations

import hashlib
import hmac
import secrets

ALGORITHM = "pbkdf2_sha256"
ITERATIONS = 120_000


def hash_password(password: str, salt: str | None = None, iterations: int = ITERATIONS) -> str:
    """
    Hash a password with a per-password random salt.

    Returns "pbkdf2_sha256$<iterations>$<salt>$<hex digest>".
    """
    if salt is None:
        salt = secrets.token_hex(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), bytes.fromhex(salt), iterations)
    return f"{ALGORITHM}${iterations}${salt}${dk.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt, _ = password_hash.split("$", 3)
        iterations_n = int(iterations)
    except (AttributeError, ValueError):
        return False
    if algorithm != ALGORITHM:
        return False
    candidate = hash_password(password, salt=salt, iterations=iterations_n)
    return hmac.compare_digest(candidate, password_hash)
