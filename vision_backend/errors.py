"""
vision_backend/errors.py

Error taxonomy for the API.

Every error is an HTTPException subclass so it can be raised from routes,
dependencies and services alike. The handlers in main.py render them into
the {success: false, message} envelope.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import HTTPException


class ApiError(HTTPException):
    """Base class for errors rendered into the JSON envelope."""

    status_code_default = 500
    message_default = "Internal server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(
            status_code=self.status_code_default,
            detail=message or self.message_default,
            headers=headers,
        )

    @property
    def message(self) -> str:
        return str(self.detail)

    def to_envelope(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message}


class ValidationError(ApiError):
    """Malformed or missing input (400)."""

    status_code_default = 400
    message_default = "Invalid request"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_envelope(self) -> Dict[str, Any]:
        body = super().to_envelope()
        if self.errors:
            body["errors"] = self.errors
        return body


class Unauthenticated(ApiError):
    """Missing, invalid or expired token, or inactive account (401)."""

    status_code_default = 401
    message_default = "Not authorized"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class InvalidToken(Unauthenticated):
    message_default = "Not authorized - invalid token"


class InvalidCredentials(Unauthenticated):
    message_default = "Invalid username or password"


class Forbidden(ApiError):
    """Role or ownership denial (403)."""

    status_code_default = 403
    message_default = "Access denied"


class NotFound(ApiError):
    status_code_default = 404
    message_default = "Not found"


class Conflict(ApiError):
    """
    Uniqueness violation.

    Rendered as 400 with the clashing field name.
    """

    status_code_default = 400
    message_default = "Duplicate value"

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(message or f"{field} already registered")
        self.field = field

    def to_envelope(self) -> Dict[str, Any]:
        body = super().to_envelope()
        body["field"] = self.field
        return body


class InternalError(ApiError):
    status_code_default = 500
    message_default = "Internal server error"


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """
    Flatten pydantic/FastAPI error dicts into [{field, message}].

    The request location prefix ("body", "query", "path", "form") is dropped.
    """
    formatted = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form", "header")]
        formatted.append({
            "field": ".".join(loc),
            "message": str(err.get("msg", "Invalid value")),
        })
    return formatted
