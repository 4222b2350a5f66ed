"""
vision_backend/dependencies.py

Reusable FastAPI dependencies for role-based authorization.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends

from vision_backend.auth_context import AuthContext, get_app_settings, require_auth_context
from vision_backend.config import Settings
from vision_backend.rbac import Capability, authorize

DENIAL_MESSAGES = {
    Capability.ADMIN_ONLY: "Access denied - administrators only",
    Capability.BROKER_OR_ADMIN: "Access denied",
}


def require_capability(capability: Capability) -> Callable:
    """
    FastAPI dependency factory for role-based authorization.

    Runs the full auth pipeline first (401 on any authentication failure),
    then checks the caller's role against the capability (403 on denial).

    Usage in routes:
        @router.get("/users", dependencies=[Depends(require_capability(Capability.ADMIN_ONLY))])
        def list_users(ctx: AuthContext = Depends(require_auth_context)):
            ...

    Returns:
        A dependency function returning the AuthContext on success
    """
    def _check_capability(
        ctx: AuthContext = Depends(require_auth_context),
        settings: Settings = Depends(get_app_settings),
    ) -> AuthContext:
        authorize(ctx, capability, message=DENIAL_MESSAGES.get(capability))

        if settings.is_dev:
            print(f"[AUTHZ] Capability granted: capability={capability.value}, role={ctx.role}")

        return ctx

    return _check_capability


admin_only = require_capability(Capability.ADMIN_ONLY)
broker_or_admin = require_capability(Capability.BROKER_OR_ADMIN)
