"""
vision_backend/main.py

FastAPI application for the Vision Imóveis listing API.

- Each app carries its own immutable Settings on app.state; the module-level
  app uses the process-wide settings installed once by get_settings()
- The database schema and default admin are ensured at startup; failing to
  open the database is fatal
- Every error leaves as the JSON envelope {success: false, message | errors}

Run:
    uvicorn vision_backend.main:app --port 5000
"""

from __future__ import annotations

import sqlite3
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from vision_backend.config import Settings, get_settings, log_settings
from vision_backend.db import get_db_connection, init_db
from vision_backend.errors import ApiError, InternalError, format_validation_errors
from vision_backend.uploads import UPLOAD_URL_PREFIX
from vision_backend import routes_appointments, routes_auth, routes_properties, routes_users
from vision_backend import users_service

API_VERSION = "1.0.0"


# ---------------------------------------------------------
# Startup
# ---------------------------------------------------------
def bootstrap(settings: Settings) -> None:
    """
    Ensure schema and default admin.

    Raises SystemExit(1) if the database cannot be initialised.
    """
    try:
        init_db(settings)
    except sqlite3.Error as e:
        print(f"[DB] FATAL: could not initialise database: {e}")
        raise SystemExit(1)

    try:
        with get_db_connection(settings) as conn:
            users_service.ensure_admin(conn, settings)
    except sqlite3.Error as e:
        # Admin bootstrap problems must not stop the server
        print(f"[BOOTSTRAP] Warning: admin check failed (ignored): {e}")


# ---------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_envelope(), headers=exc.headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = "Route not found"
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"success": False, "errors": format_validation_errors(exc.errors())},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    print(f"[ERROR] Unhandled exception on {request.method} {request.url.path}: {exc!r}")
    if request.app.state.settings.is_dev:
        traceback.print_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(status_code=500, content=InternalError().to_envelope())


# ---------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    if settings is None:
        settings = get_settings()
    log_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        bootstrap(settings)
        yield

    app = FastAPI(title="Vision Imóveis API", version=API_VERSION, lifespan=lifespan)
    app.state.settings = settings

    # CORS: explicit origins outside dev
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins if not settings.is_dev else ["*"],
        allow_credentials=not settings.is_dev,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(routes_auth.router)
    app.include_router(routes_users.router)
    app.include_router(routes_properties.router)
    app.include_router(routes_appointments.router)

    @app.get("/api")
    def api_info():
        return {
            "success": True,
            "message": "Vision Imóveis API is running",
            "version": API_VERSION,
        }

    @app.get("/api/health")
    def health():
        return {
            "success": True,
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # Locally stored images (LocalUploadAdapter)
    app.mount(
        UPLOAD_URL_PREFIX,
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
