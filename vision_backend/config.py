# vision_backend/config.py
# Environment-aware configuration for the Vision Imóveis API

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Literal, Optional

DEFAULT_SECRET_KEY = "vision-dev-secret-change-me"

# Local frontends (Live Server defaults)
DEFAULT_CORS_ORIGINS = [
    "http://127.0.0.1:5500",
    "http://localhost:5500",
]


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration, read once at startup.

    Instances are immutable. Each app keeps the instance passed to
    create_app() on app.state; the default is the process-wide instance
    installed once by init_settings().
    """
    env: Literal["dev", "staging", "prod"] = "dev"
    secret_key: str = DEFAULT_SECRET_KEY
    algorithm: str = "HS256"
    token_expire_days: int = 30
    database_path: str = "vision.db"
    upload_dir: str = "uploads"
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    admin_username: str = "admin"
    admin_password: str = "admin123"
    admin_email: str = "admin@visionimoveis.com.br"
    admin_name: str = "Administrador"
    port: int = 5000

    @property
    def is_dev(self) -> bool:
        return self.env == "dev"

    @property
    def is_prod(self) -> bool:
        return self.env == "prod"


def load_settings() -> Settings:
    """Build Settings from environment variables."""
    env = os.environ.get("ENV", "dev")
    if env not in ("dev", "staging", "prod"):
        raise ValueError(f"Invalid ENV: {env!r} (expected dev, staging or prod)")

    secret_key = os.environ.get("JWT_SECRET") or os.environ.get("SECRET_KEY") or ""
    if not secret_key:
        if env == "prod":
            raise RuntimeError("JWT_SECRET must be set in prod")
        secret_key = DEFAULT_SECRET_KEY

    cors_origins = list(DEFAULT_CORS_ORIGINS)
    extra_origins = os.environ.get("CORS_ORIGINS", "")
    if extra_origins:
        cors_origins.extend(o.strip() for o in extra_origins.split(",") if o.strip())

    return Settings(
        env=env,  # type: ignore[arg-type]
        secret_key=secret_key,
        token_expire_days=int(os.environ.get("TOKEN_EXPIRE_DAYS", "30")),
        database_path=os.environ.get("DATABASE_PATH", "vision.db"),
        upload_dir=os.environ.get("UPLOAD_DIR", "uploads"),
        cors_origins=cors_origins,
        admin_username=os.environ.get("ADMIN_USERNAME", "admin"),
        admin_password=os.environ.get("ADMIN_PASSWORD", "admin123"),
        admin_email=os.environ.get("ADMIN_EMAIL", "admin@visionimoveis.com.br"),
        admin_name=os.environ.get("ADMIN_NAME", "Administrador"),
        port=int(os.environ.get("PORT", "5000")),
    )


_settings: Optional[Settings] = None


def log_settings(settings: Settings) -> None:
    print(f"[CONFIG] Environment: {settings.env}")
    print(f"[CONFIG] Database: SQLite ({settings.database_path})")
    print(f"[CONFIG] Token lifetime: {settings.token_expire_days} days")
    print(f"[CONFIG] Upload dir: {settings.upload_dir}")
    if settings.secret_key == DEFAULT_SECRET_KEY:
        print("[CONFIG] WARNING: using the default JWT secret (dev only)")


def init_settings(settings: Optional[Settings] = None) -> Settings:
    """
    Install the process-wide settings. Called once at startup.

    Raises:
        RuntimeError: settings were already installed
    """
    global _settings
    if _settings is not None:
        raise RuntimeError("Settings are already initialised")
    _settings = settings if settings is not None else load_settings()
    return _settings


def get_settings() -> Settings:
    """Return the installed settings, loading them from the environment on first use."""
    if _settings is None:
        return init_settings()
    return _settings
