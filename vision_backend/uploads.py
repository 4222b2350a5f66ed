"""
vision_backend/uploads.py

Image upload adapter.

Routes depend on get_upload_adapter() and only see the contract:
    await adapter.save(files) -> one stable reference (URL) per file, in order.
    await adapter.discard(refs) -> remove stored files no record will reference.

LocalUploadAdapter stores files on disk and serves them from /uploads;
deployments using an object store plug in their own adapter via
app.dependency_overrides[get_upload_adapter].
"""

from __future__ import annotations

import os
import secrets
from pathlib import Path as FsPath
from typing import List, Protocol, Sequence

from fastapi import Depends, UploadFile

from vision_backend.auth_context import get_app_settings
from vision_backend.config import Settings
from vision_backend.errors import ValidationError

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}
MAX_FILES = 10
UPLOAD_URL_PREFIX = "/uploads"


class UploadAdapter(Protocol):
    async def save(self, files: Sequence[UploadFile]) -> List[str]:
        ...

    async def discard(self, refs: Sequence[str]) -> None:
        ...


def validate_image_files(files: Sequence[UploadFile]) -> None:
    """Reject too many files or unsupported formats before anything is stored."""
    if len(files) > MAX_FILES:
        raise ValidationError(f"Upload error: at most {MAX_FILES} images are allowed")
    for upload in files:
        ext = os.path.splitext(upload.filename or "")[1].lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                f"Upload error: unsupported image format '{upload.filename}'",
                errors=[{"field": "images", "message": "allowed formats: jpg, jpeg, png, webp"}],
            )


class LocalUploadAdapter:
    """Writes images under upload_dir with random names."""

    def __init__(self, upload_dir: str):
        self.upload_dir = FsPath(upload_dir)

    async def save(self, files: Sequence[UploadFile]) -> List[str]:
        validate_image_files(files)
        self.upload_dir.mkdir(parents=True, exist_ok=True)

        refs: List[str] = []
        for upload in files:
            ext = os.path.splitext(upload.filename or "")[1].lower()
            filename = f"{secrets.token_hex(12)}{ext}"
            content = await upload.read()
            (self.upload_dir / filename).write_bytes(content)
            refs.append(f"{UPLOAD_URL_PREFIX}/{filename}")

        print(f"[UPLOADS] Stored {len(refs)} image(s) in {self.upload_dir}")
        return refs

    async def discard(self, refs: Sequence[str]) -> None:
        for ref in refs:
            if not ref.startswith(UPLOAD_URL_PREFIX + "/"):
                continue
            (self.upload_dir / FsPath(ref).name).unlink(missing_ok=True)
        print(f"[UPLOADS] Discarded {len(refs)} unreferenced image(s): {list(refs)}")


def get_upload_adapter(settings: Settings = Depends(get_app_settings)) -> UploadAdapter:
    return LocalUploadAdapter(settings.upload_dir)
