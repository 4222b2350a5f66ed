"""
Shared pytest fixtures.

Each test gets a fresh app bound to a temporary SQLite file, with the
default admin bootstrapped and image uploads captured in memory.
"""

from typing import List, Sequence

import pytest
from fastapi import UploadFile
from fastapi.testclient import TestClient

from vision_backend.config import Settings
from vision_backend.main import create_app
from vision_backend.uploads import get_upload_adapter, validate_image_files

TEST_SECRET = "test-secret-key"


class MemoryUploadAdapter:
    """Keeps uploaded bytes in memory and hands out fake CDN URLs."""

    def __init__(self):
        self.stored: List[tuple] = []

    async def save(self, files: Sequence[UploadFile]) -> List[str]:
        validate_image_files(files)
        refs = []
        for upload in files:
            content = await upload.read()
            ref = f"https://cdn.test/vision/{len(self.stored)}-{upload.filename}"
            self.stored.append((ref, content))
            refs.append(ref)
        return refs

    async def discard(self, refs: Sequence[str]) -> None:
        self.stored = [(ref, content) for ref, content in self.stored if ref not in refs]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        env="dev",
        secret_key=TEST_SECRET,
        database_path=str(tmp_path / "test.db"),
        upload_dir=str(tmp_path / "uploads"),
    )


@pytest.fixture
def uploader():
    return MemoryUploadAdapter()


@pytest.fixture
def app(settings, uploader):
    app = create_app(settings)
    app.dependency_overrides[get_upload_adapter] = lambda: uploader
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def login(client: TestClient, username: str, password: str) -> str:
    resp = client.post("/api/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, f"Login failed: {resp.text}"
    return resp.json()["token"]


@pytest.fixture
def admin_token(client):
    return login(client, "admin", "admin123")


@pytest.fixture
def make_user(client, admin_token):
    """Create a user through the API and return (user, token)."""

    def _make_user(username: str, role: str = "broker", password: str = "secret123"):
        resp = client.post(
            "/api/users",
            json={
                "username": username,
                "email": f"{username}@visionimoveis.com.br",
                "password": password,
                "name": username.title(),
                "role": role,
            },
            headers=auth(admin_token),
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["data"], login(client, username, password)

    return _make_user


LISTING_DEFAULTS = {
    "title": "Casa X",
    "description": "Three bedroom house with garden",
    "type": "house",
    "price": "250000",
    "location": "Centro, Curitiba",
    "area": "180",
    "bedrooms": "3",
    "bathrooms": "2",
    "garages": "1",
}


@pytest.fixture
def create_listing(client):
    """POST a listing with one image; returns the created property."""

    def _create_listing(token: str, images: int = 1, **fields):
        data = {**LISTING_DEFAULTS, **{k: str(v) for k, v in fields.items()}}
        files = [("images", (f"photo{i}.jpg", b"\xff\xd8\xff", "image/jpeg")) for i in range(images)]
        resp = client.post("/api/properties", data=data, files=files, headers=auth(token))
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _create_listing
