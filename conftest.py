import os

import pytest
from fastapi.testclient import TestClient

from bookshare.api import create_app
from bookshare.auth import hash_password
from bookshare.config import Settings
from bookshare.errors import ExternalServiceError
from bookshare.library import Library
from bookshare.users import UserStore


class FakeMediaHost:
    """Records uploads/deletes instead of calling the hosting service."""

    def __init__(self):
        self.uploads = []
        self.destroyed = []
        self.fail_upload = False
        self.fail_destroy = False

    def upload(self, file, media_type="image/jpeg"):
        if self.fail_upload:
            raise ExternalServiceError("Media host error: 503")
        self.uploads.append((file, media_type))
        return f"https://res.cloudinary.com/demo/image/upload/v1/img{len(self.uploads)}.jpg"

    def destroy(self, public_id):
        if self.fail_destroy:
            raise RuntimeError("destroy failed")
        self.destroyed.append(public_id)


@pytest.fixture
def test_settings():
    return Settings(jwt_secret_key="test-secret", default_page_size=100, max_page_size=100)


@pytest.fixture
def db_file(tmp_path, request):
    # Her test için benzersiz bir veritabanı dosyası oluştur
    path = str(tmp_path / "test.db")
    yield path
    if os.path.exists(path):
        os.remove(path)


@pytest.fixture
def media_host():
    return FakeMediaHost()


@pytest.fixture
def store(db_file, test_settings):
    return UserStore(db_file=db_file, config=test_settings)


@pytest.fixture
def lib(db_file, media_host, test_settings):
    return Library(media_host=media_host, db_file=db_file, config=test_settings)


@pytest.fixture
def make_user(store):
    def _make(username="alice", email=None, password="secret123", profile_image=None):
        return store.create(username=username, email=email or f"{username}@example.com",
                            password_hash=hash_password(password), profile_image=profile_image)
    return _make


@pytest.fixture
def client(db_file, media_host, test_settings):
    app = create_app(config=test_settings, db_file=db_file, media_host=media_host)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register(client):
    """Register a user through the API and return (token, user json)."""
    def _register(username="alice", email=None, password="secret123"):
        response = client.post("/api/auth/register", json={
            "username": username, "email": email or f"{username}@example.com", "password": password})
        assert response.status_code == 201, response.json()
        body = response.json()
        return body["token"], body["user"]
    return _register
