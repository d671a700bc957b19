import io
import os

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from cms.config import settings
from cms.database import Base, get_db
from cms.main import app
from cms.models.user import User
from cms.services.auth_service import get_password_hash

TEST_DB_URL = "sqlite:///./test_studio_cms.db"
TEST_PASSWORD = "password123"

engine = create_engine(TEST_DB_URL, connect_args={"check_same_thread": False})
TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def upload_root(tmp_path, monkeypatch):
    root = tmp_path / "uploads"
    root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(root))
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "local")
    return root


@pytest.fixture
def seed_users(db):
    password_hash = get_password_hash(TEST_PASSWORD)
    users = {
        "admin": User(name="Admin", email="admin@example.com", password_hash=password_hash, is_admin=True),
        "member": User(name="Member", email="member@example.com", password_hash=password_hash, is_admin=False),
    }
    for u in users.values():
        db.add(u)
    db.commit()
    for u in users.values():
        db.refresh(u)
    return users


def get_token(client, email: str, password: str = TEST_PASSWORD) -> str:
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


def auth_headers(client, email: str) -> dict:
    return {"Authorization": f"Bearer {get_token(client, email)}"}


def make_image_bytes(size=(64, 48), fmt="PNG", color=(200, 30, 30), noise=False) -> bytes:
    if noise:
        img = Image.frombytes("RGB", size, os.urandom(size[0] * size[1] * 3))
    else:
        img = Image.new("RGB", size, color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def png_file(name: str = "image.png", **kwargs):
    return (name, make_image_bytes(**kwargs), "image/png")


def write_upload(upload_root, reference: str, data: bytes = b"test"):
    """Create a stored file for a reference such as ``uploads/projects/a.jpg``."""
    path = upload_root / reference.replace("uploads/", "", 1)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path
