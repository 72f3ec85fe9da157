"""
Shared fixtures: an SQLite database, a TestClient and signed-in accounts.
"""
import io
import os
import sys
import tempfile

# Configure the app before anything imports core.config
_WORKDIR = tempfile.mkdtemp(prefix="iykelib-tests-")
_DB_PATH = os.path.join(_WORKDIR, "test.db")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_DB_PATH}")
os.environ.setdefault("ASYNC_DATABASE_URL", f"sqlite+aiosqlite:///{_DB_PATH}")
os.environ["UPLOAD_DIRECTORY"] = os.path.join(_WORKDIR, "uploads")
os.environ["LOG_DIRECTORY"] = os.path.join(_WORKDIR, "logs")
os.environ["ENABLE_FILE_LOGGING"] = "false"
os.environ["ENABLE_RATE_LIMITING"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret"

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import fitz
import pytest
from PIL import Image
from fastapi.testclient import TestClient
from sqlalchemy import text

from app import app
from db_config import engine, SessionLocal
from models.models import Base, Category, UserRoleEnum
from services.seed_service import ensure_admin

Base.metadata.create_all(bind=engine)

ADMIN_PASSWORD = "adminpass123"
USER_PASSWORD = "readerpass123"


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(text(f"DELETE FROM {table.name}"))


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def signin(client, login, password):
    response = client.post("/api/auth/signin", json={"email": login, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def signup(client, username, password=USER_PASSWORD, email=None):
    response = client.post("/api/auth/signup", json={
        "username": username,
        "email": email or f"{username}@example.com",
        "password": password,
    })
    assert response.status_code == 201, response.text
    return response.json()["user"]


def pdf_bytes(text_line="Chapter 1: Introduction"):
    """A one-page PDF document."""
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), text_line)
    content = doc.tobytes()
    doc.close()
    return content


def png_bytes(size=(1200, 900), color="navy"):
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def admin_user(db):
    user = ensure_admin(db, "librarian", "librarian@example.com", ADMIN_PASSWORD)
    assert user.role == UserRoleEnum.admin
    return user


@pytest.fixture
def admin_headers(client, admin_user):
    return signin(client, "librarian@example.com", ADMIN_PASSWORD)


@pytest.fixture
def reader(client):
    return signup(client, "reader")


@pytest.fixture
def user_headers(client, reader):
    return signin(client, "reader@example.com", USER_PASSWORD)


@pytest.fixture
def category(db):
    category = Category(name="Programming", slug="programming", description="General programming")
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


@pytest.fixture
def make_book(client, admin_headers, category):
    def _make(title="Clean Code", author="Robert Martin", **extra):
        payload = {
            "title": title,
            "author": author,
            "category_id": category.id,
            "book_type": "link",
            "external_link": "https://example.com/books/clean-code",
        }
        payload.update(extra)
        response = client.post("/api/admin/books", json=payload, headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _make


@pytest.fixture
def book(make_book):
    return make_book()


@pytest.fixture
def tutorial(client, admin_headers, category):
    response = client.post("/api/admin/tutorials", json={
        "title": "Python in 10 minutes",
        "category_id": category.id,
        "creator": "Some Channel",
        "difficulty": "Beginner",
        "content_url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "duration_seconds": 600,
    }, headers=admin_headers)
    assert response.status_code == 201, response.text
    return response.json()
