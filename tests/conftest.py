"""
Shared fixtures: every test gets a fresh in-memory MongoDB (mongomock) and,
for HTTP tests, a TestClient whose ``get_db`` dependency points at it.
"""

import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import create_access_token
from database import get_db, insert_document
from main import app


@pytest.fixture
def db():
    return mongomock.MongoClient()["movie_catalog_test"]


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(name="viewer", role="normal", **extra):
        doc = {
            "name": name,
            "email": f"{name}@example.com",
            "role": role,
            "preferences": {"favoriteGenres": [], "favoriteActors": []},
            "wishlist": [],
            "customLists": [],
            "notificationsEnabled": True,
            "notifications": [],
        }
        doc.update(extra)
        return insert_document(db, "users", doc)
    return _make


@pytest.fixture
def make_movie(db):
    def _make(title="Heat", **extra):
        doc = {"title": title, "genre": ["Drama"], "cast": [], "reviews": [], "averageRating": 0}
        doc.update(extra)
        return insert_document(db, "movies", doc)
    return _make


@pytest.fixture
def headers_for():
    def _headers(user):
        token = create_access_token({"sub": str(user["_id"]), "role": user.get("role", "normal")})
        return {"Authorization": f"Bearer {token}"}
    return _headers
