"""
pytest configuration and fixtures.
"""

import pytest
from fastapi.testclient import TestClient

from database import Database, get_db
from main import app


@pytest.fixture
def db() -> Database:
    """A freshly seeded store, private to one test."""
    return Database.seeded()


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def sample_user() -> dict:
    return {"name": "Ann", "email": "ann@x.com"}


@pytest.fixture
def sample_product() -> dict:
    return {"name": "Mug", "price": 12.5, "category": "Kitchen", "description": "Stoneware mug"}
