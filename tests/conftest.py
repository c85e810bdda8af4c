"""
Pytest configuration and shared fixtures.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from api.config import APIConfig, SeedUser
from api.main import create_app
from storage.memory import create_memory_stores
from storage.models import Book, Token, User, utcnow


@pytest.fixture
def api_config():
    """API settings with a single known account."""
    return APIConfig(
        seed_users=[
            SeedUser(username="admin", password="admin123", email="admin@example.com", role="admin"),
            SeedUser(username="user", password="user123", email="user@example.com", role="user"),
        ],
        token_expire_hours=24,
        token_cleanup_minutes=60,
    )


@pytest.fixture
def memory_stores():
    """Fresh in-memory stores."""
    return create_memory_stores()


@pytest.fixture
def client(api_config, memory_stores):
    """Test client running the full app lifespan on in-memory stores."""
    app = create_app(api_config=api_config, stores=memory_stores)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client):
    """Authorization header for a freshly logged-in admin."""
    response = client.post("/api/login", json={"username": "admin", "password": "admin123"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def sample_book_payload():
    """Valid create-book payload."""
    return {"judul": "Dune", "author": "Frank Herbert", "tahun_terbit": 1965}


@pytest.fixture
def sample_book():
    """An active book record."""
    now = utcnow()
    return Book(
        id="book-123",
        judul="Dune",
        author="Frank Herbert",
        tahun_terbit=1965,
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def sample_user():
    """An active user with a placeholder hash."""
    return User(id="user-1", username="admin", password_hash="not-a-real-hash", role="admin")


@pytest.fixture
def sample_token():
    """A valid token expiring in a day."""
    return Token.issue("a" * 32, "user-1", timedelta(hours=24))


@pytest.fixture
def mock_collection():
    """
    Mock motor collection. Coroutine methods are AsyncMocks; ``find`` is a
    plain call returning a cursor whose ``sort`` chains and ``to_list`` awaits.
    """
    collection = AsyncMock()
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.to_list = AsyncMock(return_value=[])
    collection.find = MagicMock(return_value=cursor)
    return collection
