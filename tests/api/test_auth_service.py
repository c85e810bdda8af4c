"""
Unit tests for password hashing, token handling and user seeding.
Stores are mocked so each rule is exercised in isolation.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from api.auth import (
    AuthService, extract_bearer_token, generate_token, hash_password,
    initialize_default_users, verify_password
)
from api.config import SeedUser
from storage.exceptions import (
    AuthError, NotFoundError, StorageError, TokenExpiredError, ValidationError
)
from storage.models import User
from utilities.logger import mask_token


@pytest.fixture
def mock_users():
    return AsyncMock()


@pytest.fixture
def mock_tokens():
    return AsyncMock()


@pytest.fixture
def auth_service(mock_users, mock_tokens):
    return AuthService(mock_users, mock_tokens, timedelta(hours=24))


@pytest.fixture
def stored_user():
    return User(id="user-1", username="admin", password_hash=hash_password("admin123"), role="admin")


class TestPasswordHashing:
    """Test cases for Argon2 password hashing."""

    def test_hash_is_not_plaintext(self):
        hashed = hash_password("admin123")

        assert hashed != "admin123"
        assert hashed.startswith("$argon2id$")

    def test_verify_password(self):
        hashed = hash_password("admin123")

        assert verify_password("admin123", hashed) is True
        assert verify_password("wrong", hashed) is False

    def test_verify_against_malformed_hash(self):
        assert verify_password("admin123", "not-a-real-hash") is False


class TestTokenHelpers:
    """Test cases for token generation and header parsing."""

    def test_generate_token(self):
        token = generate_token()

        assert len(token) == 32
        assert token != generate_token()

    @pytest.mark.parametrize("header,expected", [
        ("Bearer abc", "abc"),
        ("Bearer   abc  ", "abc"),
        ("Bearer ", ""),
        ("Token abc", None),
        ("bearer abc", None),
        ("", None),
    ])
    def test_extract_bearer_token(self, header, expected):
        assert extract_bearer_token(header) == expected


class TestAuthService:
    """Test cases for AuthService."""

    @pytest.mark.asyncio
    async def test_login_issues_token(self, auth_service, mock_users, mock_tokens, stored_user):
        mock_users.get_user_by_username.return_value = stored_user

        token = await auth_service.login("admin", "admin123")

        assert token.user_id == "user-1"
        assert token.expires_at - token.created_at == timedelta(hours=24)
        mock_tokens.create_token.assert_awaited_once_with(token)
        mock_users.record_last_login.assert_awaited_once_with("user-1")

    @pytest.mark.asyncio
    async def test_login_unknown_user(self, auth_service, mock_users, mock_tokens):
        mock_users.get_user_by_username.side_effect = NotFoundError("User not found")

        with pytest.raises(AuthError) as exc_info:
            await auth_service.login("ghost", "admin123")

        assert exc_info.value.message == "Invalid username or password"
        mock_tokens.create_token.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, auth_service, mock_users, mock_tokens, stored_user):
        mock_users.get_user_by_username.return_value = stored_user

        with pytest.raises(AuthError) as exc_info:
            await auth_service.login("admin", "wrong")

        assert exc_info.value.message == "Invalid username or password"
        mock_tokens.create_token.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_login_survives_last_login_failure(self, auth_service, mock_users, stored_user):
        mock_users.get_user_by_username.return_value = stored_user
        mock_users.record_last_login.side_effect = StorageError("Failed to update last login")

        token = await auth_service.login("admin", "admin123")
        assert token.token

    @pytest.mark.asyncio
    async def test_login_storage_failure_propagates(self, auth_service, mock_users, mock_tokens, stored_user):
        mock_users.get_user_by_username.return_value = stored_user
        mock_tokens.create_token.side_effect = StorageError("Failed to create session")

        with pytest.raises(StorageError):
            await auth_service.login("admin", "admin123")

    @pytest.mark.asyncio
    async def test_authenticate_expired(self, auth_service, mock_tokens):
        mock_tokens.get_token.side_effect = TokenExpiredError("Token expired")

        with pytest.raises(AuthError) as exc_info:
            await auth_service.authenticate("abc")
        assert exc_info.value.message == "Token expired"

    @pytest.mark.asyncio
    async def test_authenticate_unknown(self, auth_service, mock_tokens):
        mock_tokens.get_token.side_effect = NotFoundError("Token not found")

        with pytest.raises(AuthError) as exc_info:
            await auth_service.authenticate("abc")
        assert exc_info.value.message == "Invalid token"

    @pytest.mark.asyncio
    async def test_logout_unknown_token(self, auth_service, mock_tokens):
        mock_tokens.revoke_token.side_effect = NotFoundError("Token not found")

        with pytest.raises(ValidationError) as exc_info:
            await auth_service.logout("abc")
        assert exc_info.value.message == "Token not found or already revoked"

    @pytest.mark.asyncio
    async def test_cleanup_expired_tokens(self, auth_service, mock_tokens):
        mock_tokens.cleanup_expired.return_value = 5

        assert await auth_service.cleanup_expired_tokens() == 5


class TestInitializeDefaultUsers:
    """Test cases for seeding accounts."""

    @pytest.mark.asyncio
    async def test_seeds_empty_store(self, mock_users):
        mock_users.count_users.return_value = 0
        mock_users.create_user.return_value = True

        created = await initialize_default_users(mock_users, [
            SeedUser(username="admin", password="admin123", role="admin"),
            SeedUser(username="user", password="user123"),
        ])

        assert created == 2
        first = mock_users.create_user.await_args_list[0].args[0]
        assert first.username == "admin"
        assert first.role == "admin"
        assert first.email is None
        assert verify_password("admin123", first.password_hash)

    @pytest.mark.asyncio
    async def test_skips_populated_store(self, mock_users):
        mock_users.count_users.return_value = 3

        created = await initialize_default_users(mock_users, [SeedUser(username="admin", password="x")])

        assert created == 0
        mock_users.create_user.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_counts_only_new_users(self, mock_users):
        mock_users.count_users.return_value = 0
        mock_users.create_user.side_effect = [True, False]

        created = await initialize_default_users(mock_users, [
            SeedUser(username="admin", password="a"),
            SeedUser(username="admin", password="b"),
        ])
        assert created == 1


class TestTokenMasking:
    """Test cases for token masking in log events."""

    def test_mask_token(self):
        assert mask_token("abcdefghijkl") == "abcdef..."

    def test_mask_empty_token(self):
        assert mask_token("") == ""
        assert mask_token(None) == ""
