"""
Authentication for the FastAPI API: password hashing, session tokens,
user seeding and the bearer-token middleware that guards protected routes.
"""

import secrets
from datetime import timedelta
from typing import Iterable, Optional, Sequence

import structlog
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from fastapi import Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response

from api.config import SeedUser
from storage import StoreError, TokenStore, UserStore
from storage.exceptions import AuthError, NotFoundError, TokenExpiredError, ValidationError
from storage.models import Token, User
from utilities.logger import mask_token

logger = structlog.get_logger(__name__)

# Argon2id with the library's recommended defaults
password_hasher = PasswordHasher()

TOKEN_BYTES = 24  # 32 URL-safe characters


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return password_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash in constant time."""
    try:
        return password_hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def generate_token() -> str:
    """Generate a new opaque bearer token."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def extract_bearer_token(header: str) -> Optional[str]:
    """
    Pull the token out of an Authorization header value.

    Returns:
        The token (possibly empty), or None if the header is not a Bearer header
    """
    if not header.startswith("Bearer "):
        return None
    return header[len("Bearer "):].strip()


class AuthService:
    """Issues, checks and revokes session tokens."""

    def __init__(self, users: UserStore, tokens: TokenStore, token_ttl: timedelta):
        self.users = users
        self.tokens = tokens
        self.token_ttl = token_ttl

    async def login(self, username: str, password: str) -> Token:
        """
        Check credentials and issue a new token.

        Raises:
            AuthError: If the user is unknown, inactive or the password is wrong
        """
        try:
            user = await self.users.get_user_by_username(username)
        except NotFoundError:
            logger.warning("Login attempt for unknown user", username=username)
            raise AuthError("Invalid username or password")

        if not await run_in_threadpool(verify_password, password, user.password_hash):
            logger.warning("Login attempt with wrong password", username=username)
            raise AuthError("Invalid username or password")

        token = Token.issue(generate_token(), user.id, self.token_ttl)
        await self.tokens.create_token(token)

        try:
            await self.users.record_last_login(user.id)
        except Exception as e:
            logger.warning("Failed to record last login", user_id=user.id, error=str(e))

        logger.info("User logged in", username=username, expires_at=token.expires_at.isoformat())
        return token

    async def authenticate(self, value: str) -> Token:
        """
        Return the token record for a bearer token.

        Raises:
            AuthError: If the token is unknown, revoked or expired
        """
        try:
            return await self.tokens.get_token(value)
        except TokenExpiredError:
            logger.info("Expired token presented", token=mask_token(value))
            raise AuthError("Token expired")
        except NotFoundError:
            logger.warning("Invalid token presented", token=mask_token(value))
            raise AuthError("Invalid token")

    async def logout(self, value: str) -> None:
        """
        Revoke a token.

        Raises:
            ValidationError: If there is no unrevoked token with this value
        """
        try:
            await self.tokens.revoke_token(value)
        except NotFoundError:
            raise ValidationError("Token not found or already revoked")
        logger.info("Token revoked", token=mask_token(value))

    async def cleanup_expired_tokens(self) -> int:
        removed = await self.tokens.cleanup_expired()
        logger.info("Expired tokens removed", count=removed)
        return removed


async def initialize_default_users(users: UserStore, seed_users: Iterable[SeedUser]) -> int:
    """
    Seed the configured accounts if the user store is empty.

    Returns:
        Number of users created
    """
    try:
        if await users.count_users() > 0:
            logger.info("Users already exist, skipping seeding")
            return 0

        created = 0
        for seed in seed_users:
            user = User(
                username=seed.username,
                password_hash=await run_in_threadpool(hash_password, seed.password),
                email=seed.email or None,
                role=seed.role,
            )
            if await users.create_user(user):
                created += 1
        logger.info("Default users seeded", count=created)
        return created

    except Exception as e:
        logger.error("Failed to seed default users", error=str(e))
        raise


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"success": False, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """
    Require ``Authorization: Bearer <token>`` on every request except
    CORS preflights and the exempt path prefixes.

    The validated Token is stored on ``request.state.token``.
    """

    def __init__(self, app, exempt_prefixes: Sequence[str]):
        super().__init__(app)
        self.exempt_prefixes = tuple(exempt_prefixes)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path

        if request.method == "OPTIONS" or path.startswith(self.exempt_prefixes):
            return await call_next(request)

        token_value = extract_bearer_token(request.headers.get("Authorization", ""))
        if token_value is None:
            logger.warning("Request without bearer token", method=request.method, path=path)
            return _unauthorized("Missing or invalid Authorization header")
        if not token_value:
            return _unauthorized("Invalid token")

        auth_service: AuthService = request.app.state.auth_service
        try:
            request.state.token = await auth_service.authenticate(token_value)
        except AuthError as e:
            return _unauthorized(e.message)
        except StoreError as e:
            logger.error("Token lookup failed", path=path, error=str(e))
            return JSONResponse(
                status_code=e.status_code,
                content={"success": False, "message": e.message},
            )

        return await call_next(request)
