"""
API configuration settings.
"""

from typing import List

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SeedUser(BaseModel):
    """Account created at startup when the user store is empty."""
    username: str
    password: str
    email: str = ""
    role: str = "user"


DEFAULT_SEED_USERS = [
    SeedUser(username="admin", password="admin123", email="admin@example.com", role="admin"),
    SeedUser(username="user", password="user123", email="user@example.com", role="user"),
]


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Book Management API"
    api_version: str = "1.0.0"
    api_description: str = """
A REST API for managing books with bearer-token authentication.

## Authentication

Log in with `POST /api/login` to receive a token, then include it in the Authorization header:

```
Authorization: Bearer your_token_here
```

Tokens expire after 24 hours by default and are revoked by `POST /api/logout`.
"""

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False

    # Token Settings
    token_expire_hours: int = 24
    token_cleanup_minutes: int = 60

    # Paths reachable without a bearer token (prefix match)
    auth_exempt_prefixes: List[str] = ["/api/login", "/health", "/docs", "/redoc", "/openapi.json"]

    # Accounts seeded into an empty user store, as JSON in SEED_USERS
    seed_users: List[SeedUser] = Field(default_factory=lambda: list(DEFAULT_SEED_USERS))

    # CORS Settings
    cors_origins: list = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    cors_allow_headers: list = ["Content-Type", "Authorization"]

    # Logging
    log_level: str = "INFO"

    @field_validator("token_expire_hours")
    @classmethod
    def validate_token_expire_hours(cls, v):
        """Keep session lifetime between an hour and 30 days."""
        if v < 1 or v > 720:
            raise ValueError('token_expire_hours must be between 1 and 720')
        return v

    @field_validator("token_cleanup_minutes")
    @classmethod
    def validate_token_cleanup_minutes(cls, v):
        if v < 1:
            raise ValueError('token_cleanup_minutes must be at least 1')
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # Ignore extra fields from .env
    )


# Global config instance
config = APIConfig()
