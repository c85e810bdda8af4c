"""
Pydantic models for the book, user and token records.
Shared by every storage backend and by the API layer.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

from .exceptions import ValidationError

MIN_PUBLICATION_YEAR = 1000
MAX_PUBLICATION_YEAR = 2024


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate a new opaque record identifier."""
    return str(uuid.uuid4())


def validate_publication_year(year: int) -> int:
    """
    Check that a publication year falls within the accepted range.

    Raises:
        ValidationError: If the year is outside the range
    """
    if year < MIN_PUBLICATION_YEAR or year > MAX_PUBLICATION_YEAR:
        raise ValidationError(
            f"tahun_terbit must be between {MIN_PUBLICATION_YEAR}-{MAX_PUBLICATION_YEAR}"
        )
    return year


class Book(BaseModel):
    """
    Book record. A book with ``deleted_at`` set is soft-deleted and hidden
    from every read path.
    """
    id: str = Field(default_factory=new_id, description="Unique book identifier")
    judul: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")
    tahun_terbit: int = Field(..., description="Publication year")
    created_at: datetime = Field(default_factory=utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utcnow, description="Last update timestamp")
    deleted_at: Optional[datetime] = Field(None, description="Soft-delete timestamp")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "0f8fad5b-d9cb-469f-a165-70867728950e",
                "judul": "Dune",
                "author": "Frank Herbert",
                "tahun_terbit": 1965,
                "created_at": "2024-01-15T10:30:00Z",
                "updated_at": "2024-01-15T10:30:00Z"
            }
        }
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class BookCreate(BaseModel):
    """Payload for creating a book. All fields are required."""
    judul: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")
    # Strict: a JSON string such as "1999" is rejected, not coerced
    tahun_terbit: StrictInt = Field(..., description="Publication year (1000-2024)")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"judul": "Dune", "author": "Frank Herbert", "tahun_terbit": 1965}
        }
    )

    @field_validator("judul", "author")
    @classmethod
    def validate_required_text(cls, v):
        """Reject empty or whitespace-only values."""
        if not v.strip():
            raise ValueError('must not be empty')
        return v

    @field_validator("tahun_terbit")
    @classmethod
    def validate_year(cls, v):
        return validate_publication_year(v)


class BookUpdate(BaseModel):
    """
    Partial update payload. Blank strings and a zero year mean
    "leave unchanged"; range checking happens in the store.
    """
    judul: Optional[str] = Field(None, description="New title")
    author: Optional[str] = Field(None, description="New author")
    tahun_terbit: Optional[StrictInt] = Field(None, description="New publication year (1000-2024)")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"judul": "Dune Messiah", "tahun_terbit": 1969}
        }
    )


class User(BaseModel):
    """Login account. Only the Argon2 hash of the password is kept."""
    id: str = Field(default_factory=new_id, description="Unique user identifier")
    username: str = Field(..., min_length=1, description="Unique login name")
    password_hash: str = Field(..., description="Argon2id password hash")
    email: Optional[str] = Field(None, description="Contact email")
    role: str = Field(default="user", description="Role name")
    is_active: bool = Field(default=True, description="Whether the account may log in")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_login: Optional[datetime] = Field(None, description="Last successful login")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v):
        """Usernames are compared verbatim, so surrounding whitespace is rejected."""
        if v != v.strip():
            raise ValueError('username must not have leading or trailing whitespace')
        return v


class Token(BaseModel):
    """Session token issued on login."""
    id: str = Field(default_factory=new_id, description="Unique token record identifier")
    token: str = Field(..., description="Opaque bearer token value")
    user_id: str = Field(..., description="Owning user identifier")
    expires_at: datetime = Field(..., description="Expiry timestamp")
    created_at: datetime = Field(default_factory=utcnow)
    is_revoked: bool = Field(default=False)

    @classmethod
    def issue(cls, value: str, user_id: str, ttl: timedelta) -> "Token":
        """Build a token for ``user_id`` that expires ``ttl`` from now."""
        now = utcnow()
        return cls(token=value, user_id=user_id, expires_at=now + ttl, created_at=now)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at <= (now or utcnow())
