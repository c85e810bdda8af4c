"""
Store interfaces shared by the MongoDB and in-memory backends.

The API layer only talks to these abstractions; which backend sits behind
them is decided once at startup by ``storage.create_stores``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List

from .models import Book, BookCreate, BookUpdate, Token, User, utcnow, validate_publication_year


def apply_book_update(book: Book, update: BookUpdate) -> Book:
    """
    Apply a partial update to a book and return the modified copy.

    Only non-blank strings and a non-zero year overwrite existing values.

    Raises:
        ValidationError: If a non-zero year is outside the accepted range
    """
    changes = {}
    if update.judul and update.judul.strip():
        changes["judul"] = update.judul
    if update.author and update.author.strip():
        changes["author"] = update.author
    if update.tahun_terbit:
        changes["tahun_terbit"] = validate_publication_year(update.tahun_terbit)
    changes["updated_at"] = utcnow()
    return book.model_copy(update=changes)


def build_book(request: BookCreate) -> Book:
    """Create a new, active book record from a create request."""
    now = utcnow()
    return Book(
        judul=request.judul,
        author=request.author,
        tahun_terbit=request.tahun_terbit,
        created_at=now,
        updated_at=now,
    )


class BookStore(ABC):
    """Persistence for book records."""

    @abstractmethod
    async def list_books(self) -> List[Book]:
        """Return active books, newest first."""

    @abstractmethod
    async def get_book(self, book_id: str) -> Book:
        """Return an active book or raise NotFoundError."""

    @abstractmethod
    async def create_book(self, request: BookCreate) -> Book:
        """Store a new book and return it with its assigned id."""

    @abstractmethod
    async def update_book(self, book_id: str, update: BookUpdate) -> Book:
        """Apply a partial update to an active book and return the result."""

    @abstractmethod
    async def delete_book(self, book_id: str) -> Book:
        """Soft-delete an active book and return the deleted record."""

    @abstractmethod
    async def count_books(self) -> int:
        """Return the number of active books."""


class TokenStore(ABC):
    """Persistence for session tokens."""

    @abstractmethod
    async def create_token(self, token: Token) -> Token:
        """Store a newly issued token."""

    @abstractmethod
    async def get_token(self, value: str) -> Token:
        """
        Return a usable token.

        Raises:
            NotFoundError: If the token is unknown or revoked
            TokenExpiredError: If the token is past its expiry
        """

    @abstractmethod
    async def revoke_token(self, value: str) -> None:
        """Revoke a token or raise NotFoundError if no unrevoked match exists."""

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """Remove expired tokens and return how many were removed."""


class UserStore(ABC):
    """Persistence for login accounts."""

    @abstractmethod
    async def get_user_by_username(self, username: str) -> User:
        """Return an active user or raise NotFoundError."""

    @abstractmethod
    async def record_last_login(self, user_id: str) -> None:
        """Set the user's last-login time to now."""

    @abstractmethod
    async def create_user(self, user: User) -> bool:
        """Store a user. Returns False if the username is already taken."""

    @abstractmethod
    async def count_users(self) -> int:
        """Return the number of stored users."""


@dataclass
class Stores:
    """The three stores of one backend, plus its lifecycle hooks."""
    books: BookStore
    tokens: TokenStore
    users: UserStore
    backend: str

    async def connect(self) -> None:
        """Open backend resources. No-op for backends without any."""

    async def close(self) -> None:
        """Release backend resources."""

    async def health_check(self) -> Dict:
        """Return a dictionary with at least a ``status`` key."""
        return {"status": "healthy", "backend": self.backend}
