"""
In-process storage backend.

Each store keeps its records in a dictionary guarded by an asyncio.Lock,
so concurrent requests on the event loop never interleave a
read-modify-write. Data is lost when the process exits.
"""

import asyncio
from typing import Dict, List

import structlog

from .base import BookStore, Stores, TokenStore, UserStore, apply_book_update, build_book
from .exceptions import NotFoundError, TokenExpiredError
from .models import Book, BookCreate, BookUpdate, Token, User, utcnow

logger = structlog.get_logger(__name__)


class MemoryBookStore(BookStore):
    """Book records keyed by id."""

    def __init__(self):
        self._books: Dict[str, Book] = {}
        self._lock = asyncio.Lock()

    def _get_active(self, book_id: str) -> Book:
        book = self._books.get(book_id)
        if book is None or book.is_deleted:
            raise NotFoundError("Book not found")
        return book

    async def list_books(self) -> List[Book]:
        async with self._lock:
            books = [book for book in self._books.values() if not book.is_deleted]
        # Equal timestamps: most recently inserted first
        books.reverse()
        return sorted(books, key=lambda b: b.created_at, reverse=True)

    async def get_book(self, book_id: str) -> Book:
        async with self._lock:
            return self._get_active(book_id)

    async def create_book(self, request: BookCreate) -> Book:
        book = build_book(request)
        async with self._lock:
            self._books[book.id] = book
        logger.debug("Book created", book_id=book.id)
        return book

    async def update_book(self, book_id: str, update: BookUpdate) -> Book:
        async with self._lock:
            book = apply_book_update(self._get_active(book_id), update)
            self._books[book_id] = book
        logger.debug("Book updated", book_id=book_id)
        return book

    async def delete_book(self, book_id: str) -> Book:
        async with self._lock:
            book = self._get_active(book_id).model_copy(update={"deleted_at": utcnow()})
            self._books[book_id] = book
        logger.debug("Book soft-deleted", book_id=book_id)
        return book

    async def count_books(self) -> int:
        async with self._lock:
            return sum(1 for book in self._books.values() if not book.is_deleted)


class MemoryTokenStore(TokenStore):
    """Session tokens keyed by their value."""

    def __init__(self):
        self._tokens: Dict[str, Token] = {}
        self._lock = asyncio.Lock()

    async def create_token(self, token: Token) -> Token:
        async with self._lock:
            self._tokens[token.token] = token
        return token

    async def get_token(self, value: str) -> Token:
        async with self._lock:
            token = self._tokens.get(value)
        if token is None or token.is_revoked:
            raise NotFoundError("Token not found")
        if token.is_expired():
            raise TokenExpiredError("Token expired")
        return token

    async def revoke_token(self, value: str) -> None:
        async with self._lock:
            token = self._tokens.get(value)
            if token is None or token.is_revoked:
                raise NotFoundError("Token not found")
            self._tokens[value] = token.model_copy(update={"is_revoked": True})

    async def cleanup_expired(self) -> int:
        now = utcnow()
        async with self._lock:
            expired = [value for value, token in self._tokens.items() if token.is_expired(now)]
            for value in expired:
                del self._tokens[value]
        return len(expired)


class MemoryUserStore(UserStore):
    """Login accounts keyed by username."""

    def __init__(self):
        self._users: Dict[str, User] = {}
        self._lock = asyncio.Lock()

    async def get_user_by_username(self, username: str) -> User:
        async with self._lock:
            user = self._users.get(username)
        if user is None or not user.is_active:
            raise NotFoundError("User not found")
        return user

    async def record_last_login(self, user_id: str) -> None:
        now = utcnow()
        async with self._lock:
            for username, user in self._users.items():
                if user.id == user_id:
                    self._users[username] = user.model_copy(update={"last_login": now})
                    return
        raise NotFoundError("User not found")

    async def create_user(self, user: User) -> bool:
        async with self._lock:
            if user.username in self._users:
                return False
            self._users[user.username] = user
        return True

    async def count_users(self) -> int:
        async with self._lock:
            return len(self._users)


def create_memory_stores() -> Stores:
    """Build a fresh, empty set of in-memory stores."""
    return Stores(
        books=MemoryBookStore(),
        tokens=MemoryTokenStore(),
        users=MemoryUserStore(),
        backend="memory",
    )
