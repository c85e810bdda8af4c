"""
MongoDB storage backend using motor for async operations.
Handles connection, indexing, and CRUD operations for books, users and tokens.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

from .base import BookStore, Stores, TokenStore, UserStore, apply_book_update, build_book
from .exceptions import NotFoundError, StorageError, TokenExpiredError
from .models import Book, BookCreate, BookUpdate, Token, User, utcnow

logger = structlog.get_logger(__name__)

# Exclude MongoDB's internal _id; records carry their own string id.
PROJECTION = {"_id": 0}
ACTIVE_BOOK = {"deleted_at": None}


class MongoDBManager:
    """
    Async MongoDB connection manager.
    Owns the client and creates the indexes the stores rely on.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        books_collection: str = "books",
        users_collection: str = "users",
        tokens_collection: str = "tokens",
    ):
        """
        Initialize MongoDB manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            books_collection: Collection holding book records
            users_collection: Collection holding user accounts
            tokens_collection: Collection holding session tokens
        """
        self.connection_url = connection_url
        self.database_name = database_name
        # tz_aware keeps stored timestamps comparable with utcnow()
        self.client = AsyncIOMotorClient(connection_url, tz_aware=True)
        self.database: AsyncIOMotorDatabase = self.client[database_name]
        self.books: AsyncIOMotorCollection = self.database[books_collection]
        self.users: AsyncIOMotorCollection = self.database[users_collection]
        self.tokens: AsyncIOMotorCollection = self.database[tokens_collection]

    async def connect(self) -> None:
        """Verify the connection and create indexes."""
        try:
            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB", database=self.database_name)
            await self._create_indexes()
        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        self.client.close()
        logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """Create indexes for lookups, uniqueness and ordering."""
        try:
            await self.books.create_index("id", unique=True)
            await self.books.create_index([("deleted_at", ASCENDING), ("created_at", DESCENDING)])

            await self.users.create_index("id", unique=True)
            await self.users.create_index("username", unique=True)

            await self.tokens.create_index("token", unique=True)
            await self.tokens.create_index("expires_at")

            logger.info("Successfully created MongoDB indexes")
        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            books_count = await self.books.count_documents(ACTIVE_BOOK)
            return {
                "status": "healthy",
                "backend": "mongodb",
                "books_count": books_count,
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "backend": "mongodb",
                "error": str(e),
            }


class MongoBookStore(BookStore):
    """Book records stored as documents; soft-deleted books keep a deleted_at value."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def list_books(self) -> List[Book]:
        try:
            cursor = self.collection.find(ACTIVE_BOOK, PROJECTION).sort("created_at", DESCENDING)
            docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error("Failed to list books", error=str(e))
            raise StorageError("Failed to fetch books") from e
        return [Book(**doc) for doc in docs]

    async def _find_active(self, book_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.collection.find_one({"id": book_id, **ACTIVE_BOOK}, PROJECTION)
        except PyMongoError as e:
            logger.error("Failed to get book", book_id=book_id, error=str(e))
            raise StorageError("Failed to fetch book") from e

    async def get_book(self, book_id: str) -> Book:
        doc = await self._find_active(book_id)
        if not doc:
            raise NotFoundError("Book not found")
        return Book(**doc)

    async def create_book(self, request: BookCreate) -> Book:
        book = build_book(request)
        try:
            await self.collection.insert_one(book.model_dump())
        except PyMongoError as e:
            logger.error("Failed to insert book", judul=book.judul, error=str(e))
            raise StorageError("Failed to create book") from e
        logger.debug("Successfully inserted book", book_id=book.id)
        return book

    async def update_book(self, book_id: str, update: BookUpdate) -> Book:
        book = apply_book_update(await self.get_book(book_id), update)
        changes = book.model_dump(include={"judul", "author", "tahun_terbit", "updated_at"})
        try:
            result = await self.collection.update_one(
                {"id": book_id, **ACTIVE_BOOK},
                {"$set": changes}
            )
        except PyMongoError as e:
            logger.error("Failed to update book", book_id=book_id, error=str(e))
            raise StorageError("Failed to update book") from e

        # Deleted between the read and the write
        if result.matched_count == 0:
            raise NotFoundError("Book not found")
        logger.debug("Successfully updated book", book_id=book_id)
        return book

    async def delete_book(self, book_id: str) -> Book:
        try:
            doc = await self.collection.find_one_and_update(
                {"id": book_id, **ACTIVE_BOOK},
                {"$set": {"deleted_at": utcnow()}},
                projection=PROJECTION,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise StorageError("Failed to delete book") from e

        if not doc:
            raise NotFoundError("Book not found")
        logger.debug("Successfully soft-deleted book", book_id=book_id)
        return Book(**doc)

    async def count_books(self) -> int:
        try:
            return await self.collection.count_documents(ACTIVE_BOOK)
        except PyMongoError as e:
            logger.error("Failed to get books count", error=str(e))
            raise StorageError("Failed to count books") from e


class MongoTokenStore(TokenStore):
    """Session tokens; revocation flips is_revoked, cleanup deletes expired documents."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def create_token(self, token: Token) -> Token:
        try:
            await self.collection.insert_one(token.model_dump())
        except PyMongoError as e:
            logger.error("Failed to create token", user_id=token.user_id, error=str(e))
            raise StorageError("Failed to create session") from e
        return token

    async def get_token(self, value: str) -> Token:
        try:
            doc = await self.collection.find_one({"token": value}, PROJECTION)
        except PyMongoError as e:
            logger.error("Failed to get token", error=str(e))
            raise StorageError("Failed to get token") from e

        if not doc or doc.get("is_revoked"):
            raise NotFoundError("Token not found")
        token = Token(**doc)
        if token.is_expired():
            raise TokenExpiredError("Token expired")
        return token

    async def revoke_token(self, value: str) -> None:
        try:
            result = await self.collection.update_one(
                {"token": value, "is_revoked": False},
                {"$set": {"is_revoked": True}}
            )
        except PyMongoError as e:
            logger.error("Failed to revoke token", error=str(e))
            raise StorageError("Failed to revoke token") from e

        if result.matched_count == 0:
            raise NotFoundError("Token not found")

    async def cleanup_expired(self) -> int:
        try:
            result = await self.collection.delete_many({"expires_at": {"$lt": utcnow()}})
        except PyMongoError as e:
            logger.error("Failed to cleanup expired tokens", error=str(e))
            raise StorageError("Failed to cleanup expired tokens") from e
        return result.deleted_count


class MongoUserStore(UserStore):
    """Login accounts; usernames are unique through an index."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def get_user_by_username(self, username: str) -> User:
        try:
            doc = await self.collection.find_one({"username": username, "is_active": True}, PROJECTION)
        except PyMongoError as e:
            logger.error("Failed to get user", username=username, error=str(e))
            raise StorageError("Failed to get user") from e

        if not doc:
            raise NotFoundError("User not found")
        return User(**doc)

    async def record_last_login(self, user_id: str) -> None:
        try:
            result = await self.collection.update_one(
                {"id": user_id},
                {"$set": {"last_login": utcnow()}}
            )
        except PyMongoError as e:
            logger.error("Failed to update last login", user_id=user_id, error=str(e))
            raise StorageError("Failed to update last login") from e

        if result.matched_count == 0:
            raise NotFoundError("User not found")

    async def create_user(self, user: User) -> bool:
        try:
            await self.collection.insert_one(user.model_dump())
            return True
        except DuplicateKeyError:
            logger.warning("User already exists", username=user.username)
            return False
        except PyMongoError as e:
            logger.error("Failed to create user", username=user.username, error=str(e))
            raise StorageError("Failed to create user") from e

    async def count_users(self) -> int:
        try:
            return await self.collection.count_documents({})
        except PyMongoError as e:
            logger.error("Failed to count users", error=str(e))
            raise StorageError("Failed to count users") from e


@dataclass
class MongoStores(Stores):
    """Stores backed by one MongoDB database."""
    manager: Optional[MongoDBManager] = None

    async def connect(self) -> None:
        await self.manager.connect()

    async def close(self) -> None:
        await self.manager.disconnect()

    async def health_check(self) -> Dict:
        return await self.manager.health_check()


def create_mongo_stores(manager: MongoDBManager) -> MongoStores:
    """Build the three stores on top of a manager's collections."""
    return MongoStores(
        books=MongoBookStore(manager.books),
        tokens=MongoTokenStore(manager.tokens),
        users=MongoUserStore(manager.users),
        backend="mongodb",
        manager=manager,
    )
