"""
Storage package for the Book Management API.

This package contains:
- Book, user and token record models
- Store interfaces shared by all backends
- MongoDB backend (motor)
- In-memory backend
"""

import structlog

from .base import BookStore, Stores, TokenStore, UserStore
from .exceptions import (
    AuthError, NotFoundError, StorageError, StoreError, TokenExpiredError, ValidationError
)
from .memory import create_memory_stores

logger = structlog.get_logger(__name__)

__version__ = "1.0.0"


def create_stores(config) -> Stores:
    """
    Build the stores for the backend named in the configuration.

    Args:
        config: StorageConfig instance

    Returns:
        Unconnected Stores; call ``connect()`` before use
    """
    if config.storage_backend == "memory":
        logger.info("Using in-memory storage backend")
        return create_memory_stores()

    from .mongo import MongoDBManager, create_mongo_stores

    logger.info("Using MongoDB storage backend", database=config.mongodb_database)
    manager = MongoDBManager(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database,
        books_collection=config.mongodb_books_collection,
        users_collection=config.mongodb_users_collection,
        tokens_collection=config.mongodb_tokens_collection,
    )
    return create_mongo_stores(manager)


__all__ = [
    "AuthError",
    "BookStore",
    "NotFoundError",
    "StorageError",
    "StoreError",
    "Stores",
    "TokenExpiredError",
    "TokenStore",
    "UserStore",
    "ValidationError",
    "create_stores",
]
