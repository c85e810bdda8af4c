"""
FastAPI main application for the Book Management API.
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBearer
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.auth import AuthService, BearerAuthMiddleware, initialize_default_users
from api.config import APIConfig, config as default_api_config
from api.maintenance import TokenCleanupService
from api.models import (
    APIResponse, BookListResponse, BookResponse,
    ErrorResponse, HealthResponse, LoginRequest, LoginResponse
)
from storage import BookStore, StoreError, Stores, create_stores
from storage.models import BookCreate, BookUpdate, utcnow
from utilities.config import StorageConfig, config as default_storage_config

# Setup logging
logger = structlog.get_logger(__name__)

# Documents the bearer scheme in OpenAPI; BearerAuthMiddleware does the checking
bearer_scheme = HTTPBearer(auto_error=False)


def get_book_store(request: Request) -> BookStore:
    return request.app.state.stores.books


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _error_response(status_code: int, message: str, detail: Optional[str] = None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, detail=detail).model_dump(exclude_none=True),
        headers=headers,
    )


def _validation_message(exc: RequestValidationError) -> str:
    """Turn pydantic errors into a single readable message."""
    errors = exc.errors()
    for error in errors:
        # Undecodable body, or no body at all
        if error.get("type") == "json_invalid":
            return "Invalid JSON format"
        if error.get("type") == "missing" and tuple(error.get("loc", ())) == ("body",):
            return "Invalid JSON format"

    parts = []
    for error in errors:
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid value")
        parts.append(f"{field}: {message}" if field else message)
    return "Invalid request data. " + "; ".join(parts)


# Auth endpoints
auth_router = APIRouter(prefix="/api", tags=["Auth"])


@auth_router.post("/login", response_model=LoginResponse)
async def login(payload: LoginRequest, auth_service: AuthService = Depends(get_auth_service)):
    """
    Log in and receive a bearer token.

    - **username**: Account username
    - **password**: Account password
    """
    token = await auth_service.login(payload.username, payload.password)
    return LoginResponse(token=token.token, expires_at=token.expires_at)


@auth_router.post(
    "/logout",
    response_model=APIResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(bearer_scheme)],
)
async def logout(request: Request, auth_service: AuthService = Depends(get_auth_service)):
    """Revoke the bearer token used for this request."""
    await auth_service.logout(request.state.token.token)
    return APIResponse(success=True, message="Logged out successfully")


# Books endpoints
books_router = APIRouter(prefix="/api/books", tags=["Books"], dependencies=[Depends(bearer_scheme)])


@books_router.get("", response_model=BookListResponse, response_model_exclude_none=True)
async def get_books(books: BookStore = Depends(get_book_store)):
    """Get all active books, newest first."""
    items = await books.list_books()
    return BookListResponse(success=True, data=items, count=len(items))


@books_router.get("/{book_id}", response_model=BookResponse, response_model_exclude_none=True)
async def get_book(book_id: str, books: BookStore = Depends(get_book_store)):
    """
    Get a single book by ID.

    - **book_id**: Book identifier
    """
    book = await books.get_book(book_id)
    return BookResponse(success=True, data=book)


@books_router.post(
    "",
    response_model=BookResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_book(payload: BookCreate, books: BookStore = Depends(get_book_store)):
    """
    Create a new book.

    - **judul**: Title (required)
    - **author**: Author (required)
    - **tahun_terbit**: Publication year, 1000-2024
    """
    book = await books.create_book(payload)
    logger.info("Book created", book_id=book.id, judul=book.judul)
    return BookResponse(success=True, message="Book created successfully", data=book)


@books_router.put("/{book_id}", response_model=BookResponse, response_model_exclude_none=True)
async def update_book(book_id: str, payload: BookUpdate, books: BookStore = Depends(get_book_store)):
    """
    Update a book. Empty strings and a zero year leave the field unchanged.

    - **book_id**: Book identifier
    """
    book = await books.update_book(book_id, payload)
    logger.info("Book updated", book_id=book_id)
    return BookResponse(success=True, message="Book updated successfully", data=book)


@books_router.delete("/{book_id}", response_model=BookResponse, response_model_exclude_none=True)
async def delete_book(book_id: str, books: BookStore = Depends(get_book_store)):
    """
    Soft-delete a book and return the deleted record.

    - **book_id**: Book identifier
    """
    book = await books.delete_book(book_id)
    logger.info("Book deleted", book_id=book_id)
    return BookResponse(success=True, message="Book deleted successfully", data=book)


def create_app(
    api_config: Optional[APIConfig] = None,
    storage_config: Optional[StorageConfig] = None,
    stores: Optional[Stores] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        api_config: API settings; defaults to the environment-loaded config
        storage_config: Storage settings; defaults to the environment-loaded config
        stores: Pre-built stores to use instead of building them from storage_config

    Returns:
        Configured FastAPI application
    """
    api_config = api_config or default_api_config
    storage_config = storage_config or default_storage_config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting Book Management API")

        app_stores = stores or create_stores(storage_config)
        try:
            await app_stores.connect()
        except Exception as e:
            logger.error("Failed to connect to storage backend", backend=app_stores.backend, error=str(e))
            raise

        auth_service = AuthService(
            users=app_stores.users,
            tokens=app_stores.tokens,
            token_ttl=timedelta(hours=api_config.token_expire_hours),
        )
        app.state.stores = app_stores
        app.state.auth_service = auth_service

        await initialize_default_users(app_stores.users, api_config.seed_users)

        cleanup_service = TokenCleanupService(auth_service, api_config.token_cleanup_minutes)
        cleanup_service.start()

        try:
            yield
        finally:
            logger.info("Shutting down Book Management API")
            cleanup_service.stop()
            await app_stores.close()

    app = FastAPI(
        title=api_config.api_title,
        description=api_config.api_description,
        version=api_config.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(BearerAuthMiddleware, exempt_prefixes=api_config.auth_exempt_prefixes)

    # Added last so it wraps the auth check and answers preflights first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=api_config.cors_origins,
        allow_credentials=api_config.cors_allow_credentials,
        allow_methods=api_config.cors_allow_methods,
        allow_headers=api_config.cors_allow_headers,
    )

    # Exception handlers
    @app.exception_handler(StoreError)
    async def store_exception_handler(request: Request, exc: StoreError):
        """Map storage and auth errors to their HTTP status."""
        if exc.status_code >= 500:
            logger.error("Storage failure", error=str(exc), path=request.url.path)
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
        return _error_response(exc.status_code, exc.message, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Report malformed or invalid request bodies as 400."""
        return _error_response(status.HTTP_400_BAD_REQUEST, _validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return _error_response(exc.status_code, str(exc.detail), headers=exc.headers)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            detail=str(exc) if api_config.debug else None,
        )

    # Health check endpoint (no authentication required)
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        try:
            health_info = await request.app.state.stores.health_check()
            db_status = health_info.get("status", "unknown")

            return HealthResponse(
                status="healthy" if db_status == "healthy" else "degraded",
                message="Server is running",
                timestamp=utcnow(),
                version=api_config.api_version,
                database_status=db_status
            )
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return HealthResponse(
                status="unhealthy",
                message="Server is running",
                timestamp=utcnow(),
                version=api_config.api_version,
                database_status="unhealthy"
            )

    app.include_router(auth_router)
    app.include_router(books_router)
    return app


# Create FastAPI application
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=default_api_config.host,
        port=default_api_config.port,
        reload=True,
        log_level="info"
    )
