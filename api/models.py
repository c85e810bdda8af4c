"""
API request and response schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from storage.models import Book


class LoginRequest(BaseModel):
    """Login payload."""
    username: str = Field(..., description="Account username")
    password: str = Field(..., description="Account password")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"username": "admin", "password": "admin123"}
        }
    )


class LoginResponse(BaseModel):
    """Successful login."""
    success: bool = Field(True, description="Always true")
    token: str = Field(..., description="Bearer token for protected endpoints")
    expires_at: datetime = Field(..., description="Token expiry time")


class APIResponse(BaseModel):
    """Envelope used by every endpoint. Absent members are omitted."""
    success: bool = Field(..., description="Whether the request succeeded")
    message: Optional[str] = Field(None, description="Human-readable outcome")
    data: Optional[Any] = Field(None, description="Payload")
    count: Optional[int] = Field(None, description="Number of items in data")


class BookResponse(APIResponse):
    """Envelope carrying one book."""
    data: Optional[Book] = None


class BookListResponse(APIResponse):
    """Envelope carrying a list of books."""
    data: List[Book] = Field(default_factory=list)
    count: int = Field(0, description="Number of books returned")


class ErrorResponse(BaseModel):
    """Error response model."""
    success: bool = Field(False, description="Always false")
    message: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details (debug mode only)")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    message: str = Field(..., description="Human-readable status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Storage backend status")
