"""
Configuration management using environment variables.
Handles storage backend and logging settings with validation and defaults.
"""

from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


class StorageConfig(BaseSettings):
    """
    Configuration class for storage and logging settings.
    Uses pydantic BaseSettings for environment variable management.
    """

    # Backend selection
    storage_backend: str = Field(default="mongodb")

    # MongoDB Configuration
    mongodb_url: str = Field(default="mongodb://localhost:27017")
    mongodb_database: str = Field(default="book_management")
    mongodb_books_collection: str = Field(default="books")
    mongodb_users_collection: str = Field(default="users")
    mongodb_tokens_collection: str = Field(default="tokens")

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    # Development/Testing
    debug: bool = Field(default=False)

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v):
        """Ensure the backend is one we can build."""
        valid_backends = ['mongodb', 'memory']
        if v.lower() not in valid_backends:
            raise ValueError(f'storage_backend must be one of: {valid_backends}')
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra fields from .env
    )

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None


# Global configuration instance
config = StorageConfig()
