"""
Tests for scheduled maintenance and startup wiring.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from api.config import APIConfig
from api.maintenance import CLEANUP_JOB_ID, TokenCleanupService
from storage import create_stores
from storage.memory import MemoryBookStore
from utilities.config import StorageConfig


class TestTokenCleanupService:
    """Test cases for TokenCleanupService."""

    @pytest.fixture
    def auth_service(self):
        service = AsyncMock()
        service.cleanup_expired_tokens.return_value = 2
        return service

    @pytest.mark.asyncio
    async def test_run_cleanup(self, auth_service):
        cleanup = TokenCleanupService(auth_service, interval_minutes=60)

        assert await cleanup.run_cleanup() == 2
        auth_service.cleanup_expired_tokens.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_schedules_interval_job(self, auth_service):
        cleanup = TokenCleanupService(auth_service, interval_minutes=15)
        cleanup.start()
        try:
            job = cleanup.scheduler.get_job(CLEANUP_JOB_ID)
            assert job is not None
            assert job.trigger.interval == timedelta(minutes=15)
            assert job.max_instances == 1
        finally:
            cleanup.stop()

        # AsyncIOScheduler shuts down on the next loop iteration
        await asyncio.sleep(0)
        assert not cleanup.scheduler.running

    def test_stop_without_start(self, auth_service):
        cleanup = TokenCleanupService(auth_service, interval_minutes=60)
        cleanup.stop()
        assert cleanup.scheduler is None


class TestConfiguration:
    """Test cases for settings validation."""

    def test_api_defaults(self):
        config = APIConfig()

        assert config.port == 8080
        assert config.token_expire_hours == 24
        assert "/api/login" in config.auth_exempt_prefixes
        assert [user.username for user in config.seed_users] == ["admin", "user"]

    @pytest.mark.parametrize("hours", [0, 721])
    def test_token_expire_hours_range(self, hours):
        with pytest.raises(ValidationError):
            APIConfig(token_expire_hours=hours)

    def test_token_cleanup_minutes_positive(self):
        with pytest.raises(ValidationError):
            APIConfig(token_cleanup_minutes=0)

    def test_storage_backend_normalized(self):
        assert StorageConfig(storage_backend="MEMORY").storage_backend == "memory"

    def test_storage_backend_rejected(self):
        with pytest.raises(ValidationError):
            StorageConfig(storage_backend="postgres")

    def test_log_settings_normalized(self):
        config = StorageConfig(log_level="debug", log_format="CONSOLE")

        assert config.log_level == "DEBUG"
        assert config.log_format == "console"
        assert config.get_log_file_path() is None

    def test_create_memory_stores(self):
        stores = create_stores(StorageConfig(storage_backend="memory"))

        assert stores.backend == "memory"
        assert isinstance(stores.books, MemoryBookStore)

    @pytest.mark.asyncio
    async def test_memory_health_check(self):
        stores = create_stores(StorageConfig(storage_backend="memory"))

        assert (await stores.health_check())["status"] == "healthy"
