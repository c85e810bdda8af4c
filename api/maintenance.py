"""
Periodic maintenance jobs run alongside the API.

Currently a single job: removing expired session tokens on a fixed
interval with APScheduler.
"""

from typing import Optional

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from api.auth import AuthService

logger = structlog.get_logger(__name__)

CLEANUP_JOB_ID = "token_cleanup"


class TokenCleanupService:
    """Schedules expired-token cleanup on the running event loop."""

    def __init__(self, auth_service: AuthService, interval_minutes: int):
        """
        Initialize cleanup service.

        Args:
            auth_service: Service owning the token store
            interval_minutes: Minutes between cleanup runs
        """
        self.auth_service = auth_service
        self.interval_minutes = interval_minutes
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.logger = logger.bind(component="token_cleanup")

    def _setup_scheduler_listeners(self) -> None:
        def job_executed_listener(event):
            self.logger.debug("Token cleanup finished", job_id=event.job_id, removed=event.retval)

        def job_error_listener(event):
            self.logger.error("Token cleanup failed", job_id=event.job_id, error=str(event.exception))

        self.scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)

    async def run_cleanup(self) -> int:
        """Remove expired tokens once."""
        return await self.auth_service.cleanup_expired_tokens()

    def start(self) -> None:
        """Start the scheduler. Must be called from inside the event loop."""
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self._setup_scheduler_listeners()
        self.scheduler.add_job(
            self.run_cleanup,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=CLEANUP_JOB_ID,
            name="Remove expired tokens",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self.logger.info("Token cleanup scheduled", interval_minutes=self.interval_minutes)

    def stop(self) -> None:
        """Stop the scheduler if it is running."""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.logger.info("Token cleanup stopped")
