"""
Scheduled Orphan Cleanup

Runs the orphan cleanup once a day at a fixed UTC hour inside the API
process. Only uploads older than the configured age are considered, so images
still on their way to being attached to a post are left alone.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..config import get_settings
from ..database import SessionLocal
from ..logging_config import cleanup_logger
from ..services.storage import StorageProvider, get_storage
from .orphan_cleanup import CleanupReport, OrphanCleanup


class CleanupScheduler:
    """Daily background loop around `OrphanCleanup.run`."""

    def __init__(
        self,
        session_factory: Callable = SessionLocal,
        storage_factory: Callable[[], StorageProvider] = get_storage,
        hour_utc: Optional[int] = None,
        min_age_days: Optional[float] = None,
    ):
        settings = get_settings()
        self.session_factory = session_factory
        self.storage_factory = storage_factory
        self.hour_utc = settings.cleanup_hour_utc if hour_utc is None else hour_utc
        self.min_age_days = settings.cleanup_min_age_days if min_age_days is None else min_age_days
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def seconds_until_next_run(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        next_run = now.replace(hour=self.hour_utc, minute=0, second=0, microsecond=0)
        if next_run <= now:
            next_run += timedelta(days=1)
        return (next_run - now).total_seconds()

    async def run_once(self) -> Optional[CleanupReport]:
        """One scheduled run. Failures are logged so the loop keeps going."""
        db = self.session_factory()
        try:
            cleanup = OrphanCleanup(db, self.storage_factory())
            return await cleanup.run(min_age_days=self.min_age_days)
        except Exception as e:
            cleanup_logger.error("Scheduled cleanup failed", error=e)
            return None
        finally:
            db.close()

    async def _loop(self):
        while True:
            delay = self.seconds_until_next_run()
            cleanup_logger.info("Next scheduled cleanup", in_seconds=round(delay))
            await asyncio.sleep(delay)
            await self.run_once()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        cleanup_logger.info("Cleanup scheduler started", hour_utc=self.hour_utc, min_age_days=self.min_age_days)

    async def stop(self):
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        cleanup_logger.info("Cleanup scheduler stopped")
