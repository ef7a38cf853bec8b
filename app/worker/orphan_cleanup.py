"""
Orphaned Media Cleanup

Finds images stored with the provider that no database row references and
deletes them:
- Collect every public id in use across all entity types
- Page through the provider's image index (optionally only older uploads)
- Delete the difference in batches, pausing between batches

A failed delete is counted and the run carries on. Running twice with no
writes in between deletes nothing the second time.
"""
import asyncio
import time
from dataclasses import dataclass, asdict, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Set

from sqlalchemy.orm import Session

from ..config import get_settings
from ..logging_config import cleanup_logger, timed
from ..services.storage import DELETED_RESULTS, StorageProvider, iter_pages
from ..services.usage import collect_used_media

# Rough per-object delete cost used for the preview estimate
SECONDS_PER_DELETE = 0.5


@dataclass
class CleanupReport:
    """Outcome of a destructive run"""
    deleted_count: int
    error_count: int
    total_orphaned: int
    images_in_database: int
    images_in_storage: int
    duration_seconds: float
    min_age_days: float = 0
    message: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CleanupPreview:
    """What a run would delete, without deleting anything"""
    images_in_database: int
    images_in_storage: int
    orphaned_count: int
    orphaned_sample: List[str] = field(default_factory=list)
    estimated_seconds: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


class OrphanCleanup:
    """
    Reconciles the provider's inventory against live database references.

    All state is local to one instance; build a new one per run.
    """

    def __init__(
        self,
        db: Session,
        storage: StorageProvider,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
        preview_limit: Optional[int] = None,
    ):
        settings = get_settings()
        self.db = db
        self.storage = storage
        self.batch_size = batch_size or settings.cleanup_batch_size
        self.batch_delay = settings.cleanup_batch_delay_seconds if batch_delay is None else batch_delay
        self.preview_limit = preview_limit or settings.cleanup_preview_limit

    async def fetch_inventory(self, min_age_days: float = 0) -> List[str]:
        """
        Public ids of every image the provider holds.

        With `min_age_days` only uploads older than that are returned; objects
        without an upload time are left out so a fresh upload is never
        mistaken for an orphan.
        """
        cutoff = None
        if min_age_days and min_age_days > 0:
            cutoff = datetime.now(timezone.utc) - timedelta(days=min_age_days)

        inventory = {}
        pages = 0
        async for page in iter_pages(self.storage):
            pages += 1
            for resource in page.resources:
                if cutoff is not None:
                    if resource.created_at is None or resource.created_at >= cutoff:
                        continue
                inventory[resource.public_id] = None

        cleanup_logger.info("Fetched storage inventory", pages=pages, images=len(inventory))
        return list(inventory)

    @staticmethod
    def find_orphans(inventory: List[str], used: Set[str]) -> List[str]:
        return [public_id for public_id in inventory if public_id not in used]

    async def _delete_one(self, public_id: str) -> bool:
        try:
            result = await self.storage.destroy(public_id)
        except Exception as e:
            cleanup_logger.error("Delete failed", error=e, public_id=public_id)
            return False

        if result in DELETED_RESULTS:
            cleanup_logger.debug("Deleted orphan", public_id=public_id)
            return True
        cleanup_logger.warning("Delete refused", public_id=public_id, result=result)
        return False

    async def delete_orphans(self, orphans: List[str]):
        """Delete in fixed-size batches. Returns (deleted, errors)."""
        deleted = errors = 0
        for start in range(0, len(orphans), self.batch_size):
            batch = orphans[start:start + self.batch_size]
            for public_id in batch:
                if await self._delete_one(public_id):
                    deleted += 1
                else:
                    errors += 1

            cleanup_logger.info(
                "Batch finished",
                batch=start // self.batch_size + 1,
                deleted=deleted,
                errors=errors,
            )
            # Provider rate limit
            if start + self.batch_size < len(orphans) and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        return deleted, errors

    @timed(cleanup_logger)
    async def run(self, min_age_days: float = 0) -> CleanupReport:
        """Delete every orphaned image. `min_age_days` of 0 disables the age filter."""
        start = time.time()
        cleanup_logger.info("Starting orphan cleanup", min_age_days=min_age_days)

        used = collect_used_media(self.db)
        inventory = await self.fetch_inventory(min_age_days)
        orphans = self.find_orphans(inventory, used)
        cleanup_logger.info(
            "Orphans identified",
            images_in_database=len(used),
            images_in_storage=len(inventory),
            orphaned=len(orphans),
        )

        deleted, errors = await self.delete_orphans(orphans)
        duration = round(time.time() - start, 2)

        if orphans:
            message = f"Deleted {deleted} orphaned images, {errors} errors"
        else:
            message = "No orphaned images found"

        report = CleanupReport(
            deleted_count=deleted,
            error_count=errors,
            total_orphaned=len(orphans),
            images_in_database=len(used),
            images_in_storage=len(inventory),
            duration_seconds=duration,
            min_age_days=min_age_days,
            message=message,
        )
        cleanup_logger.info(
            "Orphan cleanup completed",
            deleted=deleted,
            errors=errors,
            duration_seconds=duration,
        )
        return report

    async def preview(self, min_age_days: float = 0) -> CleanupPreview:
        """Identify orphans without deleting anything."""
        used = collect_used_media(self.db)
        inventory = await self.fetch_inventory(min_age_days)
        orphans = self.find_orphans(inventory, used)

        return CleanupPreview(
            images_in_database=len(used),
            images_in_storage=len(inventory),
            orphaned_count=len(orphans),
            orphaned_sample=orphans[:self.preview_limit],
            estimated_seconds=round(len(orphans) * SECONDS_PER_DELETE, 1),
        )
