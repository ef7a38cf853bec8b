"""
Orphaned image cleanup routes (moderators only).
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..auth import require_moderator
from ..config import get_settings
from ..database import get_db
from ..limiter import limiter
from ..models.user import User
from ..responses import success
from ..schemas.cleanup import CleanupRequest
from ..services.storage import StorageProvider, get_storage
from ..worker.orphan_cleanup import OrphanCleanup

settings = get_settings()

router = APIRouter(prefix="/api/cleanup", tags=["cleanup"])


@router.get("/stats")
async def cleanup_stats(
    min_age_days: float = 0,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    moderator: User = Depends(require_moderator),
):
    """Preview what a cleanup would delete. Nothing is removed."""
    preview = await OrphanCleanup(db, storage).preview(min_age_days)
    return success(preview.to_dict())


@router.post("/orphaned-images")
@limiter.limit(settings.cleanup_rate_limit)
async def cleanup_orphaned_images(
    request: Request,
    body: CleanupRequest,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    moderator: User = Depends(require_moderator),
):
    """Delete every orphaned image, optionally only uploads older than `min_age_days`."""
    report = await OrphanCleanup(db, storage).run(min_age_days=body.min_age_days)
    return success(report.to_dict(), "Cleanup completed successfully")
