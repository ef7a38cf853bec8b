"""
Announcement routes. Creating one notifies its audience; deleting one removes
its image and those notifications.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import require_moderator
from ..database import get_db
from ..logging_config import api_logger
from ..models.announcement import Announcement
from ..models.notification import NotificationType
from ..models.user import User
from ..responses import deleted
from ..schemas.announcements import AnnouncementCreate
from ..services import notifications
from ..services.errors import NotFound, ValidationFailed
from ..services.media import resolve_public_id
from ..services.storage import StorageProvider, destroy_quietly, get_storage

router = APIRouter(prefix="/api/announcements", tags=["announcements"])


@router.post("", status_code=201)
async def create_announcement(
    data: AnnouncementCreate,
    db: Session = Depends(get_db),
    moderator: User = Depends(require_moderator),
):
    """Create an announcement and notify its audience."""
    if not data.title.strip() or not data.content.strip():
        raise ValidationFailed("Title and content are required")
    recipients = notifications.audience_ids(db, data.target_audience)

    announcement = Announcement(
        author_id=moderator.id,
        title=data.title.strip(),
        content=data.content,
        image=data.image,
        image_public_id=resolve_public_id(data.image_public_id, data.image),
        target_audience=data.target_audience,
    )
    db.add(announcement)
    db.commit()
    db.refresh(announcement)

    created = await notifications.notify_users(
        db,
        recipients,
        NotificationType.ANNOUNCEMENT_CREATED.value,
        "New Announcement",
        f"New announcement: {announcement.title}",
        sender_id=moderator.id,
        metadata={"announcement_id": announcement.id},
    )
    api_logger.info(
        "Announcement created",
        announcement_id=announcement.id,
        audience=len(recipients),
        notified=len(created),
    )
    return {**announcement.to_dict(), "notified": len(created)}


@router.delete("/{announcement_id}")
async def delete_announcement(
    announcement_id: int,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    moderator: User = Depends(require_moderator),
):
    announcement = db.query(Announcement).filter(Announcement.id == announcement_id).first()
    if not announcement:
        raise NotFound("Announcement")

    await destroy_quietly(storage, announcement.image_public_id, announcement_id=announcement_id)
    notifications.delete_announcement_notifications(db, announcement_id)
    db.delete(announcement)
    db.commit()
    return deleted("Announcement deleted")
