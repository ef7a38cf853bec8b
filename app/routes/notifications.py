"""
Notification inbox routes. Every query is scoped to the recipient.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import datetime, timezone

from ..auth import get_required_user
from ..database import get_db
from ..models.notification import Notification
from ..models.user import User
from ..responses import deleted, paginated, success
from ..services.errors import NotFound

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _own_notification(db: Session, notification_id: int, user: User) -> Notification:
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.recipient_id == user.id,
    ).first()
    if not notification:
        raise NotFound("Notification")
    return notification


@router.get("")
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """The current user's notifications, newest first."""
    query = db.query(Notification).filter(Notification.recipient_id == current_user.id)
    total = query.count()
    items = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return paginated([n.to_dict() for n in items], total, page, limit)


@router.get("/unread/count")
def unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    count = db.query(Notification).filter(
        Notification.recipient_id == current_user.id,
        Notification.is_read.is_(False),
    ).count()
    return {"count": count}


@router.post("/mark-all-read")
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    updated = db.query(Notification).filter(
        Notification.recipient_id == current_user.id,
        Notification.is_read.is_(False),
    ).update(
        {Notification.is_read: True, Notification.read_at: datetime.now(timezone.utc)},
        synchronize_session=False,
    )
    db.commit()
    return success({"updated": updated}, "All notifications marked as read")


@router.delete("/read")
def clear_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    removed = db.query(Notification).filter(
        Notification.recipient_id == current_user.id,
        Notification.is_read.is_(True),
    ).delete(synchronize_session=False)
    db.commit()
    return success({"deleted": removed}, "All read notifications cleared")


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    notification = _own_notification(db, notification_id, current_user)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(notification)
    return notification.to_dict()


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    notification = _own_notification(db, notification_id, current_user)
    db.delete(notification)
    db.commit()
    return deleted("Notification deleted")
