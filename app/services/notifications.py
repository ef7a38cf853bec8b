"""
Notification fan-out.

Each notification is persisted first and then pushed to the recipient's
private channel. Pushing is best-effort: a recipient that is not connected
reads the stored record from the inbox later.
"""
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..logging_config import notify_logger
from ..models import Announcement, Notification, NotificationType, Role, User
from .realtime import Event, event_manager, user_channel
from .errors import ValidationFailed


def _build(
    recipient_id: int,
    type: str,
    title: str,
    message: str,
    sender_id: Optional[int] = None,
    metadata: Optional[Dict] = None,
) -> Notification:
    try:
        type = NotificationType(type).value
    except ValueError:
        raise ValidationFailed(f"Unknown notification type '{type}'")

    metadata = dict(metadata or {})
    references = {key: metadata.pop(key, None) for key in Notification.REFERENCE_KEYS}
    return Notification(
        recipient_id=recipient_id,
        sender_id=sender_id,
        type=type,
        title=title,
        message=message,
        extra=metadata,
        **references,
    )


async def deliver(notification: Notification) -> bool:
    """Push one persisted notification to its recipient's open connections."""
    try:
        delivered = await event_manager.publish(
            user_channel(notification.recipient_id),
            Event(type="notification", data=notification.to_dict()),
        )
    except Exception as e:
        notify_logger.warning(
            "Notification push failed",
            notification_id=notification.id,
            error_message=str(e),
        )
        return False
    return delivered > 0


async def notify(
    db: Session,
    recipient_id: int,
    type: str,
    title: str,
    message: str,
    sender_id: Optional[int] = None,
    metadata: Optional[Dict] = None,
) -> Notification:
    """Persist a notification for one recipient and push it."""
    notification = _build(recipient_id, type, title, message, sender_id, metadata)
    db.add(notification)
    db.commit()
    db.refresh(notification)

    await deliver(notification)
    return notification


async def notify_users(
    db: Session,
    recipient_ids: Iterable[int],
    type: str,
    title: str,
    message: str,
    sender_id: Optional[int] = None,
    metadata: Optional[Dict] = None,
) -> List[Notification]:
    """
    Fan a notification out to many recipients.

    A failure for one recipient is logged and skipped; the caller's action is
    never failed by it.
    """
    created = []
    for recipient_id in recipient_ids:
        try:
            created.append(await notify(db, recipient_id, type, title, message, sender_id, metadata))
        except SQLAlchemyError as e:
            db.rollback()
            notify_logger.error(
                "Could not store notification",
                error=e,
                recipient_id=recipient_id,
                type=type,
            )
    return created


def moderator_ids(db: Session, exclude: Optional[int] = None) -> List[int]:
    query = db.query(User.id).filter(User.role == Role.ADMIN.value, User.is_active.is_(True))
    if exclude is not None:
        query = query.filter(User.id != exclude)
    return [user_id for (user_id,) in query.all()]


def audience_ids(db: Session, target_audience: str) -> List[int]:
    """Active users in an announcement audience ("all", "users", "members", "admins")."""
    if target_audience not in Announcement.AUDIENCES:
        raise ValidationFailed(f"Unknown audience '{target_audience}'")

    query = db.query(User.id).filter(User.is_active.is_(True))
    role = Announcement.AUDIENCES[target_audience]
    if role:
        query = query.filter(User.role == role)
    return [user_id for (user_id,) in query.all()]


async def notify_moderators(
    db: Session,
    type: str,
    title: str,
    message: str,
    sender_id: Optional[int] = None,
    metadata: Optional[Dict] = None,
) -> List[Notification]:
    """Notify every moderator except the sender."""
    return await notify_users(
        db, moderator_ids(db, exclude=sender_id), type, title, message, sender_id, metadata
    )


def delete_post_notifications(db: Session, post_id: int, type: Optional[str] = None) -> int:
    """Remove notifications about a post, optionally of one type. Caller commits."""
    query = db.query(Notification).filter(Notification.post_id == post_id)
    if type:
        query = query.filter(Notification.type == type)
    return query.delete(synchronize_session=False)


def delete_announcement_notifications(db: Session, announcement_id: int) -> int:
    """Remove notifications about an announcement. Caller commits."""
    return (
        db.query(Notification)
        .filter(Notification.announcement_id == announcement_id)
        .delete(synchronize_session=False)
    )


def delete_comment_notifications(db: Session, comment_ids: Iterable[int]) -> int:
    """Remove notifications about the given comments. Caller commits."""
    comment_ids = list(comment_ids)
    if not comment_ids:
        return 0
    return (
        db.query(Notification)
        .filter(Notification.comment_id.in_(comment_ids))
        .delete(synchronize_session=False)
    )
