"""
Notification model for per-recipient event records.
"""
import enum

from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Boolean, ForeignKey
from datetime import datetime, timezone
from ..database import Base


class NotificationType(str, enum.Enum):
    POST_APPROVED = "post_approved"
    POST_REJECTED = "post_rejected"
    POST_PENDING = "post_pending"
    POST_PUBLISHED = "post_published"
    POST_LIKED = "post_liked"
    POST_EDIT_REQUEST = "post_edit_request"
    POST_EDIT_APPROVED = "post_edit_approved"
    POST_EDIT_REJECTED = "post_edit_rejected"
    COMMENT_ADDED = "comment_added"
    COMMENT_LIKED = "comment_liked"
    COMMENT_REPLIED = "comment_replied"
    ANNOUNCEMENT_CREATED = "announcement_created"
    ROLE_CHANGED = "role_changed"
    WELCOME = "welcome"
    SYSTEM = "system"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    type = Column(String(50), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    # Entity references are columns so cascades can filter on them
    post_id = Column(Integer, nullable=True, index=True)
    announcement_id = Column(Integer, nullable=True, index=True)
    comment_id = Column(Integer, nullable=True)
    extra = Column(JSON, default=dict)  # rejection_reason, new_role, ...
    is_read = Column(Boolean, default=False, index=True)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), index=True)

    REFERENCE_KEYS = ("post_id", "announcement_id", "comment_id")

    @property
    def metadata_bag(self) -> dict:
        bag = {key: getattr(self, key) for key in self.REFERENCE_KEYS if getattr(self, key) is not None}
        bag.update(self.extra or {})
        return bag

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "sender_id": self.sender_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "metadata": self.metadata_bag,
            "is_read": bool(self.is_read),
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
