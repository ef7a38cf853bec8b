"""
Announcement model.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, ForeignKey
from datetime import datetime, timezone
from ..database import Base


class Announcement(Base):
    __tablename__ = "announcements"

    # target_audience -> role filter for notification fan-out
    AUDIENCES = {"all": None, "users": "USER", "members": "MEMBER", "admins": "ADMIN"}

    id = Column(Integer, primary_key=True, index=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    image = Column(String(1000), nullable=True)
    image_public_id = Column(String(500), nullable=True)
    target_audience = Column(String(20), default="all")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "author_id": self.author_id,
            "title": self.title,
            "content": self.content,
            "image": self.image,
            "image_public_id": self.image_public_id,
            "target_audience": self.target_audience,
            "is_active": bool(self.is_active),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
