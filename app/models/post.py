"""
Post model for moderated blog content.
"""
import enum

from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from ..database import Base


class PostStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PUBLISHED = "published"
    REJECTED = "rejected"


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    featured_image = Column(String(1000), nullable=True)
    featured_image_public_id = Column(String(500), nullable=True)
    status = Column(String(20), default=PostStatus.DRAFT.value, nullable=False, index=True)
    rejection_reason = Column(Text, nullable=True)
    published_at = Column(DateTime, nullable=True)
    views = Column(Integer, default=0)
    likes = Column(JSON, default=list)  # user ids
    is_edited = Column(Boolean, default=False)
    edit_history = Column(JSON, default=list)  # [{edited_at, edited_by, reason}]
    # {title, content, featured_image, featured_image_public_id, submitted_at, submitted_by}
    pending_edit = Column(JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    author = relationship("User", back_populates="posts")
    comments = relationship("Comment", back_populates="post", cascade="all, delete-orphan")

    def record_edit(self, editor_id: int, reason: str):
        """Append an edit-history entry. JSON columns must be reassigned to be flagged dirty."""
        self.edit_history = list(self.edit_history or []) + [{
            "edited_at": datetime.now(timezone.utc).isoformat(),
            "edited_by": editor_id,
            "reason": reason,
        }]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "author_id": self.author_id,
            "author": self.author.username if self.author else None,
            "featured_image": self.featured_image,
            "featured_image_public_id": self.featured_image_public_id,
            "status": self.status,
            "rejection_reason": self.rejection_reason,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "views": self.views or 0,
            "likes": list(self.likes or []),
            "is_edited": bool(self.is_edited),
            "edit_history": list(self.edit_history or []),
            "pending_edit": self.pending_edit,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
