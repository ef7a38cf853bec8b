"""
Comment model. Comments are removed together with their post.
"""
from sqlalchemy import Column, Integer, DateTime, Text, JSON, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from ..database import Base

CONTENT_MAX_LENGTH = 1000


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    parent_id = Column(Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True)
    content = Column(Text, nullable=False)
    likes = Column(JSON, default=list)  # user ids
    is_edited = Column(Boolean, default=False)
    edit_history = Column(JSON, default=list)  # [{edited_at, previous_content}]
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    post = relationship("Post", back_populates="comments")
    author = relationship("User")

    def record_edit(self, new_content: str):
        """Keep the previous text and swap in the new one."""
        self.edit_history = list(self.edit_history or []) + [{
            "edited_at": datetime.now(timezone.utc).isoformat(),
            "previous_content": self.content,
        }]
        self.content = new_content
        self.is_edited = True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "post_id": self.post_id,
            "parent_id": self.parent_id,
            "author_id": self.author_id,
            "author": self.author.username if self.author else None,
            "content": self.content,
            "likes": list(self.likes or []),
            "is_edited": bool(self.is_edited),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
