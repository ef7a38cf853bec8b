"""
User model holding identity and role.
"""
import enum

from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from ..database import Base

DEFAULT_PROFILE_IMAGE = (
    "https://cdn.pixabay.com/photo/2015/10/05/22/37/blank-profile-picture-973460_960_720.png"
)


class Role(str, enum.Enum):
    USER = "USER"
    MEMBER = "MEMBER"
    ADMIN = "ADMIN"  # moderator


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(20), default=Role.USER.value, nullable=False, index=True)
    profile_image = Column(String(1000), default=DEFAULT_PROFILE_IMAGE)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    posts = relationship("Post", back_populates="author", cascade="all, delete-orphan")

    @property
    def is_moderator(self) -> bool:
        return self.role == Role.ADMIN.value
