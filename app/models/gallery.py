"""
Gallery models: events, alumni, team members and the about-us section.

These entities are managed elsewhere; the orphan cleanup only reads their
image references.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from datetime import datetime, timezone
from ..database import Base


class GalleryEvent(Base):
    __tablename__ = "gallery_events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    images = Column(JSON, default=list)  # [{"url": ..., "public_id": ...}]
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


class Alumni(Base):
    __tablename__ = "alumni"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    photo = Column(String(1000), nullable=True)
    photo_public_id = Column(String(500), nullable=True)
    passout_year = Column(Integer, nullable=True)


class TeamMember(Base):
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    position = Column(String(100), nullable=True)
    photo = Column(String(1000), nullable=True)
    photo_public_id = Column(String(500), nullable=True)


class AboutUs(Base):
    __tablename__ = "about_us"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), default="About Us")
    description = Column(Text, nullable=False)
    image = Column(String(1000), nullable=True)
    image_public_id = Column(String(500), nullable=True)
