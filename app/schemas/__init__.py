from .posts import PostCreate, PostUpdate, ReviewDecision
from .comments import CommentCreate, CommentUpdate
from .announcements import AnnouncementCreate
from .cleanup import CleanupRequest

__all__ = [
    "PostCreate", "PostUpdate", "ReviewDecision",
    "CommentCreate", "CommentUpdate",
    "AnnouncementCreate",
    "CleanupRequest",
]
