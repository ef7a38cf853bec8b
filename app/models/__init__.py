from .user import User, Role
from .post import Post, PostStatus
from .comment import Comment
from .notification import Notification, NotificationType
from .announcement import Announcement
from .gallery import GalleryEvent, Alumni, TeamMember, AboutUs

__all__ = [
    "User",
    "Role",
    "Post",
    "PostStatus",
    "Comment",
    "Notification",
    "NotificationType",
    "Announcement",
    "GalleryEvent",
    "Alumni",
    "TeamMember",
    "AboutUs",
]
