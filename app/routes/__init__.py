from .posts import router as posts_router
from .comments import router as comments_router
from .notifications import router as notifications_router
from .announcements import router as announcements_router
from .cleanup import router as cleanup_router
from .events import router as events_router

__all__ = [
    "posts_router",
    "comments_router",
    "notifications_router",
    "announcements_router",
    "cleanup_router",
    "events_router",
]
