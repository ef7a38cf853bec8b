"""
Comment routes: listing, posting, replying, editing, liking and deleting.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_required_user
from ..database import get_db
from ..models.user import User
from ..responses import success
from ..schemas.comments import CommentCreate, CommentUpdate
from ..services.comments import CommentService

router = APIRouter(prefix="/api/comments", tags=["comments"])


def get_comment_service(db: Session = Depends(get_db)) -> CommentService:
    return CommentService(db)


@router.get("/post/{post_id}")
def list_post_comments(post_id: int, service: CommentService = Depends(get_comment_service)):
    """Top-level comments of a post with their replies."""
    return service.list_for_post(post_id)


@router.post("", status_code=201)
async def create_comment(
    data: CommentCreate,
    service: CommentService = Depends(get_comment_service),
    current_user: User = Depends(get_required_user),
):
    """Comment on a published post, or reply when `parent_id` is set."""
    comment = await service.create(current_user, data.post_id, data.content, data.parent_id)
    return comment.to_dict()


@router.patch("/{comment_id}")
def edit_comment(
    comment_id: int,
    data: CommentUpdate,
    service: CommentService = Depends(get_comment_service),
    current_user: User = Depends(get_required_user),
):
    return service.edit(current_user, comment_id, data.content).to_dict()


@router.post("/{comment_id}/like")
async def like_comment(
    comment_id: int,
    service: CommentService = Depends(get_comment_service),
    current_user: User = Depends(get_required_user),
):
    comment, liked = await service.toggle_like(current_user, comment_id)
    return {"liked": liked, "likes": len(comment.likes or []), "comment": comment.to_dict()}


@router.delete("/{comment_id}")
def delete_comment(
    comment_id: int,
    service: CommentService = Depends(get_comment_service),
    current_user: User = Depends(get_required_user),
):
    """Comment author, post author or a moderator may delete; replies go with it."""
    removed = service.delete(current_user, comment_id)
    return success({"deleted": removed}, "Comment deleted")
