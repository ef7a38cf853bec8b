"""
Posts routes: reading, authoring and moderating blog posts.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Optional

from ..auth import get_required_user, require_moderator
from ..database import get_db
from ..models.post import Post, PostStatus
from ..models.user import User
from ..responses import deleted, paginated
from ..schemas.posts import PostCreate, PostUpdate, ReviewDecision
from ..services.errors import Forbidden, NotFound
from ..services.post_workflow import PostWorkflow
from ..services.storage import StorageProvider, get_storage

router = APIRouter(prefix="/api/posts", tags=["posts"])


def get_workflow(
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> PostWorkflow:
    return PostWorkflow(db, storage)


# ============================================================
# READS
# ============================================================

@router.get("")
def list_published_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Published posts, newest first, optionally matching a search term."""
    query = db.query(Post).filter(Post.status == PostStatus.PUBLISHED.value)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Post.title.ilike(pattern), Post.content.ilike(pattern)))

    total = query.count()
    posts = (
        query.order_by(Post.published_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return paginated([p.to_dict() for p in posts], total, page, limit)


@router.get("/mine")
def list_my_posts(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """The current user's posts, optionally filtered by status."""
    query = db.query(Post).filter(Post.author_id == current_user.id)
    if status and status != "all":
        query = query.filter(Post.status == status)

    total = query.count()
    posts = (
        query.order_by(Post.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return paginated([p.to_dict() for p in posts], total, page, limit)


@router.get("/pending")
def list_pending_posts(
    db: Session = Depends(get_db),
    moderator: User = Depends(require_moderator),
):
    """Moderation queue of posts awaiting approval."""
    posts = (
        db.query(Post)
        .filter(Post.status == PostStatus.PENDING.value)
        .order_by(Post.created_at.desc())
        .all()
    )
    return [p.to_dict() for p in posts]


@router.get("/pending-edits")
def list_pending_edit_requests(
    db: Session = Depends(get_db),
    moderator: User = Depends(require_moderator),
):
    """Published posts with an edit request, most recent request first."""
    posts = (
        db.query(Post)
        .filter(Post.status == PostStatus.PUBLISHED.value, Post.pending_edit.isnot(None))
        .all()
    )
    posts.sort(key=lambda p: p.pending_edit.get("submitted_at") or "", reverse=True)
    return [p.to_dict() for p in posts]


@router.get("/{post_id}/edit")
def get_post_for_edit(
    post_id: int,
    workflow: PostWorkflow = Depends(get_workflow),
    current_user: User = Depends(get_required_user),
):
    """Any post, for its author or a moderator."""
    post = workflow.get_post(post_id)
    if post.author_id != current_user.id and not current_user.is_moderator:
        raise Forbidden("Not authorized to view this post")
    return post.to_dict()


@router.get("/{post_id}")
def get_published_post(post_id: int, db: Session = Depends(get_db)):
    """A single published post. Counts a view."""
    post = db.query(Post).filter(
        Post.id == post_id,
        Post.status == PostStatus.PUBLISHED.value,
    ).first()
    if not post:
        raise NotFound("Post")

    post.views = (post.views or 0) + 1
    db.commit()
    db.refresh(post)
    return post.to_dict()


# ============================================================
# AUTHORING
# ============================================================

@router.post("", status_code=201)
async def create_post(
    post_data: PostCreate,
    workflow: PostWorkflow = Depends(get_workflow),
    current_user: User = Depends(get_required_user),
):
    """Create a post. Non-moderators asking to publish land in pending."""
    post = await workflow.create(current_user, post_data.model_dump())
    return post.to_dict()


@router.patch("/{post_id}")
async def update_post(
    post_id: int,
    post_update: PostUpdate,
    workflow: PostWorkflow = Depends(get_workflow),
    current_user: User = Depends(get_required_user),
):
    """Edit a post following the rules for its current status."""
    post = await workflow.update(current_user, post_id, post_update.model_dump(exclude_unset=True))
    return post.to_dict()


@router.delete("/{post_id}")
async def delete_post(
    post_id: int,
    workflow: PostWorkflow = Depends(get_workflow),
    current_user: User = Depends(get_required_user),
):
    """Delete a post with its images, comments and notifications."""
    await workflow.delete(current_user, post_id)
    return deleted("Post deleted")


@router.post("/{post_id}/like")
async def like_post(
    post_id: int,
    workflow: PostWorkflow = Depends(get_workflow),
    current_user: User = Depends(get_required_user),
):
    """Toggle the current user's like."""
    post, liked = await workflow.toggle_like(current_user, post_id)
    return {"liked": liked, "likes": len(post.likes or []), "post": post.to_dict()}


# ============================================================
# MODERATION
# ============================================================

@router.post("/{post_id}/approve")
async def approve_post(
    post_id: int,
    workflow: PostWorkflow = Depends(get_workflow),
    moderator: User = Depends(require_moderator),
):
    post = await workflow.approve(moderator, post_id)
    return post.to_dict()


@router.post("/{post_id}/reject")
async def reject_post(
    post_id: int,
    decision: ReviewDecision,
    workflow: PostWorkflow = Depends(get_workflow),
    moderator: User = Depends(require_moderator),
):
    post = await workflow.reject(moderator, post_id, decision.reason)
    return post.to_dict()


@router.post("/{post_id}/approve-edit")
async def approve_edit_request(
    post_id: int,
    workflow: PostWorkflow = Depends(get_workflow),
    moderator: User = Depends(require_moderator),
):
    post = await workflow.approve_edit(moderator, post_id)
    return post.to_dict()


@router.post("/{post_id}/reject-edit")
async def reject_edit_request(
    post_id: int,
    decision: ReviewDecision,
    workflow: PostWorkflow = Depends(get_workflow),
    moderator: User = Depends(require_moderator),
):
    post = await workflow.reject_edit(moderator, post_id, decision.reason)
    return post.to_dict()
