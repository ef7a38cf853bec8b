"""
Comments and replies on published posts.

Replying notifies the parent comment's author, a top-level comment notifies
the post's author, and liking notifies the comment's author. Nobody is
notified about their own activity. Notifications are best-effort, as in the
post workflow.
"""
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..logging_config import posts_logger
from ..models import Comment, NotificationType, Post, PostStatus, User
from ..models.comment import CONTENT_MAX_LENGTH
from . import notifications
from .errors import Forbidden, InvalidState, NotFound, ValidationFailed


def _clean_content(content: Optional[str]) -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationFailed("Content cannot be empty")
    if len(content) > CONTENT_MAX_LENGTH:
        raise ValidationFailed(f"Comment must be at most {CONTENT_MAX_LENGTH} characters")
    return content


class CommentService:
    def __init__(self, db: Session):
        self.db = db

    def get_comment(self, comment_id: int) -> Comment:
        comment = self.db.query(Comment).filter(Comment.id == comment_id).first()
        if not comment:
            raise NotFound("Comment")
        return comment

    def list_for_post(self, post_id: int) -> List[Dict]:
        """Top-level comments newest first, each with its replies oldest first."""
        comments = (
            self.db.query(Comment)
            .filter(Comment.post_id == post_id)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
            .all()
        )
        replies: Dict[int, List[Dict]] = {}
        for comment in reversed(comments):
            if comment.parent_id is not None:
                replies.setdefault(comment.parent_id, []).append(comment.to_dict())
        return [
            {**comment.to_dict(), "replies": replies.get(comment.id, [])}
            for comment in comments
            if comment.parent_id is None
        ]

    async def _notify(self, recipient_id: int, actor: User, type: NotificationType,
                      title: str, message: str, comment: Comment):
        if recipient_id == actor.id:
            return
        try:
            await notifications.notify(
                self.db,
                recipient_id,
                type.value,
                title,
                message,
                sender_id=actor.id,
                metadata={"post_id": comment.post_id, "comment_id": comment.id},
            )
        except Exception as e:
            self.db.rollback()
            posts_logger.error("Comment notification failed", error=e, comment_id=comment.id)

    async def create(self, actor: User, post_id: int, content: str, parent_id: Optional[int] = None) -> Comment:
        content = _clean_content(content)
        post = self.db.query(Post).filter(Post.id == post_id).first()
        if not post:
            raise NotFound("Post")
        if post.status != PostStatus.PUBLISHED.value:
            raise InvalidState("Comments are only open on published posts")

        parent = None
        if parent_id is not None:
            parent = self.get_comment(parent_id)
            if parent.post_id != post.id:
                raise ValidationFailed("Reply does not belong to this post")

        comment = Comment(post_id=post.id, author_id=actor.id, parent_id=parent_id,
                          content=content, likes=[], edit_history=[])
        self.db.add(comment)
        self.db.commit()
        self.db.refresh(comment)
        posts_logger.info("Comment added", comment_id=comment.id, post_id=post.id, reply=parent is not None)

        if parent is not None:
            await self._notify(
                parent.author_id, actor, NotificationType.COMMENT_REPLIED,
                "New Reply", f"{actor.username} replied to your comment", comment,
            )
        else:
            await self._notify(
                post.author_id, actor, NotificationType.COMMENT_ADDED,
                "New Comment", f"{actor.username} commented on your post", comment,
            )
        return comment

    def edit(self, actor: User, comment_id: int, content: str) -> Comment:
        comment = self.get_comment(comment_id)
        if comment.author_id != actor.id and not actor.is_moderator:
            raise Forbidden("Not authorized to edit this comment")

        comment.record_edit(_clean_content(content))
        self.db.commit()
        self.db.refresh(comment)
        return comment

    async def toggle_like(self, actor: User, comment_id: int) -> Tuple[Comment, bool]:
        comment = self.get_comment(comment_id)
        likes = list(comment.likes or [])
        liked = actor.id not in likes
        comment.likes = likes + [actor.id] if liked else [uid for uid in likes if uid != actor.id]
        self.db.commit()
        self.db.refresh(comment)

        if liked:
            await self._notify(
                comment.author_id, actor, NotificationType.COMMENT_LIKED,
                "Comment Liked", f"{actor.username} liked your comment", comment,
            )
        return comment, liked

    def delete(self, actor: User, comment_id: int) -> int:
        """Delete a comment with its replies. Returns how many comments were removed."""
        comment = self.get_comment(comment_id)
        post = self.db.query(Post).filter(Post.id == comment.post_id).first()
        is_post_owner = post is not None and post.author_id == actor.id
        if comment.author_id != actor.id and not is_post_owner and not actor.is_moderator:
            raise Forbidden("Not authorized to delete this comment")

        ids = [comment.id] + [
            reply_id for (reply_id,) in
            self.db.query(Comment.id).filter(Comment.parent_id == comment.id).all()
        ]
        notifications.delete_comment_notifications(self.db, ids)
        self.db.query(Comment).filter(Comment.id.in_(ids)).delete(synchronize_session=False)
        self.db.commit()
        posts_logger.info("Comment deleted", comment_id=comment_id, removed=len(ids), actor_id=actor.id)
        return len(ids)
