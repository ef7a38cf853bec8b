"""
Post moderation workflow.

Posts move between draft, pending, published and rejected. Every transition
runs in the same order: check preconditions, handle images on the storage
provider, persist, then notify. Checks raise before anything is touched.
Image deletion and notifications are best-effort; their failures are logged
and the transition still completes.

Edits to a published post are held in `pending_edit` until a moderator
decides. No image is deleted while that decision is open: approving removes
the old live image, rejecting removes the proposed one. A request replaced by
a newer one loses its proposed image right away.
"""
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from sqlalchemy.orm import Session

from ..logging_config import posts_logger
from ..models import Comment, NotificationType, Post, PostStatus, Role, User
from . import notifications
from .errors import Forbidden, InvalidState, NotFound, ValidationFailed
from .media import extract_public_id
from .storage import StorageProvider, destroy_quietly

EDITABLE_FIELDS = ("title", "content", "featured_image", "featured_image_public_id")
AUTHOR_ROLES = (Role.MEMBER.value, Role.ADMIN.value)
TITLE_MAX_LENGTH = 200


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PostWorkflow:
    """Applies lifecycle transitions to posts on behalf of an acting user."""

    def __init__(self, db: Session, storage: StorageProvider):
        self.db = db
        self.storage = storage

    # ============================================================
    # HELPERS
    # ============================================================

    def get_post(self, post_id: int) -> Post:
        post = self.db.query(Post).filter(Post.id == post_id).first()
        if not post:
            raise NotFound("Post")
        return post

    @staticmethod
    def ensure_can_modify(post: Post, actor: User):
        if post.author_id != actor.id and not actor.is_moderator:
            raise Forbidden("Not authorized to modify this post")

    @staticmethod
    def ensure_moderator(actor: User):
        if not actor.is_moderator:
            raise Forbidden("Moderator role required")

    @staticmethod
    def _validate_text(values: Dict):
        if "title" in values:
            title = (values["title"] or "").strip()
            if not title:
                raise ValidationFailed("Title is required")
            if len(title) > TITLE_MAX_LENGTH:
                raise ValidationFailed(f"Title must be at most {TITLE_MAX_LENGTH} characters")
            values["title"] = title
        if "content" in values and not (values["content"] or "").strip():
            raise ValidationFailed("Content is required")

    @staticmethod
    def _normalize_media(changes: Dict) -> Dict:
        """A new image URL without a public id gets one derived from the URL."""
        changes = dict(changes)
        if "featured_image" in changes and "featured_image_public_id" not in changes:
            changes["featured_image_public_id"] = extract_public_id(changes["featured_image"])
        return changes

    @staticmethod
    def _replaced_media(post: Post, changes: Dict) -> Optional[str]:
        """The live public id that `changes` would stop referencing, if any."""
        old = post.featured_image_public_id
        if not old or "featured_image_public_id" not in changes:
            return None
        return old if changes["featured_image_public_id"] != old else None

    @staticmethod
    def _apply(post: Post, changes: Dict):
        for key in EDITABLE_FIELDS:
            if key in changes:
                setattr(post, key, changes[key])

    async def _drop_media(self, public_id: Optional[str], post: Post, reason: str):
        await destroy_quietly(self.storage, public_id, post_id=post.id, reason=reason)

    async def _safe_notify(self, coro):
        """Await a notification step, logging instead of propagating failures."""
        try:
            return await coro
        except Exception as e:
            self.db.rollback()
            posts_logger.error("Notification step failed", error=e)
            return None

    async def _notify_author(self, post: Post, actor: User, type: NotificationType,
                             title: str, message: str, **metadata):
        await self._safe_notify(notifications.notify(
            self.db,
            post.author_id,
            type.value,
            title,
            message,
            sender_id=actor.id,
            metadata={"post_id": post.id, **metadata},
        ))

    async def _notify_moderators(self, post: Post, actor: User, type: NotificationType,
                                 title: str, message: str):
        await self._safe_notify(notifications.notify_moderators(
            self.db,
            type.value,
            title,
            message,
            sender_id=actor.id,
            metadata={"post_id": post.id},
        ))

    # ============================================================
    # CREATE
    # ============================================================

    async def create(self, actor: User, data: Dict) -> Post:
        if actor.role not in AUTHOR_ROLES:
            raise Forbidden("Only members and moderators can create posts")

        values = self._normalize_media({k: v for k, v in data.items() if k in EDITABLE_FIELDS})
        values.setdefault("title", None)
        values.setdefault("content", None)
        self._validate_text(values)

        requested = data.get("status") or PostStatus.DRAFT.value
        if requested not in (PostStatus.DRAFT.value, PostStatus.PENDING.value, PostStatus.PUBLISHED.value):
            raise ValidationFailed(f"Cannot create a post with status '{requested}'")
        if requested == PostStatus.PUBLISHED.value and not actor.is_moderator:
            requested = PostStatus.PENDING.value

        post = Post(author_id=actor.id, status=requested, likes=[], edit_history=[], **values)
        if requested == PostStatus.PUBLISHED.value:
            post.published_at = _now()
        self.db.add(post)
        self.db.commit()
        self.db.refresh(post)
        posts_logger.info("Post created", post_id=post.id, status=post.status, author_id=actor.id)

        if post.status == PostStatus.PENDING.value:
            await self._notify_moderators(
                post, actor, NotificationType.POST_PENDING,
                "New Post Pending Approval",
                f'{actor.username} has submitted a post "{post.title}" for approval',
            )
        return post

    # ============================================================
    # EDIT
    # ============================================================

    async def update(self, actor: User, post_id: int, changes: Dict) -> Post:
        """Route an edit through the rules for the actor and the post's status."""
        post = self.get_post(post_id)
        self.ensure_can_modify(post, actor)

        status = changes.pop("status", None)
        changes = self._normalize_media({k: v for k, v in changes.items() if k in EDITABLE_FIELDS})
        self._validate_text(changes)

        if actor.is_moderator:
            return await self._moderator_edit(actor, post, changes, status)

        if status not in (None, post.status, PostStatus.PENDING.value):
            raise ValidationFailed("Authors can only submit posts for approval")

        if post.status == PostStatus.DRAFT.value:
            return await self._edit_draft(actor, post, changes, submit=status == PostStatus.PENDING.value)
        if post.status == PostStatus.PENDING.value:
            return await self._edit_pending(actor, post, changes)
        if post.status == PostStatus.PUBLISHED.value:
            return await self._request_edit(actor, post, changes)
        if post.status == PostStatus.REJECTED.value:
            return await self._edit_rejected(actor, post, changes, resubmit=status == PostStatus.PENDING.value)
        raise InvalidState(f"Post has unknown status '{post.status}'")

    async def _moderator_edit(self, actor: User, post: Post, changes: Dict, status: Optional[str]) -> Post:
        valid = [s.value for s in PostStatus]
        if status is not None and status not in valid:
            raise ValidationFailed(f"Status must be one of {valid}")

        await self._drop_media(self._replaced_media(post, changes), post, "moderator edit")

        discarded_snapshot = None
        if status and status != PostStatus.PUBLISHED.value and post.pending_edit:
            # A snapshot only lives on a published post
            discarded_snapshot = post.pending_edit.get("featured_image_public_id")
            post.pending_edit = None
            notifications.delete_post_notifications(
                self.db, post.id, NotificationType.POST_EDIT_REQUEST.value
            )

        self._apply(post, changes)
        if status:
            post.status = status
            if status == PostStatus.PUBLISHED.value and post.published_at is None:
                post.published_at = _now()
            if status != PostStatus.REJECTED.value:
                post.rejection_reason = None
        post.is_edited = True
        post.record_edit(actor.id, "Admin edit")
        self.db.commit()
        self.db.refresh(post)
        posts_logger.info("Post edited by moderator", post_id=post.id, status=post.status)

        if discarded_snapshot and discarded_snapshot != post.featured_image_public_id:
            await self._drop_media(discarded_snapshot, post, "pending edit discarded")
        return post

    async def _edit_draft(self, actor: User, post: Post, changes: Dict, submit: bool) -> Post:
        await self._drop_media(self._replaced_media(post, changes), post, "draft image replaced")

        self._apply(post, changes)
        if submit:
            post.status = PostStatus.PENDING.value
            post.record_edit(actor.id, "Submitted for approval")
        self.db.commit()
        self.db.refresh(post)

        if submit:
            posts_logger.info("Draft submitted", post_id=post.id)
            await self._notify_moderators(
                post, actor, NotificationType.POST_PENDING,
                "New Post Pending Approval",
                f'{actor.username} has submitted a post "{post.title}" for approval',
            )
        return post

    async def _edit_pending(self, actor: User, post: Post, changes: Dict) -> Post:
        await self._drop_media(self._replaced_media(post, changes), post, "pending image replaced")

        self._apply(post, changes)
        post.record_edit(actor.id, "Updated pending post")
        # Moderators should only see the latest submission
        notifications.delete_post_notifications(self.db, post.id, NotificationType.POST_PENDING.value)
        self.db.commit()
        self.db.refresh(post)

        await self._notify_moderators(
            post, actor, NotificationType.POST_PENDING,
            "Post Updated for Approval",
            f'{actor.username} has updated post "{post.title}" for approval',
        )
        return post

    async def _request_edit(self, actor: User, post: Post, changes: Dict) -> Post:
        """Hold an edit to a published post for review. The live post is not touched."""
        current = {key: getattr(post, key) for key in EDITABLE_FIELDS}
        previous = post.pending_edit or {}
        post.pending_edit = {
            **current,
            **changes,
            "submitted_at": _now().isoformat(),
            "submitted_by": actor.id,
        }
        notifications.delete_post_notifications(self.db, post.id, NotificationType.POST_EDIT_REQUEST.value)
        self.db.commit()
        self.db.refresh(post)
        posts_logger.info("Edit requested", post_id=post.id, replaces_request=bool(previous))

        # The replaced proposal is final; drop its image unless still referenced
        superseded = previous.get("featured_image_public_id")
        if superseded not in (post.featured_image_public_id, post.pending_edit.get("featured_image_public_id")):
            await self._drop_media(superseded, post, "edit request replaced")

        await self._notify_moderators(
            post, actor, NotificationType.POST_EDIT_REQUEST,
            "Edit Request for Published Post",
            f'{actor.username} has requested to edit published post "{post.title}"',
        )
        return post

    async def _edit_rejected(self, actor: User, post: Post, changes: Dict, resubmit: bool) -> Post:
        await self._drop_media(self._replaced_media(post, changes), post, "rejected image replaced")

        self._apply(post, changes)
        if resubmit:
            post.status = PostStatus.PENDING.value
            post.rejection_reason = None
            post.record_edit(actor.id, "Resubmitted after rejection")
        self.db.commit()
        self.db.refresh(post)

        if resubmit:
            posts_logger.info("Post resubmitted", post_id=post.id)
            await self._notify_moderators(
                post, actor, NotificationType.POST_PENDING,
                "Post Resubmitted After Rejection",
                f'{actor.username} has resubmitted post "{post.title}" for approval',
            )
        return post

    # ============================================================
    # REVIEW
    # ============================================================

    async def approve(self, actor: User, post_id: int) -> Post:
        self.ensure_moderator(actor)
        post = self.get_post(post_id)
        if post.status != PostStatus.PENDING.value:
            raise InvalidState("Post is not pending approval")

        post.status = PostStatus.PUBLISHED.value
        post.published_at = _now()
        self.db.commit()
        self.db.refresh(post)
        posts_logger.info("Post approved", post_id=post.id, moderator_id=actor.id)

        await self._notify_author(
            post, actor, NotificationType.POST_APPROVED,
            "Post Approved",
            f'Your post "{post.title}" has been approved and published',
        )
        return post

    async def reject(self, actor: User, post_id: int, reason: Optional[str]) -> Post:
        self.ensure_moderator(actor)
        post = self.get_post(post_id)
        if post.status != PostStatus.PENDING.value:
            raise InvalidState("Post is not pending approval")
        reason = (reason or "").strip()
        if not reason:
            raise ValidationFailed("A rejection reason is required")

        # A rejected post is never shown, so its image goes now
        await self._drop_media(post.featured_image_public_id, post, "post rejected")

        post.featured_image = None
        post.featured_image_public_id = None
        post.status = PostStatus.REJECTED.value
        post.rejection_reason = reason
        self.db.commit()
        self.db.refresh(post)
        posts_logger.info("Post rejected", post_id=post.id, moderator_id=actor.id)

        await self._notify_author(
            post, actor, NotificationType.POST_REJECTED,
            "Post Rejected",
            f'Your post "{post.title}" has been rejected',
            rejection_reason=reason,
        )
        return post

    def _ensure_pending_edit(self, post: Post):
        if post.status != PostStatus.PUBLISHED.value or not (post.pending_edit or {}).get("submitted_at"):
            raise InvalidState("No pending edit request for this post")

    async def approve_edit(self, actor: User, post_id: int) -> Post:
        self.ensure_moderator(actor)
        post = self.get_post(post_id)
        self._ensure_pending_edit(post)
        snapshot = dict(post.pending_edit)

        # First safe point to remove the image the edit replaces
        await self._drop_media(self._replaced_media(post, snapshot), post, "edit approved")

        self._apply(post, snapshot)
        post.is_edited = True
        post.record_edit(snapshot.get("submitted_by") or post.author_id, "Edit approved by moderator")
        post.pending_edit = None
        notifications.delete_post_notifications(self.db, post.id, NotificationType.POST_EDIT_REQUEST.value)
        self.db.commit()
        self.db.refresh(post)
        posts_logger.info("Edit approved", post_id=post.id, moderator_id=actor.id)

        await self._notify_author(
            post, actor, NotificationType.POST_EDIT_APPROVED,
            "Edit Request Approved",
            f'Your edit request for post "{post.title}" has been approved',
        )
        return post

    async def reject_edit(self, actor: User, post_id: int, reason: Optional[str] = None) -> Post:
        self.ensure_moderator(actor)
        post = self.get_post(post_id)
        self._ensure_pending_edit(post)

        proposed = post.pending_edit.get("featured_image_public_id")
        if proposed != post.featured_image_public_id:
            await self._drop_media(proposed, post, "edit rejected")

        post.pending_edit = None
        notifications.delete_post_notifications(self.db, post.id, NotificationType.POST_EDIT_REQUEST.value)
        self.db.commit()
        self.db.refresh(post)
        posts_logger.info("Edit rejected", post_id=post.id, moderator_id=actor.id)

        metadata = {"rejection_reason": reason} if reason else {}
        await self._notify_author(
            post, actor, NotificationType.POST_EDIT_REJECTED,
            "Edit Request Rejected",
            f'Your edit request for post "{post.title}" has been rejected',
            **metadata,
        )
        return post

    # ============================================================
    # DELETE / LIKE
    # ============================================================

    async def delete(self, actor: User, post_id: int):
        post = self.get_post(post_id)
        self.ensure_can_modify(post, actor)

        live = post.featured_image_public_id
        proposed = (post.pending_edit or {}).get("featured_image_public_id")
        await self._drop_media(live, post, "post deleted")
        if proposed and proposed != live:
            await self._drop_media(proposed, post, "post deleted")

        self.db.query(Comment).filter(Comment.post_id == post.id).delete(synchronize_session=False)
        removed = notifications.delete_post_notifications(self.db, post.id)
        self.db.delete(post)
        self.db.commit()
        posts_logger.info("Post deleted", post_id=post_id, actor_id=actor.id, notifications_removed=removed)

    async def toggle_like(self, actor: User, post_id: int) -> Tuple[Post, bool]:
        post = self.get_post(post_id)
        likes = list(post.likes or [])
        liked = actor.id not in likes
        post.likes = likes + [actor.id] if liked else [uid for uid in likes if uid != actor.id]
        self.db.commit()
        self.db.refresh(post)

        if liked and post.author_id != actor.id:
            await self._notify_author(
                post, actor, NotificationType.POST_LIKED,
                "Post Liked",
                f'{actor.username} liked your post "{post.title}"',
            )
        return post, liked
