"""
Media usage collection.

One collector per entity type that can hold an image reference. Each returns
the set of public ids that entity type currently uses; `collect_used_media`
unions them. Nothing here writes.
"""
from typing import Callable, Iterable, Optional, Set, Tuple

from sqlalchemy.orm import Session

from ..models import AboutUs, Alumni, Announcement, GalleryEvent, Post, TeamMember, User
from .media import extract_public_id, resolve_public_id


def _ids(pairs: Iterable[Tuple[Optional[str], Optional[str]]]) -> Set[str]:
    """Resolve (public_id, url) pairs, dropping the ones with no identifier."""
    found = set()
    for public_id, url in pairs:
        resolved = resolve_public_id(public_id, url)
        if resolved:
            found.add(resolved)
    return found


def post_media_ids(db: Session) -> Set[str]:
    """Featured images of every post plus images proposed in pending edits."""
    pairs = []
    for post in db.query(Post).all():
        pairs.append((post.featured_image_public_id, post.featured_image))
        if post.pending_edit:
            pairs.append((
                post.pending_edit.get("featured_image_public_id"),
                post.pending_edit.get("featured_image"),
            ))
    return _ids(pairs)


def user_media_ids(db: Session) -> Set[str]:
    # Profile images carry no separate public id
    found = set()
    for (profile_image,) in db.query(User.profile_image).all():
        public_id = extract_public_id(profile_image)
        if public_id:
            found.add(public_id)
    return found


def announcement_media_ids(db: Session) -> Set[str]:
    return _ids(db.query(Announcement.image_public_id, Announcement.image).all())


def gallery_media_ids(db: Session) -> Set[str]:
    pairs = []
    for (images,) in db.query(GalleryEvent.images).all():
        for image in images or []:
            pairs.append((image.get("public_id"), image.get("url")))
    return _ids(pairs)


def alumni_media_ids(db: Session) -> Set[str]:
    return _ids(db.query(Alumni.photo_public_id, Alumni.photo).all())


def team_media_ids(db: Session) -> Set[str]:
    return _ids(db.query(TeamMember.photo_public_id, TeamMember.photo).all())


def about_us_media_ids(db: Session) -> Set[str]:
    return _ids(db.query(AboutUs.image_public_id, AboutUs.image).all())


COLLECTORS: Tuple[Callable[[Session], Set[str]], ...] = (
    post_media_ids,
    user_media_ids,
    announcement_media_ids,
    gallery_media_ids,
    alumni_media_ids,
    team_media_ids,
    about_us_media_ids,
)


def collect_used_media(db: Session) -> Set[str]:
    """Every public id referenced anywhere in the database."""
    used: Set[str] = set()
    for collector in COLLECTORS:
        used |= collector(db)
    return used
