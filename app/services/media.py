"""
Storage identifier extraction for stored media references.

Entities keep an image URL and, usually, the provider's public id next to it.
Older rows only have the URL, so the public id is recovered from the path:

    https://res.cloudinary.com/demo/image/upload/v1234567890/posts/cover.jpg
    -> posts/cover
"""
import re
from typing import Iterable, Optional
from urllib.parse import urlparse

from ..config import get_settings
from ..logging_config import storage_logger

# /upload/ then an optional version segment, then the id with its extension dropped
UPLOAD_PATH = re.compile(r"/upload/(?:v\d+/)?(?P<public_id>.+?)(?:\.\w+)?$")


def extract_public_id(
    url: Optional[str],
    domain_marker: Optional[str] = None,
    placeholder_markers: Optional[Iterable[str]] = None,
) -> Optional[str]:
    """
    Derive the storage public id from a media URL.

    Returns None for empty values, placeholder images, URLs hosted outside the
    storage provider and anything that does not parse.
    """
    if not url or not isinstance(url, str):
        return None

    settings = get_settings()
    domain_marker = domain_marker if domain_marker is not None else settings.storage_domain_marker
    if placeholder_markers is None:
        placeholder_markers = settings.placeholder_markers

    if any(marker in url for marker in placeholder_markers):
        return None
    if domain_marker and domain_marker not in url:
        return None

    try:
        path = urlparse(url).path
    except ValueError as e:
        storage_logger.warning("Could not parse media URL", url=url, error_message=str(e))
        return None

    match = UPLOAD_PATH.search(path)
    if not match:
        storage_logger.warning("Media URL has no upload path", url=url)
        return None
    return match.group("public_id")


def resolve_public_id(public_id: Optional[str], url: Optional[str]) -> Optional[str]:
    """Prefer an explicitly stored public id, falling back to the URL."""
    if public_id:
        return public_id
    return extract_public_id(url)
