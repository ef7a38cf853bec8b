"""
Object-storage provider client.

Talks to the Cloudinary admin API through the official SDK: a paginated
listing of uploaded images and a destroy call. SDK calls block, so they run in
a worker thread and every call is bounded by the configured timeout.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import AsyncIterator, List, Optional

import cloudinary.api
import cloudinary.exceptions
import cloudinary.uploader

from ..config import Settings, get_settings
from ..logging_config import storage_logger
from .errors import StorageError

# destroy() results that leave the object gone
DELETED_RESULTS = ("ok", "not found")


@dataclass
class StoredObject:
    public_id: str
    created_at: Optional[datetime] = None

    def __post_init__(self):
        # Upload times without an offset are UTC
        if self.created_at is not None and self.created_at.tzinfo is None:
            self.created_at = self.created_at.replace(tzinfo=timezone.utc)


@dataclass
class ResourcePage:
    resources: List[StoredObject] = field(default_factory=list)
    next_cursor: Optional[str] = None


class StorageProvider:
    """Interface the cleanup job and the post workflow depend on."""

    page_size: int = 500

    async def list_page(self, cursor: Optional[str] = None) -> ResourcePage:
        raise NotImplementedError

    async def destroy(self, public_id: str) -> str:
        raise NotImplementedError


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        storage_logger.warning("Unparseable upload timestamp", value=value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class CloudinaryStorage(StorageProvider):
    """Cloudinary client with per-instance credentials."""

    def __init__(self, settings: Settings):
        self.timeout = settings.storage_timeout_seconds
        self.page_size = settings.storage_page_size
        self.configured = settings.storage_configured
        self.options = {
            "cloud_name": settings.storage_cloud_name,
            "api_key": settings.storage_api_key,
            "api_secret": settings.storage_api_secret,
            "upload_prefix": settings.storage_api_prefix,
            "timeout": self.timeout,
        }

    def _list_sync(self, cursor: Optional[str]) -> dict:
        params = {"type": "upload", "resource_type": "image", "max_results": self.page_size}
        if cursor:
            params["next_cursor"] = cursor
        return cloudinary.api.resources(**params, **self.options)

    def _destroy_sync(self, public_id: str) -> dict:
        return cloudinary.uploader.destroy(public_id, resource_type="image", **self.options)

    async def _call(self, func, *args):
        if not self.configured:
            raise StorageError("Storage provider is not configured")
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise StorageError(f"Storage provider timed out after {self.timeout}s")
        except cloudinary.exceptions.Error as e:
            raise StorageError(f"Storage provider request failed: {e}") from e

    async def list_page(self, cursor: Optional[str] = None) -> ResourcePage:
        body = await self._call(self._list_sync, cursor)
        return ResourcePage(
            resources=[
                StoredObject(public_id=r["public_id"], created_at=parse_timestamp(r.get("created_at")))
                for r in body.get("resources", [])
            ],
            next_cursor=body.get("next_cursor") or None,
        )

    async def destroy(self, public_id: str) -> str:
        body = await self._call(self._destroy_sync, public_id)
        return body.get("result", "error")


async def iter_pages(provider: StorageProvider) -> AsyncIterator[ResourcePage]:
    """Walk the provider's index page by page until no cursor is returned."""
    cursor = None
    while True:
        page = await provider.list_page(cursor)
        yield page
        cursor = page.next_cursor
        if not cursor:
            break


async def destroy_quietly(provider: StorageProvider, public_id: Optional[str], **context) -> bool:
    """
    Delete one object, logging instead of raising on failure.

    Used by workflow steps whose primary mutation must succeed regardless of
    what happens to the image; the orphan cleanup catches anything missed.
    """
    if not public_id:
        return False
    try:
        result = await provider.destroy(public_id)
    except Exception as e:
        storage_logger.error("Media delete failed", error=e, public_id=public_id, **context)
        return False

    if result not in DELETED_RESULTS:
        storage_logger.warning("Media delete refused", public_id=public_id, result=result, **context)
        return False

    storage_logger.info("Media deleted", public_id=public_id, **context)
    return True


@lru_cache()
def get_storage() -> StorageProvider:
    """Process-wide storage client; overridden in tests."""
    return CloudinaryStorage(get_settings())
