"""Receipt image storage backed by Supabase Storage."""

import asyncio
import logging
from dataclasses import dataclass
from uuid import uuid4

from supabase import Client, create_client

from kasifesyen.config import Settings

logger = logging.getLogger(__name__)

TEMPORARY_CACHE_CONTROL = "3600"
PERMANENT_CACHE_CONTROL = "31536000"  # 1 year


@dataclass(frozen=True)
class StoredImage:
    """An object in the receipt bucket."""

    path: str
    url: str

    @property
    def is_temporary(self) -> bool:
        return self.path.startswith("temp/")


def temporary_path(user_id: int | str) -> str:
    return f"temp/{user_id}/{uuid4()}.jpg"


def permanent_path(user_id: int | str) -> str:
    return f"{user_id}/{uuid4()}.jpg"


class StorageService:
    """Uploads, promotes and deletes receipt images.

    The Supabase client is synchronous, so every call runs in a worker thread.
    """

    def __init__(self, client: Client, bucket: str) -> None:
        self.client = client
        self.bucket = bucket

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    async def _upload(self, path: str, image: bytes, content_type: str, cache_control: str) -> StoredImage:
        await asyncio.to_thread(
            self._bucket().upload,
            path,
            image,
            {"content-type": content_type, "cache-control": cache_control, "upsert": "false"},
        )
        url = self._bucket().get_public_url(path)
        logger.info(f"Uploaded receipt image to {self.bucket}/{path}")
        return StoredImage(path=path, url=url)

    async def upload_temporary(
        self, user_id: int | str, image: bytes, content_type: str = "image/jpeg"
    ) -> StoredImage:
        """Upload an image under the user's temporary prefix."""
        return await self._upload(temporary_path(user_id), image, content_type, TEMPORARY_CACHE_CONTROL)

    async def upload_permanent(
        self, user_id: int | str, image: bytes, content_type: str = "image/jpeg"
    ) -> StoredImage:
        """Upload an image directly under the user's permanent prefix."""
        return await self._upload(permanent_path(user_id), image, content_type, PERMANENT_CACHE_CONTROL)

    async def promote(self, stored: StoredImage, user_id: int | str) -> StoredImage:
        """Move a temporary upload to the user's permanent prefix."""
        if not stored.is_temporary:
            return stored
        destination = permanent_path(user_id)
        await asyncio.to_thread(self._bucket().move, stored.path, destination)
        url = self._bucket().get_public_url(destination)
        logger.info(f"Promoted receipt image {stored.path} -> {destination}")
        return StoredImage(path=destination, url=url)

    async def delete(self, path: str) -> None:
        """Delete an object. A missing object counts as deleted."""
        try:
            await asyncio.to_thread(self._bucket().remove, [path])
        except Exception as e:
            message = str(e)
            if "Not Found" in message or "404" in message:
                logger.info(f"Image {path} not found, may have been already deleted")
                return
            raise
        logger.info(f"Deleted receipt image {self.bucket}/{path}")


def build_storage_service(settings: Settings) -> StorageService | None:
    """Create the storage service, or None when Supabase is not configured."""
    if not settings.supabase_url or not settings.supabase_service_key:
        logger.warning("Supabase is not configured; receipt scanning is disabled")
        return None
    return StorageService(create_client(settings.supabase_url, settings.supabase_service_key), settings.receipt_bucket)
