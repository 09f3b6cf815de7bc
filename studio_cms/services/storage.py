"""
Storage Gateway for content images.
Cloudinary is the object store; the rest of the application only sees the
put/delete/download contract defined by StorageGateway.
"""
import cloudinary
import cloudinary.uploader
import cloudinary.utils
from cloudinary.exceptions import Error as CloudinaryError
import httpx
import logging
import asyncio
import re
import time
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol

from studio_cms.config import settings
from studio_cms.exceptions import NotFoundError, StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredObject:
    """Stable reference to an object in storage."""
    key: str
    url: str


class StorageGateway(Protocol):
    """
    Object storage contract.

    put() returns a URL that resolves immediately. delete() of a key that no
    longer exists succeeds, so retries are safe.
    """

    async def put(self, data: bytes, content_type: str, key: Optional[str] = None) -> StoredObject:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def download(self, key: str) -> AsyncIterator[bytes]:
        ...


def generate_unique_key(folder: str, filename: str) -> str:
    """
    Build a storage key of the form "<folder>/<ms timestamp>-<sanitized name>".
    """
    timestamp = int(time.time() * 1000)
    sanitized = re.sub(r"[^a-zA-Z0-9.-]", "_", filename or "upload")
    return f"{folder}/{timestamp}-{sanitized}"


def mobile_key_for(key: str) -> str:
    """Key of the mobile-width variant stored next to an uploaded image."""
    return f"{key}-mobile"


def ensure_webp_extension(filename: str) -> str:
    """Replace the file extension with .webp (uploads are stored as WebP)."""
    base = filename.rsplit(".", 1)[0] if "." in filename else filename
    return f"{base or 'upload'}.webp"


class CloudinaryStorageGateway:
    """StorageGateway backed by Cloudinary."""

    def __init__(self, max_retries: int = 3, download_timeout: float = 30.0):
        self.max_retries = max_retries
        self.download_timeout = download_timeout
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            secure=True  # Always use HTTPS for secure URLs
        )

    @staticmethod
    def _public_id(key: str) -> str:
        # Cloudinary public ids carry no file extension
        return key.rsplit(".", 1)[0] if key.endswith(".webp") else key

    async def put(self, data: bytes, content_type: str, key: Optional[str] = None) -> StoredObject:
        """
        Upload bytes with retry logic for transient Cloudinary failures.

        Raises:
            StorageError: If upload fails after all retries
        """
        public_id = self._public_id(key) if key else None

        for attempt in range(self.max_retries):
            try:
                result = await asyncio.to_thread(
                    cloudinary.uploader.upload,
                    data,
                    public_id=public_id,
                    resource_type="image",
                    overwrite=False,
                )
                logger.info(f"Successfully uploaded image: {result['public_id']} ({content_type})")
                return StoredObject(key=result["public_id"], url=result["secure_url"])

            except CloudinaryError as e:
                logger.warning(f"Cloudinary upload error (attempt {attempt + 1}/{self.max_retries}): {str(e)}")
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2 ** attempt)  # 1s, 2s, 4s backoff
                    continue
                logger.error(f"Cloudinary upload failed after {self.max_retries} attempts: {str(e)}")
                raise StorageError(f"Upload failed: {str(e)}")

    async def delete(self, key: str) -> None:
        """
        Delete an object, invalidating CDN caches.
        A key that does not exist counts as deleted.

        Raises:
            StorageError: If deletion fails after all retries
        """
        public_id = self._public_id(key)

        for attempt in range(self.max_retries):
            try:
                result = await asyncio.to_thread(
                    cloudinary.uploader.destroy,
                    public_id,
                    invalidate=True,
                    resource_type="image",
                )
                outcome = result.get("result")
                if outcome in ("ok", "not found"):
                    logger.info(f"Deleted image from Cloudinary: {public_id} (result: {outcome})")
                    return
                raise StorageError(f"Unexpected delete result for {public_id}: {result}")

            except CloudinaryError as e:
                logger.warning(f"Cloudinary delete error (attempt {attempt + 1}/{self.max_retries}) for {public_id}: {str(e)}")
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2 ** attempt)
                    continue
                logger.error(f"Cloudinary delete failed after {self.max_retries} attempts for {public_id}: {str(e)}")
                raise StorageError(f"Delete failed: {str(e)}")

    def url_for(self, key: str) -> str:
        url, _ = cloudinary.utils.cloudinary_url(self._public_id(key), secure=True, format="webp")
        return url

    async def download(self, key: str) -> AsyncIterator[bytes]:
        """
        Open a byte stream of the stored object.
        The response status is checked before the stream is handed out.

        Raises:
            NotFoundError: If the object does not exist
            StorageError: If the delivery URL cannot be fetched
        """
        client = httpx.AsyncClient(timeout=self.download_timeout)
        try:
            response = await client.send(client.build_request("GET", self.url_for(key)), stream=True)
        except httpx.HTTPError as e:
            await client.aclose()
            raise StorageError(f"Download failed: {str(e)}")

        if response.status_code == 404:
            await response.aclose()
            await client.aclose()
            raise NotFoundError(f"Stored object {key} does not exist", error="Image not found")
        if response.is_error:
            await response.aclose()
            await client.aclose()
            raise StorageError(f"Download failed with status {response.status_code}")

        async def body():
            try:
                async for chunk in response.aiter_bytes():
                    yield chunk
            finally:
                await response.aclose()
                await client.aclose()

        return body()

    def is_configured(self) -> bool:
        """
        Validate that Cloudinary is properly configured.
        """
        missing = [
            name for name in ("CLOUDINARY_CLOUD_NAME", "CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET")
            if not getattr(settings, name)
        ]
        for name in missing:
            logger.warning(f"{name} not configured")
        return not missing


_gateway: Optional[CloudinaryStorageGateway] = None


def get_storage_gateway() -> StorageGateway:
    """FastAPI dependency providing the process-wide storage gateway."""
    global _gateway
    if _gateway is None:
        _gateway = CloudinaryStorageGateway()
    return _gateway
