"""
Where a content item's image comes from.

Routers resolve the request once into either an Upload (new bytes from the
admin) or a Reference (an image already in storage); the collection service
dispatches on the variant and never looks at the raw request.
"""
from dataclasses import dataclass
from typing import Optional, Union
import asyncio
import logging

from studio_cms.config import settings
from studio_cms.exceptions import ValidationError
from studio_cms.services.storage import StorageGateway, ensure_webp_extension, generate_unique_key, mobile_key_for
from studio_cms.utils.image_converter import convert_to_webp, has_image_signature, make_mobile_variant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Upload:
    data: bytes
    filename: str
    content_type: str


@dataclass(frozen=True)
class Reference:
    r2_key: str
    cdn_url: str
    filename: str
    cdn_url_mobile: str = ""


ImageSource = Union[Upload, Reference]


@dataclass(frozen=True)
class ResolvedImage:
    """Image fields to write onto a content row."""
    r2_key: str
    cdn_url: str
    cdn_url_mobile: str
    filename: str
    file_size: Optional[int] = None
    uploaded: bool = False


def validate_upload(upload: Upload) -> None:
    """
    Raises:
        ValidationError: Not an image, unknown signature, or too large
    """
    if not upload.content_type or not upload.content_type.startswith("image/"):
        raise ValidationError(f"File '{upload.filename}' is not a valid image file", error="Invalid file type")
    if not has_image_signature(upload.data):
        raise ValidationError(
            "Invalid file type. Only JPEG, PNG, WebP, and GIF images are allowed.",
            error="Invalid file type",
        )
    if len(upload.data) > settings.MAX_UPLOAD_BYTES:
        size_mb = len(upload.data) / 1024 / 1024
        max_mb = settings.MAX_UPLOAD_BYTES / 1024 / 1024
        raise ValidationError(
            f"File too large. Maximum size is {max_mb:.0f}MB. Your file is {size_mb:.2f}MB.",
            error="File too large",
        )


def validate_reference(reference: Reference) -> None:
    if not reference.r2_key or not reference.cdn_url or not reference.filename:
        raise ValidationError("r2_key, cdn_url, and filename required")


async def store_upload(upload: Upload, folder: str, storage: StorageGateway) -> ResolvedImage:
    """
    Convert an upload to WebP, derive the mobile variant and put both in storage.

    Raises:
        ValidationError: Invalid upload
        StorageError: Storage put failed
    """
    validate_upload(upload)

    content, converted = await asyncio.to_thread(convert_to_webp, upload.data)
    if not converted:
        logger.warning(f"WebP conversion failed for {upload.filename}, uploading original format")

    filename = ensure_webp_extension(upload.filename) if converted else upload.filename
    key = generate_unique_key(folder, filename)
    stored = await storage.put(content, "image/webp" if converted else upload.content_type, key=key)

    mobile_url = stored.url
    mobile_bytes = await asyncio.to_thread(make_mobile_variant, content, settings.MOBILE_IMAGE_WIDTH)
    if mobile_bytes:
        try:
            mobile = await storage.put(mobile_bytes, "image/webp", key=mobile_key_for(stored.key))
        except Exception:
            # No row will reference the main object
            try:
                await storage.delete(stored.key)
            except Exception as e:
                logger.error(f"Failed to remove orphaned upload {stored.key}: {str(e)}")
            raise
        mobile_url = mobile.url

    logger.info(f"Stored upload {upload.filename} as {stored.key}")
    return ResolvedImage(
        r2_key=stored.key,
        cdn_url=stored.url,
        cdn_url_mobile=mobile_url,
        filename=filename,
        file_size=len(content),
        uploaded=True,
    )


async def resolve_image(source: ImageSource, folder: str, storage: StorageGateway) -> ResolvedImage:
    """Turn either variant into the image fields of a content row."""
    if isinstance(source, Upload):
        return await store_upload(source, folder, storage)

    validate_reference(source)
    return ResolvedImage(
        r2_key=source.r2_key,
        cdn_url=source.cdn_url,
        cdn_url_mobile=source.cdn_url_mobile or source.cdn_url,
        filename=source.filename,
    )
