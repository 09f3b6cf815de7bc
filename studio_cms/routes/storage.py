"""
Image library routes.
Uploaded images are kept in the library so they can be reused across
collections and regions without uploading them again.
"""
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import StreamingResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging

from studio_cms.database import get_db
from studio_cms.exceptions import ConflictError, NotFoundError, ValidationError
from studio_cms.models import StoredImage
from studio_cms.schemas import StoredImageRename, StoredImageResponse
from studio_cms.services.activity_logger import ActionType, ActivityLogger, get_activity_logger
from studio_cms.services.collections import find_key_usage
from studio_cms.services.image_sources import Upload, store_upload
from studio_cms.services.storage import StorageGateway, get_storage_gateway, mobile_key_for
from studio_cms.utils.jwt_auth import Actor, get_current_actor
from studio_cms.utils.rate_limit import RATE_LIMITS, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/storage", tags=["Admin Storage"])


async def _get_stored_image(db: AsyncSession, image_id: int) -> StoredImage:
    image = await db.get(StoredImage, image_id)
    if image is None:
        raise NotFoundError(f"Stored image {image_id} does not exist", error="Image not found")
    return image


@router.get("/download/{r2_key:path}")
async def download_image(
    r2_key: str,
    actor: Actor = Depends(get_current_actor),
    storage: StorageGateway = Depends(get_storage_gateway),
):
    """Stream a stored image as an attachment."""
    body = await storage.download(r2_key)
    filename = r2_key.rsplit("/", 1)[-1]
    if "." not in filename:
        filename = f"{filename}.webp"
    return StreamingResponse(
        body,
        media_type="image/webp",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{category:path}", response_model=List[StoredImageResponse])
async def list_stored_images(
    category: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Images of a library category, newest first."""
    result = await db.execute(
        select(StoredImage)
        .where(StoredImage.category == category)
        .order_by(StoredImage.created_at.desc(), StoredImage.id.desc())
    )
    return [StoredImageResponse.model_validate(image) for image in result.scalars().all()]


@router.post("", response_model=StoredImageResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["upload"])
async def upload_stored_image(
    request: Request,
    image: UploadFile = File(...),
    category: str = Form(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    storage: StorageGateway = Depends(get_storage_gateway),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """
    Upload an image to the library.
    The image is converted to WebP and gets a mobile-width variant.
    """
    category = category.strip().strip("/")
    if not category:
        raise ValidationError("category is required")

    upload = Upload(
        data=await image.read(),
        filename=image.filename or "upload",
        content_type=image.content_type or "",
    )
    resolved = await store_upload(upload, category, storage)

    stored = StoredImage(
        filename=resolved.filename,
        r2_key=resolved.r2_key,
        cdn_url=resolved.cdn_url,
        cdn_url_mobile=resolved.cdn_url_mobile,
        category=category,
        file_size=resolved.file_size,
    )
    db.add(stored)
    await db.commit()

    activity.record(
        ActionType.IMAGE_UPLOAD, "image_storage",
        entity_id=stored.id, actor=actor,
        description=f"Uploaded {stored.filename} to {category}",
        new_values={"r2_key": stored.r2_key, "category": category, "file_size": stored.file_size},
    )
    return StoredImageResponse.model_validate(stored)


@router.put("/{image_id}", response_model=StoredImageResponse)
async def rename_stored_image(
    image_id: int,
    body: StoredImageRename,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Rename a library image. The storage key and URLs do not change."""
    image = await _get_stored_image(db, image_id)
    old_filename = image.filename
    image.filename = body.filename.strip()
    await db.commit()

    activity.record(
        ActionType.IMAGE_UPDATE, "image_storage",
        entity_id=image.id, actor=actor,
        description=f"Renamed {old_filename} to {image.filename}",
        old_values={"filename": old_filename},
        new_values={"filename": image.filename},
    )
    return StoredImageResponse.model_validate(image)


@router.delete("/{image_id}")
async def delete_stored_image(
    image_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    storage: StorageGateway = Depends(get_storage_gateway),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """
    Delete an image from storage and the library.

    Raises:
        ConflictError: 409 if any content item still uses it
    """
    image = await _get_stored_image(db, image_id)

    used_in = await find_key_usage(db, image.r2_key)
    if used_in:
        raise ConflictError(
            f"Image is in use in: {', '.join(used_in)}. Remove it from those sections first.",
            error="Image in use",
        )

    await storage.delete(image.r2_key)
    if image.cdn_url_mobile and image.cdn_url_mobile != image.cdn_url:
        await storage.delete(mobile_key_for(image.r2_key))

    old_values = {"filename": image.filename, "r2_key": image.r2_key, "category": image.category}
    await db.delete(image)
    await db.commit()

    activity.record(
        ActionType.IMAGE_DELETE, "image_storage",
        entity_id=image_id, actor=actor,
        description=f"Deleted {old_values['filename']} from {old_values['category']}",
        old_values=old_values,
    )
    logger.info(f"Deleted stored image {old_values['r2_key']}")
    return {"success": True, "message": "Image deleted"}
