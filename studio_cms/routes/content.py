"""
Admin content API.

Every collection endpoint (slider, gallery, logos, services, team) is built
from one router factory around ContentCollection; every endpoint is scoped by
?region= and requires a valid admin token.
"""
from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile
from typing import Any, Dict, List, Optional, Tuple
import logging

from studio_cms.database import get_db
from studio_cms.exceptions import ValidationError
from studio_cms.schemas import (
    ContentItemResponse,
    ContentReferenceRequest,
    IdListRequest,
    MobileVisibilityRequest,
    ReorderRequest,
)
from studio_cms.services.activity_logger import ActivityLogger, get_activity_logger
from studio_cms.services.collections import (
    COLLECTIONS,
    GALLERY,
    LOGOS,
    CollectionSchema,
    ContentCollection,
    DeletePolicy,
)
from studio_cms.services.image_sources import ImageSource, Reference, Upload
from studio_cms.services.regions import RegionContext
from studio_cms.services.storage import StorageGateway, get_storage_gateway
from studio_cms.utils.region_scope import resolve_region_scope

logger = logging.getLogger(__name__)

IMAGE_FIELDS = ("r2_key", "cdn_url", "filename")
TEXT_FIELDS = ("object_position", "alt_text", "title", "description", "name", "position", "bio")
FILE_FIELDS = ("image", "icon", "photo")


def _parse_flag(value: Any) -> Optional[bool]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip()


def _collection_fields(schema: CollectionSchema, values: Dict[str, Any]) -> Dict[str, Any]:
    fields = {}
    for name in schema.extra_fields:
        if name == "mobile_visible":
            fields[name] = _parse_flag(values.get(name))
        elif name in TEXT_FIELDS:
            fields[name] = _clean_text(values.get(name))
    return fields


async def read_image_source(
    request: Request,
    schema: CollectionSchema,
) -> Tuple[Optional[ImageSource], Dict[str, Any], bool]:
    """
    Resolve the request body into an image source and collection fields.

    Multipart bodies carry an `image` file (or `icon`/`photo` for services
    and team members) as an Upload; JSON bodies reference an image already
    in storage (Reference).

    Returns:
        tuple: (source or None, collection fields, True if the JSON body
        explicitly left every image field empty)
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        # Empty form inputs mean "not given"
        fields = _collection_fields(schema, {k: v for k, v in form.items() if v != ""})
        source = None
        for name in FILE_FIELDS:
            file = form.get(name)
            if isinstance(file, UploadFile):
                source = Upload(
                    data=await file.read(),
                    filename=file.filename or "upload",
                    content_type=file.content_type or "",
                )
                break
        return source, fields, False

    try:
        body = ContentReferenceRequest.model_validate(await request.json())
    except ValueError as e:
        # json.JSONDecodeError and pydantic's ValidationError are both ValueErrors
        detail = e.errors() if isinstance(e, PydanticValidationError) else "Request body must be JSON or multipart form data"
        raise ValidationError(detail, error="Invalid request body")

    fields = _collection_fields(schema, body.model_dump())
    if not any(getattr(body, name) for name in IMAGE_FIELDS):
        return None, fields, True

    source = Reference(
        r2_key=body.r2_key or "",
        cdn_url=body.cdn_url or "",
        filename=body.filename or "",
        cdn_url_mobile=body.cdn_url_mobile or "",
    )
    return source, fields, False


def _set_invalidation_header(response: Response, collection: ContentCollection) -> None:
    if collection.last_event is not None:
        response.headers["X-Content-Invalidate"] = collection.last_event.token


def _to_responses(items) -> List[ContentItemResponse]:
    return [ContentItemResponse.model_validate(item) for item in items]


def build_collection_router(schema: CollectionSchema) -> APIRouter:
    """Create the /admin/<collection> router for one collection schema."""
    router = APIRouter(prefix=f"/admin/{schema.name}", tags=[f"Admin {schema.section}"])

    def get_collection(
        db: AsyncSession = Depends(get_db),
        storage: StorageGateway = Depends(get_storage_gateway),
        activity: ActivityLogger = Depends(get_activity_logger),
    ) -> ContentCollection:
        return ContentCollection(schema, db, storage, activity)

    @router.get("", response_model=List[ContentItemResponse])
    async def list_items(
        region: RegionContext = Depends(resolve_region_scope),
        collection: ContentCollection = Depends(get_collection),
    ):
        """List the region's items in display order (logos include inactive ones)."""
        include_inactive = schema.delete_policy is DeletePolicy.DEACTIVATE
        items = await collection.list(region, include_inactive=include_inactive)
        logger.info(f"Retrieved {len(items)} {schema.label} for region {region.code}")
        return _to_responses(items)

    @router.post("", response_model=ContentItemResponse, status_code=status.HTTP_201_CREATED)
    async def create_item(
        request: Request,
        response: Response,
        region: RegionContext = Depends(resolve_region_scope),
        collection: ContentCollection = Depends(get_collection),
    ):
        """
        Add an item at the end of the list.
        Accepts a multipart `image` upload or a JSON reference to a stored image;
        services and team members may be created without one.
        """
        source, fields, _ = await read_image_source(request, schema)
        item = await collection.create(region, source, fields)
        _set_invalidation_header(response, collection)
        return ContentItemResponse.model_validate(item)

    @router.post("/reorder", response_model=List[ContentItemResponse])
    async def reorder_items(
        body: ReorderRequest,
        response: Response,
        region: RegionContext = Depends(resolve_region_scope),
        collection: ContentCollection = Depends(get_collection),
    ):
        """
        Reorder the region's items.

        The body lists every active item id of the region exactly once, in
        the desired display order. Returns the refreshed list.
        """
        items = await collection.reorder(region, body.order)
        _set_invalidation_header(response, collection)
        return _to_responses(items)

    @router.put("/{item_id}", response_model=ContentItemResponse)
    async def update_item(
        item_id: int,
        request: Request,
        response: Response,
        region: RegionContext = Depends(resolve_region_scope),
        collection: ContentCollection = Depends(get_collection),
    ):
        """Replace an item's image and/or its collection fields."""
        source, fields, cleared = await read_image_source(request, schema)
        if cleared and schema.delete_policy is DeletePolicy.CLEAR:
            item = await collection.clear(region, item_id)
        else:
            item = await collection.update(region, item_id, source, fields)
        _set_invalidation_header(response, collection)
        return ContentItemResponse.model_validate(item)

    @router.delete("/{item_id}")
    async def delete_item(
        item_id: int,
        response: Response,
        permanent: bool = Query(False, description="Remove the row instead of deactivating it (logos)"),
        region: RegionContext = Depends(resolve_region_scope),
        collection: ContentCollection = Depends(get_collection),
    ):
        """Delete an item according to the collection's delete policy."""
        item = await collection.delete(region, item_id, permanent=permanent and schema is LOGOS)
        _set_invalidation_header(response, collection)
        return {
            "success": True,
            "message": f"{schema.entity_type.replace('_', ' ').capitalize()} {item_id} deleted",
            "item": ContentItemResponse.model_validate(item),
        }

    if schema is GALLERY:
        @router.put("/{item_id}/mobile-visibility", response_model=ContentItemResponse)
        async def set_mobile_visibility(
            item_id: int,
            body: MobileVisibilityRequest,
            response: Response,
            region: RegionContext = Depends(resolve_region_scope),
            collection: ContentCollection = Depends(get_collection),
        ):
            """Show or hide a gallery image on mobile (at most 10 visible)."""
            item = await collection.set_mobile_visibility(region, item_id, body.visible)
            _set_invalidation_header(response, collection)
            return ContentItemResponse.model_validate(item)

    if schema is LOGOS:
        @router.post("/activate", response_model=List[ContentItemResponse])
        async def activate_items(
            body: IdListRequest,
            response: Response,
            region: RegionContext = Depends(resolve_region_scope),
            collection: ContentCollection = Depends(get_collection),
        ):
            items = await collection.set_active(region, body.ids, True)
            _set_invalidation_header(response, collection)
            return _to_responses(items)

        @router.post("/deactivate", response_model=List[ContentItemResponse])
        async def deactivate_items(
            body: IdListRequest,
            response: Response,
            region: RegionContext = Depends(resolve_region_scope),
            collection: ContentCollection = Depends(get_collection),
        ):
            items = await collection.set_active(region, body.ids, False)
            _set_invalidation_header(response, collection)
            return _to_responses(items)

    return router


routers = [build_collection_router(schema) for schema in COLLECTIONS.values()]
