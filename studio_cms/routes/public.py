"""
Public content routes.
Serve the active content of the visitor's region to the website frontend.
"""
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Callable, List, Optional
import logging

from studio_cms.config import settings
from studio_cms.database import get_db
from studio_cms.schemas import (
    PublicGalleryImageResponse,
    PublicLogoResponse,
    PublicServiceResponse,
    PublicSlideResponse,
    PublicTeamMemberResponse,
    RegionResponse,
)
from studio_cms.services.cache import invalidation_bus, public_cache
from studio_cms.services.collections import (
    GALLERY,
    LOGOS,
    SERVICES,
    SLIDER,
    TEAM,
    CollectionSchema,
    ContentCollection,
)
from studio_cms.services.regions import REGION_CODE_PATTERN, RegionContext, detect_region, region_directory

logger = logging.getLogger(__name__)

# Create router instance
router = APIRouter()


async def resolve_public_region(request: Request, db: AsyncSession, region: Optional[str]) -> Optional[str]:
    """
    Region code to serve, or None when the requested region is unknown or
    inactive (content endpoints then return an empty list).
    """
    regions = await region_directory.active_regions(db)
    active_codes = {r.code for r in regions}

    if region is not None:
        code = region.upper()
        if not REGION_CODE_PATTERN.match(code) or code not in active_codes:
            logger.info(f"Public request for unknown or inactive region {region}")
            return None
        return code

    code = detect_region(
        request.url.path,
        request.headers.get("referer"),
        request.headers.get("origin") or request.headers.get("host"),
        regions,
    )
    return code if code in active_codes else None


async def _serve(
    schema: CollectionSchema,
    request: Request,
    response: Response,
    db: AsyncSession,
    region: Optional[str],
    serialize: Callable,
    variant: str = "",
    select_items: Optional[Callable] = None,
) -> list:
    code = await resolve_public_region(request, db, region)
    if code is None:
        return []

    response.headers["X-Content-Version"] = str(invalidation_bus.version(schema.name, code))

    cached = public_cache.get(schema.name, code, variant)
    if cached is not None:
        return cached

    items = await ContentCollection(schema, db).list(RegionContext(code=code))
    if select_items is not None:
        items = select_items(items)
    payload = [serialize(item).model_dump() for item in items]

    public_cache.set(schema.name, code, payload, variant)
    logger.info(f"Loaded {len(payload)} public {schema.label} for region {code}")
    return payload


@router.get("/slider", response_model=List[PublicSlideResponse])
async def get_slider(
    request: Request,
    response: Response,
    region: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """Active slides of the region, in display order."""
    return await _serve(SLIDER, request, response, db, region, PublicSlideResponse.model_validate)


@router.get("/gallery", response_model=List[PublicGalleryImageResponse])
async def get_gallery(
    request: Request,
    response: Response,
    region: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """
    Active gallery positions of the region, in display order.
    Cleared positions are included with empty URLs so the layout keeps its slots.
    """
    return await _serve(GALLERY, request, response, db, region, PublicGalleryImageResponse.model_validate)


def _mobile_selection(items) -> list:
    visible = [item for item in items if item.mobile_visible == 1 and item.cdn_url]
    return visible[:settings.GALLERY_MOBILE_VISIBLE_CAP]


@router.get("/gallery/mobile", response_model=List[PublicGalleryImageResponse])
async def get_gallery_mobile(
    request: Request,
    response: Response,
    region: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """Gallery images shown on mobile: visible, non-empty, at most 10."""
    return await _serve(
        GALLERY, request, response, db, region,
        PublicGalleryImageResponse.model_validate,
        variant="mobile",
        select_items=_mobile_selection,
    )


@router.get("/logos", response_model=List[PublicLogoResponse])
async def get_logos(
    request: Request,
    response: Response,
    region: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """Active client logos of the region, in display order."""
    return await _serve(LOGOS, request, response, db, region, PublicLogoResponse.model_validate)


@router.get("/services", response_model=List[PublicServiceResponse])
async def get_services(
    request: Request,
    response: Response,
    region: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """Services of the region, in display order. cdn_url is empty when a service has no icon."""
    return await _serve(SERVICES, request, response, db, region, PublicServiceResponse.model_validate)


@router.get("/team", response_model=List[PublicTeamMemberResponse])
async def get_team(
    request: Request,
    response: Response,
    region: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    return await _serve(TEAM, request, response, db, region, PublicTeamMemberResponse.model_validate)


@router.get("/regions", response_model=List[RegionResponse])
async def get_public_regions(db: AsyncSession = Depends(get_db)):
    """Active regions, default first."""
    regions = await region_directory.active_regions(db)
    return [RegionResponse.model_validate(r) for r in regions]
