"""
Region management routes.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging

from studio_cms.database import get_db
from studio_cms.schemas import (
    MyRegionsResponse,
    RegionCreate,
    RegionResponse,
    RegionStatusUpdate,
    RegionUpdate,
)
from studio_cms.services import regions as region_service
from studio_cms.services.activity_logger import ActionType, ActivityLogger, get_activity_logger
from studio_cms.services.collections import copy_region_content
from studio_cms.utils.jwt_auth import Actor, get_current_actor, require_super_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/regions", tags=["Admin Regions"])


def _region_snapshot(region) -> dict:
    return {
        "code": region.code,
        "name": region.name,
        "domain": region.domain,
        "route": region.route,
        "is_active": bool(region.is_active),
        "is_default": bool(region.is_default),
    }


@router.get("/me", response_model=MyRegionsResponse, response_model_by_alias=True)
async def my_regions(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Active regions the caller can manage."""
    regions = await region_service.regions_for_actor(db, actor)
    return MyRegionsResponse(
        available_regions=[RegionResponse.model_validate(r) for r in regions],
        is_super_admin=actor.is_super_admin,
    )


@router.get("", response_model=List[RegionResponse])
async def list_all_regions(
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    regions = await region_service.list_regions(db)
    return [RegionResponse.model_validate(r) for r in regions]


@router.post("", response_model=RegionResponse, status_code=status.HTTP_201_CREATED)
async def create_region(
    body: RegionCreate,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """
    Create a region, optionally copying the content of an existing region
    into it.

    Raises:
        ValidationError: 400 on a malformed code, missing name, or neither domain nor route
        ConflictError: 409 if the code is taken
        NotFoundError: 404 if the copy source does not exist
    """
    if body.copy_from_region:
        await region_service.get_region(db, body.copy_from_region)

    region = await region_service.create_region(db, body.code, body.name, body.domain, body.route)

    copied = {}
    if body.copy_from_region:
        copied = await copy_region_content(db, body.copy_from_region, region.code)
    await db.commit()

    description = f"Created region {region.code} ({region.name})"
    if body.copy_from_region:
        description += f", content copied from {body.copy_from_region}"
    activity.record(
        ActionType.REGION_CREATE, "region",
        entity_id=region.code, actor=actor,
        description=description,
        new_values={**_region_snapshot(region), "copied": copied},
    )
    return RegionResponse.model_validate(region)


@router.put("/{code}", response_model=RegionResponse)
async def update_region(
    code: str,
    body: RegionUpdate,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    old_values = _region_snapshot(await region_service.get_region(db, code))
    region = await region_service.update_region(db, code, body.name, body.domain, body.route)
    await db.commit()
    await db.refresh(region)

    activity.record(
        ActionType.REGION_UPDATE, "region",
        entity_id=code, actor=actor,
        description=f"Updated region {code}",
        old_values=old_values,
        new_values=_region_snapshot(region),
    )
    return RegionResponse.model_validate(region)


@router.put("/{code}/status", response_model=RegionResponse)
async def update_region_status(
    code: str,
    body: RegionStatusUpdate,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Activate or deactivate a region (not the default or the last active one)."""
    region = await region_service.set_region_active(db, code, body.is_active)
    await db.commit()
    await db.refresh(region)

    activity.record(
        ActionType.REGION_STATUS_UPDATE, "region",
        entity_id=code, actor=actor,
        description=f"{'Activated' if body.is_active else 'Deactivated'} region {code}",
        new_values={"is_active": body.is_active},
    )
    return RegionResponse.model_validate(region)


@router.delete("/{code}")
async def delete_region(
    code: str,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """
    Soft-delete a region: it becomes inactive and its content is no longer
    served. Content rows are kept.
    """
    region = await region_service.set_region_active(db, code, False)
    await db.commit()

    activity.record(
        ActionType.REGION_DELETE, "region",
        entity_id=code, actor=actor,
        description=f"Deleted region {code} ({region.name})",
        old_values=_region_snapshot(region),
    )
    return {"success": True, "message": f"Region {code} deleted"}
