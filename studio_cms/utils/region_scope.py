"""
Request-scoped region resolution for admin endpoints.
"""
from typing import Optional

from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studio_cms.database import get_db
from studio_cms.services.regions import RegionContext, resolve_region_context
from studio_cms.utils.jwt_auth import Actor, get_current_actor


async def resolve_region_scope(
    region: Optional[str] = Query(None, description="Two-letter region code; defaults to the default region"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
) -> RegionContext:
    """
    FastAPI dependency resolving ?region= into a RegionContext.

    Raises:
        ValidationError: 400 if the code is malformed
        NotFoundError: 404 if the region does not exist
        AuthorizationError: 403 if the actor is not assigned to the region
    """
    return await resolve_region_context(db, region, actor)
