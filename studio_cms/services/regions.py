"""
Region scoping and region management.

Every content operation runs inside a RegionContext resolved once per
request: the region code it is filtered by and the actor performing it.
"""
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlparse
import logging
import re
import time

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from studio_cms.config import settings
from studio_cms.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from studio_cms.models import Region
from studio_cms.utils.jwt_auth import Actor

logger = logging.getLogger(__name__)

REGION_CODE_PATTERN = re.compile(r"^[A-Z]{2}$")


@dataclass(frozen=True)
class RegionContext:
    """Region a request is scoped to, and who is acting in it."""
    code: str
    actor: Optional[Actor] = None


def validate_region_code(code: Optional[str]) -> str:
    if not code or not REGION_CODE_PATTERN.match(code):
        raise ValidationError("Region code must be 2 uppercase letters (e.g., US, UK)")
    return code


class RegionDirectory:
    """Short-lived cache of the active regions used for public region detection."""

    def __init__(self, ttl_seconds: Optional[int] = None):
        self.ttl_seconds = settings.REGION_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._regions: Optional[List[Region]] = None
        self._loaded_at = 0.0

    async def active_regions(self, db: AsyncSession) -> List[Region]:
        if self._regions is not None and time.monotonic() - self._loaded_at < self.ttl_seconds:
            return self._regions

        result = await db.execute(
            select(Region)
            .where(Region.is_active.is_(True))
            .order_by(Region.is_default.desc(), Region.name.asc())
        )
        self._regions = list(result.scalars().all())
        self._loaded_at = time.monotonic()
        return self._regions

    def clear(self) -> None:
        self._regions = None
        self._loaded_at = 0.0


region_directory = RegionDirectory()


def default_region_code(regions: List[Region]) -> str:
    for region in regions:
        if region.is_default:
            return region.code
    return regions[0].code if regions else settings.DEFAULT_REGION_FALLBACK


def detect_region_from_path(pathname: Optional[str], regions: List[Region]) -> Optional[str]:
    """Match the most specific route prefix (single-domain deployments)."""
    if not pathname:
        return None
    with_routes = sorted((r for r in regions if r.route), key=lambda r: len(r.route), reverse=True)
    for region in with_routes:
        if pathname.startswith(region.route):
            return region.code
    return None


def detect_region_from_domain(origin: Optional[str], regions: List[Region]) -> Optional[str]:
    """Match the region whose domain appears in the origin (multi-domain deployments)."""
    if not origin:
        return None
    for region in regions:
        if region.domain and region.domain in origin:
            return region.code
    return None


def detect_region(
    pathname: Optional[str],
    referer: Optional[str],
    origin: Optional[str],
    regions: List[Region],
) -> str:
    """
    Resolve the region of a public request.
    Order: request path route, Referer path route, domain, default region.
    """
    code = detect_region_from_path(pathname, regions)
    if code:
        return code

    if referer:
        code = detect_region_from_path(urlparse(referer).path, regions)
        if code:
            return code

    code = detect_region_from_domain(origin or referer, regions)
    if code:
        return code

    return default_region_code(regions)


async def get_region(db: AsyncSession, code: str) -> Region:
    result = await db.execute(select(Region).where(Region.code == code))
    region = result.scalar_one_or_none()
    if region is None:
        raise NotFoundError(f"Region {code} does not exist", error="Region not found")
    return region


async def resolve_region_context(db: AsyncSession, code: Optional[str], actor: Actor) -> RegionContext:
    """
    Validate a requested region against the store and the actor's allow-list.

    Raises:
        ValidationError: Malformed region code
        NotFoundError: Region does not exist (inactive regions are allowed)
        AuthorizationError: Actor is not assigned to the region
    """
    if code is None:
        regions = await region_directory.active_regions(db)
        code = default_region_code(regions)

    validate_region_code(code)
    await get_region(db, code)

    if not actor.can_access_region(code):
        raise AuthorizationError(f"Access denied: You are not assigned to region {code}")

    return RegionContext(code=code, actor=actor)


async def list_regions(db: AsyncSession, active_only: bool = False) -> List[Region]:
    query = select(Region).order_by(Region.is_default.desc(), Region.name.asc())
    if active_only:
        query = query.where(Region.is_active.is_(True))
    result = await db.execute(query)
    return list(result.scalars().all())


async def regions_for_actor(db: AsyncSession, actor: Actor) -> List[Region]:
    """Active regions the actor may manage."""
    regions = await list_regions(db, active_only=True)
    if actor.is_super_admin:
        return regions
    return [r for r in regions if r.code in actor.assigned_regions]


async def create_region(
    db: AsyncSession,
    code: str,
    name: str,
    domain: Optional[str],
    route: Optional[str],
) -> Region:
    validate_region_code(code)
    if not name or not name.strip():
        raise ValidationError("code and name are required")
    if not domain and not route:
        raise ValidationError("Either domain or route must be provided")

    existing = await db.execute(select(Region.code).where(Region.code == code))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Region code already exists")

    region = Region(code=code, name=name.strip(), domain=domain or None, route=route or None,
                    is_active=True, is_default=False)
    db.add(region)
    await db.flush()
    region_directory.clear()
    logger.info(f"Created region {code} ({name})")
    return region


async def update_region(
    db: AsyncSession,
    code: str,
    name: Optional[str],
    domain: Optional[str],
    route: Optional[str],
) -> Region:
    region = await get_region(db, code)

    new_domain = region.domain if domain is None else (domain or None)
    new_route = region.route if route is None else (route or None)
    if not new_domain and not new_route:
        raise ValidationError("Either domain or route must be provided")

    if name is not None:
        if not name.strip():
            raise ValidationError("Region name cannot be empty")
        region.name = name.strip()
    region.domain = new_domain
    region.route = new_route
    await db.flush()
    region_directory.clear()
    return region


async def _count_active_regions(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(Region).where(Region.is_active.is_(True)))
    return result.scalar() or 0


async def set_region_active(db: AsyncSession, code: str, is_active: bool) -> Region:
    """
    Activate or deactivate a region. Content rows are left untouched;
    an inactive region's content is simply no longer served publicly.

    Raises:
        ValidationError: Deactivating the default or the last active region
    """
    region = await get_region(db, code)

    if not is_active and region.is_active:
        if region.is_default:
            raise ValidationError("Cannot deactivate the default region")
        if await _count_active_regions(db) <= 1:
            raise ValidationError("Cannot deactivate the last active region")

    region.is_active = is_active
    await db.flush()
    region_directory.clear()
    logger.info(f"Region {code} is now {'active' if is_active else 'inactive'}")
    return region
