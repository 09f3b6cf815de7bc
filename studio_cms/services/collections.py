"""
Ordered, region-scoped content collections.

Slider images, gallery positions, client logos, services and team members are
the same kind of thing: rows with a display_order inside a region, usually
backed by an image in storage. One ContentCollection implements their CRUD
and the reorder operation; a CollectionSchema describes what differs between
them (extra fields, delete policy, mobile visibility cap, whether an image is
mandatory).
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studio_cms.config import settings
from studio_cms.database import execute_batch
from studio_cms.exceptions import ConflictError, NotFoundError, TransientStoreError, ValidationError
from studio_cms.models import ClientLogo, GalleryImage, Service, SliderImage, StoredImage, TeamMember
from studio_cms.services.activity_logger import ActionType, ActivityLogger, describe_reorder
from studio_cms.services.cache import InvalidationBus, InvalidationEvent, invalidation_bus
from studio_cms.services.image_sources import ImageSource, ResolvedImage, resolve_image
from studio_cms.services.regions import RegionContext
from studio_cms.services.storage import StorageGateway, mobile_key_for

logger = logging.getLogger(__name__)


class DeletePolicy(str, Enum):
    HARD = "hard"              # remove the row, renumber the rest
    CLEAR = "clear"            # empty the image fields, keep the position
    DEACTIVATE = "deactivate"  # keep the row and image, drop it from the list


@dataclass(frozen=True)
class CollectionSchema:
    name: str
    entity_type: str
    label: str
    section: str
    model: type
    folder: str
    delete_policy: DeletePolicy
    extra_fields: tuple = ()
    defaults: Dict[str, Any] = field(default_factory=dict)
    mobile_visible_cap: Optional[int] = None
    image_required: bool = True
    required_fields: tuple = ()
    # Extra field naming the item in logs and reorder descriptions
    name_field: Optional[str] = None


SLIDER = CollectionSchema(
    name="slider",
    entity_type="slider_image",
    label="slides",
    section="Slider",
    model=SliderImage,
    folder="slider",
    delete_policy=DeletePolicy.HARD,
    extra_fields=("object_position",),
    defaults={"object_position": "center center"},
)

GALLERY = CollectionSchema(
    name="gallery",
    entity_type="gallery_image",
    label="gallery images",
    section="Gallery",
    model=GalleryImage,
    folder="gallery",
    delete_policy=DeletePolicy.CLEAR,
    extra_fields=("mobile_visible",),
    defaults={"mobile_visible": 1},
    mobile_visible_cap=settings.GALLERY_MOBILE_VISIBLE_CAP,
)

LOGOS = CollectionSchema(
    name="logos",
    entity_type="client_logo",
    label="client logos",
    section="Logos",
    model=ClientLogo,
    folder="logos/client",
    delete_policy=DeletePolicy.DEACTIVATE,
    extra_fields=("alt_text",),
    name_field="alt_text",
)

SERVICES = CollectionSchema(
    name="services",
    entity_type="service",
    label="services",
    section="Services",
    model=Service,
    folder="services/icons",
    delete_policy=DeletePolicy.HARD,
    extra_fields=("title", "description"),
    image_required=False,
    required_fields=("title",),
    name_field="title",
)

TEAM = CollectionSchema(
    name="team",
    entity_type="team_member",
    label="team members",
    section="Team",
    model=TeamMember,
    folder="team",
    delete_policy=DeletePolicy.HARD,
    extra_fields=("name", "position", "bio"),
    image_required=False,
    required_fields=("name",),
    name_field="name",
)

COLLECTIONS = {schema.name: schema for schema in (SLIDER, GALLERY, LOGOS, SERVICES, TEAM)}


def strip_image_extension(filename: str) -> str:
    for extension in (".webp", ".png", ".jpg", ".jpeg", ".gif"):
        if filename.lower().endswith(extension):
            return filename[: -len(extension)]
    return filename


async def find_key_usage(
    db: AsyncSession,
    r2_key: str,
    exclude: Optional[tuple] = None,
) -> List[str]:
    """
    Sections whose content rows reference a storage key.

    Args:
        r2_key: Storage key to look for
        exclude: (model, id) of a row to ignore, typically the one being deleted
    """
    used_in = []
    for schema in COLLECTIONS.values():
        query = select(schema.model.id).where(schema.model.r2_key == r2_key)
        if exclude and exclude[0] is schema.model:
            query = query.where(schema.model.id != exclude[1])
        result = await db.execute(query.limit(1))
        if result.first() is not None:
            used_in.append(schema.section)
    return used_in


class ContentCollection:
    """CRUD and reorder for one collection, always filtered by a region."""

    def __init__(
        self,
        schema: CollectionSchema,
        db: AsyncSession,
        storage: Optional[StorageGateway] = None,
        activity: Optional[ActivityLogger] = None,
        bus: InvalidationBus = invalidation_bus,
    ):
        self.schema = schema
        self.model = schema.model
        self.db = db
        self.storage = storage
        self.activity = activity
        self.bus = bus
        self.last_event: Optional[InvalidationEvent] = None

    # Reads

    def _partition(self, region: RegionContext, include_inactive: bool = False):
        query = select(self.model).where(self.model.region_code == region.code)
        if not include_inactive:
            query = query.where(self.model.is_active.is_(True))
        return query.order_by(self.model.display_order.asc(), self.model.id.asc())

    async def list(self, region: RegionContext, include_inactive: bool = False) -> List:
        result = await self.db.execute(
            self._partition(region, include_inactive).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get(self, region: RegionContext, item_id: int):
        """
        Raises:
            NotFoundError: No such item in this region
        """
        result = await self.db.execute(
            select(self.model).where(self.model.id == item_id, self.model.region_code == region.code)
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFoundError(
                f"{self.schema.entity_type} {item_id} does not exist in region {region.code}",
                error="Item not found",
            )
        return item

    async def _active_count(self, region: RegionContext) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(self.model).where(
                self.model.region_code == region.code, self.model.is_active.is_(True)
            )
        )
        return result.scalar() or 0

    def snapshot(self, item) -> dict:
        data = {
            "id": item.id,
            "region_code": item.region_code,
            "filename": item.filename,
            "r2_key": item.r2_key,
            "cdn_url": item.cdn_url,
            "display_order": item.display_order,
            "is_active": bool(item.is_active),
        }
        for name in self.schema.extra_fields:
            data[name] = getattr(item, name)
        return data

    def display_name(self, item) -> str:
        if self.schema.name_field and getattr(item, self.schema.name_field):
            return getattr(item, self.schema.name_field)
        if item.filename:
            return strip_image_extension(item.filename)
        return f"#{item.id}"

    # Write helpers

    async def _commit(self, item=None) -> None:
        """
        Commit the session and reload item, whose server-generated columns
        (updated_at) are expired by the commit.
        """
        try:
            await self.db.commit()
            if item is not None:
                await self.db.refresh(item)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to commit {self.schema.name} change: {str(e)}")
            raise TransientStoreError(f"Failed to save {self.schema.label}: {str(e)}")

    def _publish(self, region: RegionContext) -> None:
        self.last_event = self.bus.publish(self.schema.name, region.code)

    def _log(self, action: ActionType, region: RegionContext, **kwargs) -> None:
        if self.activity is not None:
            self.activity.record(action, self.schema.entity_type, actor=region.actor, **kwargs)

    def _check_required(self, fields: Dict[str, Any], partial: bool = False) -> None:
        """
        Raises:
            ValidationError: A required field is missing or blank; with
                partial, only fields present in the update are checked
        """
        for name in self.schema.required_fields:
            value = fields.get(name)
            if value is None and partial:
                continue
            if not str(value or "").strip():
                raise ValidationError(f"{name.capitalize()} is required", error=f"{name.capitalize()} required")

    def _describe(self, values: dict) -> str:
        name_field = self.schema.name_field
        if name_field and values.get(name_field):
            return values[name_field]
        return values["filename"]

    def _apply_fields(self, item, fields: Dict[str, Any]) -> None:
        for name in self.schema.extra_fields:
            if name == "mobile_visible":
                # Changed through set_mobile_visibility so the cap is enforced
                continue
            if fields.get(name) is not None:
                setattr(item, name, fields[name])

    async def _register_in_library(self, image: ResolvedImage) -> None:
        if not image.uploaded or not image.r2_key:
            return
        existing = await self.db.execute(select(StoredImage.id).where(StoredImage.r2_key == image.r2_key))
        if existing.first() is None:
            self.db.add(StoredImage(
                filename=image.filename,
                r2_key=image.r2_key,
                cdn_url=image.cdn_url,
                cdn_url_mobile=image.cdn_url_mobile,
                category=self.schema.folder,
                file_size=image.file_size,
            ))

    async def _discard_upload(self, image: ResolvedImage) -> None:
        if not image.uploaded or self.storage is None:
            return
        keys = [image.r2_key]
        if image.cdn_url_mobile != image.cdn_url:
            keys.append(mobile_key_for(image.r2_key))
        for key in keys:
            try:
                await self.storage.delete(key)
            except Exception as e:
                logger.error(f"Failed to remove orphaned upload {key}: {str(e)}")

    async def _mobile_visible_count(self, region: RegionContext) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(self.model).where(
                self.model.region_code == region.code,
                self.model.is_active.is_(True),
                self.model.mobile_visible == 1,
            )
        )
        return result.scalar() or 0

    def _compaction(self, rows: Sequence, start: int = 0) -> List:
        return [
            update(self.model)
            .where(self.model.id == row.id)
            .values(display_order=index)
            .execution_options(synchronize_session=False)
            for index, row in enumerate(rows, start)
        ]

    async def _inactive_rows(self, region: RegionContext, exclude_ids=()) -> List:
        result = await self.db.execute(
            select(self.model)
            .where(self.model.region_code == region.code, self.model.is_active.is_(False))
            .order_by(self.model.display_order.asc(), self.model.id.asc())
            .execution_options(populate_existing=True)
        )
        return [row for row in result.scalars().all() if row.id not in exclude_ids]

    async def _partition_layout(self, region: RegionContext, active_rows: Sequence, parked: Sequence = ()) -> List:
        """
        Renumber a whole region partition: active rows take 0..n-1, then the
        parked (just deactivated) rows, then the other inactive rows. Keeps
        display_order unique within the region.
        """
        placed = {row.id for row in active_rows} | {row.id for row in parked}
        inactive = await self._inactive_rows(region, exclude_ids=placed)
        return self._compaction(list(active_rows) + list(parked) + inactive)

    # Mutations

    async def create(
        self,
        region: RegionContext,
        source: Optional[ImageSource],
        fields: Optional[Dict[str, Any]] = None,
    ):
        """
        Add an item at the end of the region's list.

        Raises:
            ValidationError: Invalid or missing image source, or a required
                field is blank
            ConflictError: The logo is already active in this region
            StorageError: Upload failed
        """
        fields = fields or {}
        self._check_required(fields)
        if source is None and self.schema.image_required:
            raise ValidationError(
                "An image file or r2_key, cdn_url, and filename are required",
                error="No image provided",
            )
        image = await resolve_image(source, self.schema.folder, self.storage) if source is not None else None

        try:
            item = None
            if self.schema.delete_policy is DeletePolicy.DEACTIVATE:
                existing = await self.db.execute(
                    select(self.model).where(
                        self.model.region_code == region.code, self.model.r2_key == image.r2_key
                    )
                )
                item = existing.scalars().first()
                if item is not None and item.is_active:
                    raise ConflictError("Logo already exists in the list")

            next_order = await self._active_count(region)

            if item is None:
                values = dict(self.schema.defaults)
                values.update({k: v for k, v in fields.items() if k in self.schema.extra_fields and v is not None})
                item = self.model(region_code=region.code, **values)
                self.db.add(item)
            else:
                self._apply_fields(item, fields)
                item.is_active = True

            if image is not None:
                item.filename = image.filename
                item.r2_key = image.r2_key
                item.cdn_url = image.cdn_url
                item.cdn_url_mobile = image.cdn_url_mobile
                await self._register_in_library(image)
            item.display_order = next_order

            if self.schema.name == LOGOS.name and not item.alt_text:
                item.alt_text = strip_image_extension(image.filename)

            if self.schema.mobile_visible_cap is not None:
                wanted = fields.get("mobile_visible")
                if wanted is None:
                    wanted = True
                visible = await self._mobile_visible_count(region)
                item.mobile_visible = 1 if wanted and visible < self.schema.mobile_visible_cap else 0

            await self.db.flush()
            # Inactive rows stay behind the active block
            for statement in self._compaction(
                await self._inactive_rows(region, exclude_ids={item.id}), start=next_order + 1
            ):
                await self.db.execute(statement)
            await self._commit()
        except Exception:
            await self.db.rollback()
            if image is not None:
                await self._discard_upload(image)
            raise

        await self.db.refresh(item)

        logger.info(f"Created {self.schema.entity_type} {item.id} in region {region.code} at position {item.display_order}")
        new_values = self.snapshot(item)
        self._log(
            ActionType.CONTENT_CREATE, region,
            entity_id=item.id,
            description=f"Added {self.schema.entity_type.replace('_', ' ')}: {self._describe(new_values)}",
            new_values=new_values,
        )
        self._publish(region)
        return item

    async def update(
        self,
        region: RegionContext,
        item_id: int,
        source: Optional[ImageSource] = None,
        fields: Optional[Dict[str, Any]] = None,
    ):
        """
        Replace the image and/or collection fields of an item.

        Raises:
            ValidationError: A required field is set to blank
        """
        self._check_required(fields or {}, partial=True)
        item = await self.get(region, item_id)
        old_values = self.snapshot(item)
        old_mobile_url = item.cdn_url_mobile

        image = await resolve_image(source, self.schema.folder, self.storage) if source is not None else None
        try:
            if image is not None:
                item.filename = image.filename
                item.r2_key = image.r2_key
                item.cdn_url = image.cdn_url
                item.cdn_url_mobile = image.cdn_url_mobile
                await self._register_in_library(image)
            self._apply_fields(item, fields or {})
            await self.db.flush()
            await self._commit()
        except Exception:
            await self.db.rollback()
            if image is not None:
                await self._discard_upload(image)
            raise

        await self.db.refresh(item)

        if image is not None and image.uploaded and old_values["r2_key"] != item.r2_key:
            await self._release_storage(item.id, old_values["r2_key"], old_values["cdn_url"], old_mobile_url)

        self._log(
            ActionType.CONTENT_UPDATE, region,
            entity_id=item.id,
            description=f"Updated {self.schema.entity_type.replace('_', ' ')} {item.id}",
            old_values=old_values,
            new_values=self.snapshot(item),
        )
        self._publish(region)
        return item

    async def clear(self, region: RegionContext, item_id: int):
        """
        Empty an item's image but keep the row, its id and its position.

        Raises:
            ValidationError: Collection does not support clearing
        """
        if self.schema.delete_policy is not DeletePolicy.CLEAR:
            raise ValidationError(f"{self.schema.label.capitalize()} cannot be cleared")

        item = await self.get(region, item_id)
        old_values = self.snapshot(item)
        item.filename = ""
        item.r2_key = ""
        item.cdn_url = ""
        item.cdn_url_mobile = ""
        await self._commit(item)

        self._log(
            ActionType.CONTENT_DELETE, region,
            entity_id=item.id,
            description=f"Cleared image from gallery position {item.display_order + 1}",
            old_values=old_values,
            new_values=self.snapshot(item),
        )
        self._publish(region)
        return item

    async def _release_storage(self, item_id: int, r2_key: str, cdn_url: str, cdn_url_mobile: str) -> None:
        """
        Delete an image's objects when no content row other than item_id and
        no library entry references the key. Failures are logged, not raised.
        """
        if not r2_key or self.storage is None:
            return
        if await find_key_usage(self.db, r2_key, exclude=(self.model, item_id)):
            return
        in_library = await self.db.execute(select(StoredImage.id).where(StoredImage.r2_key == r2_key))
        if in_library.first() is not None:
            return

        keys = [r2_key]
        if cdn_url_mobile and cdn_url_mobile != cdn_url:
            keys.append(mobile_key_for(r2_key))
        for key in keys:
            try:
                await self.storage.delete(key)
            except Exception as e:
                logger.error(f"Failed to delete {key} from storage for {self.schema.entity_type} {item_id}: {str(e)}")

    async def delete(self, region: RegionContext, item_id: int, permanent: bool = False):
        """Remove an item according to the collection's delete policy."""
        if self.schema.delete_policy is DeletePolicy.CLEAR and not permanent:
            return await self.clear(region, item_id)
        if self.schema.delete_policy is DeletePolicy.DEACTIVATE and not permanent:
            items = await self.set_active(region, [item_id], False)
            return items[0]

        item = await self.get(region, item_id)
        old_values = self.snapshot(item)
        remaining = [row for row in await self.list(region) if row.id != item.id]

        await execute_batch(
            self.db,
            [delete(self.model).where(self.model.id == item.id).execution_options(synchronize_session=False)]
            + self._compaction(remaining + await self._inactive_rows(region, exclude_ids={item.id})),
        )
        await self._release_storage(item_id, old_values["r2_key"], old_values["cdn_url"], item.cdn_url_mobile)

        logger.info(f"Deleted {self.schema.entity_type} {item_id} from region {region.code}")
        self._log(
            ActionType.CONTENT_DELETE, region,
            entity_id=item_id,
            description=f"Deleted {self.schema.entity_type.replace('_', ' ')}: {self._describe(old_values)}",
            old_values=old_values,
        )
        self._publish(region)
        return item

    async def set_active(self, region: RegionContext, ids: List[int], active: bool) -> List:
        """
        Remove items from the list (keeping row and image) or put them back.
        Deactivation closes the gaps and parks the rows after the active
        block; reactivated items go to the end of the active block.

        Raises:
            ValidationError: Collection has no active flag
            NotFoundError: Any id is not in this region (nothing is changed)
        """
        if self.schema.delete_policy is not DeletePolicy.DEACTIVATE:
            raise ValidationError(f"{self.schema.label.capitalize()} cannot be activated or deactivated")

        result = await self.db.execute(
            select(self.model).where(self.model.region_code == region.code, self.model.id.in_(ids))
        )
        targets = {item.id: item for item in result.scalars().all()}
        missing = [i for i in ids if i not in targets]
        if missing:
            raise NotFoundError(f"Items not found in region {region.code}: {missing}", error="Item not found")

        active_rows = await self.list(region)
        if active:
            active_ids = {row.id for row in active_rows}
            to_add = [targets[i] for i in dict.fromkeys(ids) if i not in active_ids]
            statements = await self._partition_layout(region, active_rows + to_add) + [
                update(self.model)
                .where(self.model.id == item.id)
                .values(is_active=True)
                .execution_options(synchronize_session=False)
                for item in to_add
            ]
        else:
            remaining = [row for row in active_rows if row.id not in targets]
            parked = [row for row in active_rows if row.id in targets]
            statements = [
                update(self.model)
                .where(self.model.id.in_(list(targets)))
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            ] + await self._partition_layout(region, remaining, parked)

        await execute_batch(self.db, statements)

        refreshed = await self.db.execute(
            select(self.model)
            .where(self.model.id.in_(ids))
            .execution_options(populate_existing=True)
        )
        items = sorted(refreshed.scalars().all(), key=lambda item: ids.index(item.id))

        self._log(
            ActionType.CONTENT_UPDATE if active else ActionType.CONTENT_DELETE, region,
            entity_id=ids[0] if len(ids) == 1 else None,
            description=f"{'Activated' if active else 'Removed from list'} {len(ids)} {self.schema.label}",
            new_values={"ids": list(ids), "is_active": active},
        )
        self._publish(region)
        return items

    async def set_mobile_visibility(self, region: RegionContext, item_id: int, visible: bool):
        """
        Show or hide a gallery item on mobile.

        Raises:
            ValidationError: Collection has no mobile visibility, or the cap
                of visible items is already reached (nothing is changed)
        """
        if self.schema.mobile_visible_cap is None:
            raise ValidationError(f"{self.schema.label.capitalize()} have no mobile visibility")

        item = await self.get(region, item_id)
        currently_visible = item.mobile_visible == 1
        if visible and not currently_visible:
            if await self._mobile_visible_count(region) >= self.schema.mobile_visible_cap:
                raise ValidationError(
                    f"Maximum {self.schema.mobile_visible_cap} images can be visible on mobile. "
                    f"Hide another image first."
                )

        item.mobile_visible = 1 if visible else 0
        await self._commit(item)

        self._log(
            ActionType.CONTENT_UPDATE, region,
            entity_id=item.id,
            description=f"{'Showed' if visible else 'Hid'} gallery image {item.id} on mobile",
            old_values={"mobile_visible": 1 if currently_visible else 0},
            new_values={"mobile_visible": item.mobile_visible},
        )
        self._publish(region)
        return item

    async def reorder(self, region: RegionContext, ids: List[int]) -> List:
        """
        Rewrite display_order from a client-submitted permutation.

        The submitted ids must be exactly the ids of the region's active
        items. Every row gets display_order = its index in one atomic batch;
        readers never see a partial ordering.

        Raises:
            ValidationError: Duplicate, missing or foreign ids (nothing is changed)
            TransientStoreError: The batch failed and was rolled back
        """
        current = await self.list(region)
        current_ids = [row.id for row in current]

        if len(ids) != len(set(ids)):
            raise ValidationError("Duplicate item IDs are not allowed")

        missing = sorted(set(current_ids) - set(ids))
        foreign = sorted(set(ids) - set(current_ids))
        if missing or foreign:
            problems = []
            if missing:
                problems.append(f"missing IDs {missing}")
            if foreign:
                problems.append(f"IDs not in region {region.code}: {foreign}")
            raise ValidationError(
                f"Order must list every {self.schema.entity_type} of region {region.code} exactly once ({'; '.join(problems)})",
                error="Invalid order",
            )

        names = {row.id: self.display_name(row) for row in current}
        old_order = [{"id": row.id, "name": names[row.id]} for row in current]
        new_order = [{"id": item_id, "name": names[item_id]} for item_id in ids]

        await execute_batch(self.db, [
            update(self.model)
            .where(self.model.id == item_id, self.model.region_code == region.code)
            .values(display_order=index)
            .execution_options(synchronize_session=False)
            for index, item_id in enumerate(ids)
        ])

        logger.info(f"Reordered {len(ids)} {self.schema.label} in region {region.code}")
        self._log(
            ActionType.CONTENT_REORDER, region,
            description=describe_reorder(self.schema.label, old_order, new_order),
            old_values={"order": old_order},
            new_values={"order": new_order},
        )
        self._publish(region)
        return await self.list(region)

    async def copy_region(self, source_code: str, target_code: str) -> int:
        """
        Duplicate every row of one region into another, keeping order and
        flags. Storage objects are shared, not copied. The caller commits.
        """
        result = await self.db.execute(
            select(self.model)
            .where(self.model.region_code == source_code)
            .order_by(self.model.display_order, self.model.id)
        )
        rows = result.scalars().all()
        for row in rows:
            values = {
                name: getattr(row, name)
                for name in ("filename", "r2_key", "cdn_url", "cdn_url_mobile", "display_order", "is_active")
                + self.schema.extra_fields
            }
            self.db.add(self.model(region_code=target_code, **values))
        return len(rows)


async def copy_region_content(db: AsyncSession, source_code: str, target_code: str) -> Dict[str, int]:
    """Copy every collection's rows of a region into a new region."""
    copied = {}
    for schema in COLLECTIONS.values():
        copied[schema.name] = await ContentCollection(schema, db).copy_region(source_code, target_code)
    await db.flush()
    logger.info(f"Copied content from region {source_code} to {target_code}: {copied}")
    return copied
