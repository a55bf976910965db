"""
Work item plumbing: creation, field edits, images and listing.

Status is deliberately absent from the editable fields; it only moves
through the StateMachine. Every mutation here records its activity in
the caller's transaction.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tracker.kernel.errors import NotFound, ValidationFailed
from tracker.kernel.events.event_store import (
    ActivityRecorder,
    image_deleted_message,
    image_uploaded_message,
    images_reordered_message,
    item_created_message,
    item_updated_message,
)
from tracker.kernel.events.event_types import (
    FieldChange,
    ImageDeletedMetadata,
    ImagesReorderedMetadata,
    ImageUploadedMetadata,
    ItemCreatedMetadata,
    ItemUpdatedMetadata,
)
from tracker.kernel.models.activity import ActivityType
from tracker.kernel.models.base import enum_value, utcnow
from tracker.kernel.models.item import ItemImage, ItemPriority, ItemStatus, ItemType, WorkItem
from tracker.kernel.permissions import Operation, PermissionService, item_visibility
from tracker.kernel.principal import Principal
from tracker.logging_config import get_logger

logger = get_logger(__name__)

EDITABLE_FIELDS = ("type", "title", "description", "priority", "tags")


def clean_tags(tags: List[str]) -> List[str]:
    return [tag.strip() for tag in tags if tag and tag.strip()]


@dataclass
class ImageUpload:
    """Metadata for an image whose bytes are already in blob storage."""
    filename: str
    mime_type: str
    size_bytes: int
    relative_path: str


@dataclass
class ItemListFilter:
    project_id: Optional[uuid.UUID] = None
    type: Optional[ItemType] = None
    status: Optional[ItemStatus] = None
    priority: Optional[ItemPriority] = None
    tag: Optional[str] = None
    search: Optional[str] = None


class ItemService:
    """Service for work-item CRUD with audit recording."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.permissions = PermissionService(session)
        self.recorder = ActivityRecorder(session)

    async def get_item(self, principal: Principal, item_id: uuid.UUID) -> WorkItem:
        item = await self.permissions.get_item(principal, item_id, Operation.VIEW)
        return await self.load(item.id)

    async def list_items(self, principal: Principal, filters: Optional[ItemListFilter] = None) -> List[WorkItem]:
        filters = filters or ItemListFilter()
        query = (
            select(WorkItem)
            .where(item_visibility(principal))
            .options(selectinload(WorkItem.images))
        )

        if filters.project_id is not None:
            query = query.where(WorkItem.project_id == filters.project_id)
        if filters.type is not None:
            query = query.where(WorkItem.type == enum_value(filters.type))
        if filters.status is not None:
            query = query.where(WorkItem.status == enum_value(filters.status))
        if filters.priority is not None:
            query = query.where(WorkItem.priority == enum_value(filters.priority))
        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            query = query.where(
                or_(
                    func.lower(WorkItem.title).like(pattern),
                    func.lower(WorkItem.description).like(pattern),
                )
            )

        query = query.order_by(WorkItem.updated_at.desc(), WorkItem.id.desc())
        items = list((await self.session.execute(query)).scalars().all())

        # JSON columns have no portable containment operator
        if filters.tag:
            items = [item for item in items if filters.tag in (item.tags or [])]
        return items

    async def create_item(
        self,
        principal: Principal,
        project_id: uuid.UUID,
        type: ItemType,
        title: str = "",
        description: str = "",
        priority: ItemPriority = ItemPriority.MEDIUM,
        tags: Optional[List[str]] = None,
    ) -> WorkItem:
        """Create an item in ``project_id``. New items always start open."""
        project = await self.permissions.get_project(principal, project_id, Operation.CREATE_ITEM)

        item = WorkItem(
            project_id=project.id,
            type=type,
            title=title.strip(),
            description=description.strip(),
            status=ItemStatus.OPEN,
            priority=priority,
            tags=clean_tags(tags or []),
        )
        self.session.add(item)
        await self.session.flush()

        await self.recorder.record(
            item_id=item.id,
            actor=principal.actor,
            event_type=ActivityType.ITEM_CREATED,
            message=item_created_message(item.type, item.title),
            metadata=ItemCreatedMetadata(
                title=item.title,
                type=enum_value(item.type),
                status=enum_value(item.status),
                priority=enum_value(item.priority),
            ),
        )
        logger.info("Item created", extra={"item_id": str(item.id), "project_id": str(project.id)})
        return await self.load(item.id)

    async def update_item(self, principal: Principal, item_id: uuid.UUID, changes: Dict[str, Any]) -> WorkItem:
        """
        Apply descriptive field changes.

        Values equal to the current ones are ignored; an update that ends
        up changing nothing records nothing.
        """
        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationFailed(
                "Only descriptive fields can be edited",
                issues=[{"field": name, "message": "not editable"} for name in unknown],
            )

        item = await self.permissions.get_item(principal, item_id, Operation.EDIT, for_update=True)

        field_changes: List[FieldChange] = []
        for name in EDITABLE_FIELDS:
            if name not in changes or changes[name] is None:
                continue
            value = changes[name]
            if name in ("title", "description"):
                value = value.strip()
            elif name == "tags":
                value = clean_tags(value)
            else:
                value = enum_value(value)

            before = getattr(item, name)
            before = list(before or []) if name == "tags" else enum_value(before)
            if before == value:
                continue

            setattr(item, name, value)
            field_changes.append(FieldChange(field=name, before=before, after=value))

        if field_changes:
            item.updated_at = utcnow()
            metadata = ItemUpdatedMetadata(changes=field_changes)
            await self.recorder.record(
                item_id=item.id,
                actor=principal.actor,
                event_type=ActivityType.ITEM_UPDATED,
                message=item_updated_message(metadata.fields),
                metadata=metadata,
            )

        return await self.load(item.id)

    async def delete_item(self, principal: Principal, item_id: uuid.UUID) -> None:
        """Delete an item; its images and activity go with it."""
        item = await self.permissions.get_item(principal, item_id, Operation.DELETE, for_update=True)
        await self.session.delete(item)
        await self.session.flush()
        logger.info("Item deleted", extra={"item_id": str(item_id)})

    async def add_images(
        self,
        principal: Principal,
        item_id: uuid.UUID,
        uploads: List[ImageUpload],
    ) -> List[ItemImage]:
        if not uploads:
            raise ValidationFailed("No images were provided", issues=[{"field": "images", "message": "must not be empty"}])
        issues = [
            {"field": f"images[{index}].mimeType", "message": "only image uploads are allowed"}
            for index, upload in enumerate(uploads)
            if not upload.mime_type.startswith("image/")
        ]
        if issues:
            raise ValidationFailed("Only image uploads are allowed", issues=issues)

        item = await self.permissions.get_item(principal, item_id, Operation.MANAGE_IMAGES, for_update=True)
        sort_order = await self._image_count(item.id)

        created: List[ItemImage] = []
        for upload in uploads:
            image = ItemImage(
                item_id=item.id,
                filename=upload.filename,
                mime_type=upload.mime_type,
                size_bytes=upload.size_bytes,
                relative_path=upload.relative_path,
                sort_order=sort_order,
            )
            self.session.add(image)
            await self.session.flush()
            await self.recorder.record(
                item_id=item.id,
                actor=principal.actor,
                event_type=ActivityType.IMAGE_UPLOADED,
                message=image_uploaded_message(image.filename),
                metadata=ImageUploadedMetadata(
                    image_id=image.id,
                    filename=image.filename,
                    mime_type=image.mime_type,
                    size_bytes=image.size_bytes,
                    sort_order=image.sort_order,
                ),
            )
            created.append(image)
            sort_order += 1

        item.updated_at = utcnow()
        await self.session.flush()
        return created

    async def delete_image(self, principal: Principal, item_id: uuid.UUID, image_id: uuid.UUID) -> None:
        item = await self.permissions.get_item(principal, item_id, Operation.MANAGE_IMAGES, for_update=True)
        result = await self.session.execute(
            select(ItemImage).where(ItemImage.id == image_id, ItemImage.item_id == item.id)
        )
        image = result.scalar_one_or_none()
        if image is None:
            raise NotFound("Image not found")

        filename = image.filename
        await self.session.delete(image)
        item.updated_at = utcnow()
        await self.session.flush()

        await self.recorder.record(
            item_id=item.id,
            actor=principal.actor,
            event_type=ActivityType.IMAGE_DELETED,
            message=image_deleted_message(filename),
            metadata=ImageDeletedMetadata(image_id=image_id, filename=filename),
        )

    async def reorder_images(
        self,
        principal: Principal,
        item_id: uuid.UUID,
        image_ids: List[uuid.UUID],
    ) -> List[ItemImage]:
        """Reorder images; ``image_ids`` must name every image of the item exactly once."""
        item = await self.permissions.get_item(principal, item_id, Operation.MANAGE_IMAGES, for_update=True)
        result = await self.session.execute(
            select(ItemImage).where(ItemImage.item_id == item.id).order_by(ItemImage.sort_order, ItemImage.id)
        )
        images = list(result.scalars().all())
        by_id = {image.id: image for image in images}

        if len(image_ids) != len(images) or len(set(image_ids)) != len(image_ids):
            raise ValidationFailed(
                "Reorder payload must contain every image id for the item exactly once",
                issues=[{"field": "imageIds", "message": "must list every image id exactly once"}],
            )
        unknown = [str(image_id) for image_id in image_ids if image_id not in by_id]
        if unknown:
            raise ValidationFailed(
                f"Unknown image id: {unknown[0]}",
                issues=[{"field": "imageIds", "message": f"unknown image id {value}"} for value in unknown],
            )

        before = [image.id for image in images]
        if before != list(image_ids):
            for index, image_id in enumerate(image_ids):
                by_id[image_id].sort_order = index
            item.updated_at = utcnow()
            await self.session.flush()
            await self.recorder.record(
                item_id=item.id,
                actor=principal.actor,
                event_type=ActivityType.IMAGES_REORDERED,
                message=images_reordered_message(len(image_ids)),
                metadata=ImagesReorderedMetadata(before=before, after=list(image_ids)),
            )

        return [by_id[image_id] for image_id in image_ids]

    async def _image_count(self, item_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count(ItemImage.id)).where(ItemImage.item_id == item_id)
        )
        return result.scalar() or 0

    async def load(self, item_id: uuid.UUID) -> WorkItem:
        result = await self.session.execute(
            select(WorkItem)
            .where(WorkItem.id == item_id)
            .options(selectinload(WorkItem.images))
            .execution_options(populate_existing=True)
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFound("Item not found")
        return item
