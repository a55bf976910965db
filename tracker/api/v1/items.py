"""
Work item endpoints: CRUD, lifecycle, images, prompt, and per-item activity.
"""

import uuid
from datetime import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Query, status

from tracker.api.deps import CurrentPrincipal, DbSession
from tracker.kernel.events.pagination import ActivityFilter, ActivityPaginator
from tracker.kernel.models.activity import ActivityType
from tracker.kernel.models.item import ItemPriority, ItemStatus, ItemType
from tracker.kernel.models.project import Project
from tracker.kernel.permissions import Operation, PermissionService
from tracker.orchestration.item_service import ImageUpload, ItemListFilter, ItemService
from tracker.orchestration.state_machine import ResolutionSubmission, StateMachine
from tracker.prompts import build_prompt_text
from tracker.schemas.activity import ActivityPageResponse, ActivityResponse
from tracker.schemas.common import PageInfo
from tracker.schemas.item import (
    ImageReorderRequest,
    ImageResponse,
    ImagesCreateRequest,
    ItemCreate,
    ItemResponse,
    ItemStatusUpdate,
    ItemUpdate,
    PromptResponse,
    ResolutionResponse,
    ResolutionSubmissionRequest,
    ReviewRequest,
)

router = APIRouter()


@router.get("", response_model=List[ItemResponse])
async def list_items(
    principal: CurrentPrincipal,
    db: DbSession,
    project_id: Annotated[Optional[uuid.UUID], Query(alias="projectId")] = None,
    type: Optional[ItemType] = None,
    item_status: Annotated[Optional[ItemStatus], Query(alias="status")] = None,
    priority: Optional[ItemPriority] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
):
    items = await ItemService(db).list_items(
        principal,
        ItemListFilter(
            project_id=project_id,
            type=type,
            status=item_status,
            priority=priority,
            tag=tag,
            search=search,
        ),
    )
    return [ItemResponse.model_validate(item) for item in items]


@router.post("", response_model=ItemResponse, status_code=status.HTTP_201_CREATED)
async def create_item(data: ItemCreate, principal: CurrentPrincipal, db: DbSession):
    item = await ItemService(db).create_item(
        principal,
        project_id=data.project_id,
        type=data.type,
        title=data.title,
        description=data.description,
        priority=data.priority,
        tags=data.tags,
    )
    return ItemResponse.model_validate(item)


@router.get("/{item_id}", response_model=ItemResponse)
async def get_item(item_id: uuid.UUID, principal: CurrentPrincipal, db: DbSession):
    item = await ItemService(db).get_item(principal, item_id)
    return ItemResponse.model_validate(item)


@router.patch("/{item_id}", response_model=ItemResponse)
async def update_item(item_id: uuid.UUID, data: ItemUpdate, principal: CurrentPrincipal, db: DbSession):
    item = await ItemService(db).update_item(principal, item_id, data.model_dump(exclude_unset=True))
    return ItemResponse.model_validate(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(item_id: uuid.UUID, principal: CurrentPrincipal, db: DbSession) -> None:
    await ItemService(db).delete_item(principal, item_id)


@router.patch("/{item_id}/status", response_model=ItemResponse)
async def change_status(
    item_id: uuid.UUID,
    data: ItemStatusUpdate,
    principal: CurrentPrincipal,
    db: DbSession,
):
    """Move an item along the lifecycle graph. Same-status requests succeed without recording anything."""
    await StateMachine(db).change_status(
        principal,
        item_id,
        data.status,
        expected_status=data.expected_status,
    )
    return ItemResponse.model_validate(await ItemService(db).load(item_id))


@router.post("/{item_id}/resolve", response_model=ResolutionResponse)
async def submit_resolution(
    item_id: uuid.UUID,
    data: ResolutionSubmissionRequest,
    principal: CurrentPrincipal,
    db: DbSession,
):
    """
    Submit resolution evidence and move the item into review.

    Agents use this to hand finished work to a human reviewer; they
    cannot resolve items themselves.
    """
    result = await StateMachine(db).submit_resolution(
        principal,
        item_id,
        ResolutionSubmission(
            chat_session_id=data.chat_session_id,
            resolution_note=data.resolution_note,
            code_changes=data.code_changes,
            command_outputs=data.command_outputs,
            test_summary=data.test_summary,
        ),
    )
    item = await ItemService(db).load(item_id)
    return ResolutionResponse(item=ItemResponse.model_validate(item), activity_ids=result.activity_ids)


@router.post("/{item_id}/review", response_model=ItemResponse)
async def review_item(
    item_id: uuid.UUID,
    data: ReviewRequest,
    principal: CurrentPrincipal,
    db: DbSession,
):
    await StateMachine(db).review(
        principal,
        item_id,
        approve=data.decision == "approve",
        note=data.note,
        expected_status=data.expected_status,
    )
    return ItemResponse.model_validate(await ItemService(db).load(item_id))


@router.get("/{item_id}/prompt", response_model=PromptResponse)
async def get_prompt(item_id: uuid.UUID, principal: CurrentPrincipal, db: DbSession):
    item = await ItemService(db).get_item(principal, item_id)
    project = await db.get(Project, item.project_id)
    return PromptResponse(item_id=item.id, prompt=build_prompt_text(item, project.name))


@router.post("/{item_id}/images", response_model=List[ImageResponse], status_code=status.HTTP_201_CREATED)
async def add_images(
    item_id: uuid.UUID,
    data: ImagesCreateRequest,
    principal: CurrentPrincipal,
    db: DbSession,
):
    """Attach metadata rows for images already written to blob storage."""
    images = await ItemService(db).add_images(
        principal,
        item_id,
        [
            ImageUpload(
                filename=image.filename,
                mime_type=image.mime_type,
                size_bytes=image.size_bytes,
                relative_path=image.relative_path,
            )
            for image in data.images
        ],
    )
    return [ImageResponse.model_validate(image) for image in images]


@router.patch("/{item_id}/images/reorder", response_model=List[ImageResponse])
async def reorder_images(
    item_id: uuid.UUID,
    data: ImageReorderRequest,
    principal: CurrentPrincipal,
    db: DbSession,
):
    images = await ItemService(db).reorder_images(principal, item_id, data.image_ids)
    return [ImageResponse.model_validate(image) for image in images]


@router.delete("/{item_id}/images/{image_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_image(
    item_id: uuid.UUID,
    image_id: uuid.UUID,
    principal: CurrentPrincipal,
    db: DbSession,
) -> None:
    await ItemService(db).delete_image(principal, item_id, image_id)


@router.get("/{item_id}/activity", response_model=ActivityPageResponse)
async def item_activity(
    item_id: uuid.UUID,
    principal: CurrentPrincipal,
    db: DbSession,
    cursor: Optional[str] = None,
    since: Optional[datetime] = None,
    limit: Optional[int] = None,
    types: Annotated[Optional[List[ActivityType]], Query(alias="type")] = None,
):
    """Newest-first activity for one item, cursor paged."""
    await PermissionService(db).get_item(principal, item_id, Operation.VIEW)
    page = await ActivityPaginator(db).page(
        principal,
        ActivityFilter(item_id=item_id, types=types or ()),
        cursor=cursor,
        since=since,
        limit=limit,
    )
    return ActivityPageResponse(
        items=[ActivityResponse.model_validate(a) for a in page.items],
        page=PageInfo(limit=page.limit, next_cursor=page.next_cursor),
    )
