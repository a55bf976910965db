"""
Work item schemas.
"""

import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from tracker.kernel.models.item import ItemPriority, ItemStatus, ItemType
from tracker.schemas.common import CamelModel, UtcDatetime


class ItemCreate(CamelModel):
    """Item creation request. New items always start open."""

    project_id: uuid.UUID
    type: ItemType
    title: str = Field("", max_length=200)
    description: str = Field("", max_length=8000)
    priority: ItemPriority = ItemPriority.MEDIUM
    tags: List[str] = Field(default_factory=list)


class ItemUpdate(CamelModel):
    """Descriptive field edit. Status changes go through /status."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    type: Optional[ItemType] = None
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=8000)
    priority: Optional[ItemPriority] = None
    tags: Optional[List[str]] = None


class ItemStatusUpdate(CamelModel):
    status: ItemStatus
    expected_status: Optional[ItemStatus] = None


class ResolutionSubmissionRequest(CamelModel):
    """
    Agent evidence bundle.

    Everything is optional at parse time; completeness is checked by the
    state machine so that missing evidence reports every absent field.
    """

    chat_session_id: Optional[str] = None
    resolution_note: Optional[str] = None
    code_changes: Optional[str] = None
    command_outputs: Optional[List[Dict[str, Any]]] = None
    test_summary: Optional[str] = None


class ReviewRequest(CamelModel):
    decision: Literal["approve", "reject"]
    note: Optional[str] = Field(None, max_length=8000)
    expected_status: Optional[ItemStatus] = None


class ImageCreate(CamelModel):
    filename: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(..., min_length=1, max_length=100)
    size_bytes: int = Field(..., ge=0)
    relative_path: str = Field(..., min_length=1, max_length=500)


class ImagesCreateRequest(CamelModel):
    images: List[ImageCreate] = Field(..., min_length=1)


class ImageReorderRequest(CamelModel):
    image_ids: List[uuid.UUID] = Field(..., min_length=1)


class ImageResponse(CamelModel):
    id: uuid.UUID
    filename: str
    mime_type: str
    size_bytes: int
    relative_path: str
    sort_order: int
    created_at: UtcDatetime


class ItemResponse(CamelModel):
    id: uuid.UUID
    project_id: uuid.UUID
    type: ItemType
    title: str
    description: str
    status: ItemStatus
    priority: ItemPriority
    tags: List[str]
    images: List[ImageResponse] = Field(default_factory=list)
    created_at: UtcDatetime
    updated_at: UtcDatetime


class ResolutionResponse(CamelModel):
    item: ItemResponse
    activity_ids: List[uuid.UUID]


class PromptResponse(CamelModel):
    item_id: uuid.UUID
    prompt: str
