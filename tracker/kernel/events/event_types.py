"""
Metadata payload schemas for activity events.

Each activity type carries its own metadata shape. Payloads are dumped
by alias into the JSON ``metadata`` column, so the stored keys are the
wire keys (camelCase, ``from``/``to`` for transitions).
"""

import uuid
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventMetadata(BaseModel):
    """Base metadata payload."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StatusChangeMetadata(EventMetadata):
    from_status: str = Field(alias="from")
    to_status: str = Field(alias="to")


class FieldChange(EventMetadata):
    field: str
    before: Any = None
    after: Any = None


class ItemUpdatedMetadata(EventMetadata):
    changes: List[FieldChange]

    @property
    def fields(self) -> List[str]:
        return [change.field for change in self.changes]


class ItemCreatedMetadata(EventMetadata):
    title: str
    type: str
    status: str
    priority: str


class CommandOutput(EventMetadata):
    command: str
    output: str
    exit_code: int


class ResolutionNoteMetadata(EventMetadata):
    """Evidence bundle an agent (or human) submits with a resolution."""

    chat_session_id: str
    resolution_note: str
    code_changes: str
    command_outputs: List[CommandOutput]
    test_summary: Optional[str] = None
    status_before: str


class ReviewSubmittedMetadata(EventMetadata):
    resubmission: bool = True
    resolution_activity_id: uuid.UUID


class ReviewMetadata(EventMetadata):
    """Human review decision on an item in review."""

    from_status: str = Field(alias="from")
    to_status: str = Field(alias="to")
    note: Optional[str] = None


class ImageUploadedMetadata(EventMetadata):
    image_id: uuid.UUID
    filename: str
    mime_type: str
    size_bytes: int
    sort_order: int


class ImageDeletedMetadata(EventMetadata):
    image_id: uuid.UUID
    filename: str


class ImagesReorderedMetadata(EventMetadata):
    before: List[uuid.UUID]
    after: List[uuid.UUID]
