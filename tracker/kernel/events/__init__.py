"""
Activity log infrastructure.

Append-only recording of item mutations and cursor-paged reads.
"""

from tracker.kernel.events.event_store import ActivityRecorder
from tracker.kernel.events.pagination import (
    ActivityFilter,
    ActivityPage,
    ActivityPaginator,
    decode_cursor,
    encode_cursor,
)
from tracker.kernel.events.event_types import (
    CommandOutput,
    FieldChange,
    ImageDeletedMetadata,
    ImagesReorderedMetadata,
    ImageUploadedMetadata,
    ItemCreatedMetadata,
    ItemUpdatedMetadata,
    ResolutionNoteMetadata,
    ReviewMetadata,
    ReviewSubmittedMetadata,
    StatusChangeMetadata,
)

__all__ = [
    "ActivityRecorder",
    "ActivityFilter",
    "ActivityPage",
    "ActivityPaginator",
    "decode_cursor",
    "encode_cursor",
    "CommandOutput",
    "FieldChange",
    "ImageDeletedMetadata",
    "ImagesReorderedMetadata",
    "ImageUploadedMetadata",
    "ItemCreatedMetadata",
    "ItemUpdatedMetadata",
    "ResolutionNoteMetadata",
    "ReviewMetadata",
    "ReviewSubmittedMetadata",
    "StatusChangeMetadata",
]
