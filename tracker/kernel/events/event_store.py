"""
Activity recorder for the append-only item audit log.

Every accepted mutation of a work item MUST be recorded here inside the
same transaction as the mutation itself. Recorded rows are never updated;
corrections are new events.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.kernel.models.activity import ActivityType, ItemActivity
from tracker.kernel.models.base import enum_value
from tracker.kernel.principal import Actor
from tracker.logging_config import get_logger

logger = get_logger(__name__)

Metadata = Union[BaseModel, Dict[str, Any], None]


class ActivityRecorder:
    """
    Appends activity rows through the caller's session.

    Usage:
        recorder = ActivityRecorder(session)
        await recorder.record(
            item_id=item.id,
            actor=principal.actor,
            event_type=ActivityType.STATUS_CHANGE,
            message=status_change_message("open", "in_progress"),
            metadata=StatusChangeMetadata(from_status="open", to_status="in_progress"),
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        item_id: uuid.UUID,
        actor: Actor,
        event_type: ActivityType,
        message: str,
        metadata: Metadata = None,
    ) -> ItemActivity:
        """
        Record one activity event for ``item_id``.

        The row is flushed, not committed; it becomes durable only when
        the surrounding transaction commits, together with the mutation.

        Raises:
            RuntimeError: If the session has no open transaction
        """
        if not self.session.in_transaction():
            raise RuntimeError("Activity must be recorded inside the mutating transaction")

        activity = ItemActivity.for_actor(
            actor,
            item_id=item_id,
            type=event_type,
            message=message,
            payload=self._serialize_metadata(metadata),
        )
        self.session.add(activity)
        await self.session.flush()

        logger.debug(
            "Activity recorded",
            extra={"item_id": str(item_id), "activity_type": enum_value(event_type)},
        )
        return activity

    def _serialize_metadata(self, metadata: Metadata) -> Dict[str, Any]:
        if metadata is None:
            return {}
        if isinstance(metadata, BaseModel):
            return metadata.model_dump(mode="json", by_alias=True, exclude_none=True)
        return {key: self._serialize_value(value) for key, value in metadata.items()}

    def _serialize_value(self, value: Any) -> Any:
        """Convert a metadata value to a JSON-serializable type."""
        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, BaseModel):
            return value.model_dump(mode="json", by_alias=True, exclude_none=True)
        if isinstance(value, dict):
            return {k: self._serialize_value(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._serialize_value(v) for v in value]
        return value


# Message helpers

def status_change_message(from_status: Any, to_status: Any) -> str:
    return f"Status changed from {enum_value(from_status)} to {enum_value(to_status)}"


def item_updated_message(fields: List[str]) -> str:
    return f"Updated {', '.join(fields)}"


def item_created_message(item_type: Any, title: str) -> str:
    return f"Created {enum_value(item_type)} \"{title}\""


def resolution_note_message(note: str, limit: int = 120) -> str:
    note = " ".join(note.split())
    if len(note) > limit:
        note = note[: limit - 3].rstrip() + "..."
    return f"Resolution submitted: {note}"


def review_message(approved: bool, note: Optional[str] = None) -> str:
    message = "Review approved" if approved else "Review rejected"
    if note:
        message = f"{message}: {note}"
    return message


def image_uploaded_message(filename: str) -> str:
    return f"Uploaded image {filename}"


def image_deleted_message(filename: str) -> str:
    return f"Deleted image {filename}"


def images_reordered_message(count: int) -> str:
    return f"Reordered {count} images"
