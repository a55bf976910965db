"""
Keyset pagination over the activity log.

Events are ordered newest first by (created_at, id). A cursor is the
position of the last row returned, packed as
``version:u8 | epoch-micros:i64 | uuid:16`` and base64url-encoded without
padding. Clients treat it as opaque.
"""

import base64
import binascii
import struct
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.config import get_settings
from tracker.kernel.errors import InvalidCursor
from tracker.kernel.models.activity import ActivityType, ItemActivity
from tracker.kernel.models.base import as_utc
from tracker.kernel.models.item import WorkItem
from tracker.kernel.permissions import item_visibility
from tracker.kernel.principal import ActorType, Principal

CURSOR_VERSION = 1
_CURSOR_LAYOUT = struct.Struct(">Bq16s")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _to_micros(value: datetime) -> int:
    delta = as_utc(value) - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds


def encode_cursor(created_at: datetime, activity_id: uuid.UUID) -> str:
    raw = _CURSOR_LAYOUT.pack(CURSOR_VERSION, _to_micros(created_at), activity_id.bytes)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def decode_cursor(token: str) -> Tuple[datetime, uuid.UUID]:
    """
    Decode a cursor back into its (created_at, id) position.

    Raises:
        InvalidCursor: On bad base64, wrong length or unknown version
    """
    try:
        padded = token + "=" * (-len(token) % 4)
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError, ValueError):
        raise InvalidCursor()

    if len(raw) != _CURSOR_LAYOUT.size:
        raise InvalidCursor()

    version, micros, id_bytes = _CURSOR_LAYOUT.unpack(raw)
    if version != CURSOR_VERSION:
        raise InvalidCursor("Unsupported cursor version")

    try:
        created_at = _EPOCH + timedelta(microseconds=micros)
    except OverflowError:
        raise InvalidCursor()
    return created_at, uuid.UUID(bytes=id_bytes)


def clamp_limit(limit: Optional[int]) -> int:
    settings = get_settings()
    if limit is None:
        return settings.activity_page_default_limit
    return max(1, min(limit, settings.activity_page_max_limit))


@dataclass
class ActivityFilter:
    """Optional narrowing applied on top of the principal's visibility."""
    item_id: Optional[uuid.UUID] = None
    project_id: Optional[uuid.UUID] = None
    types: Sequence[ActivityType] = field(default_factory=tuple)
    actor_type: Optional[ActorType] = None


@dataclass
class ActivityPage:
    items: List[ItemActivity]
    limit: int
    next_cursor: Optional[str] = None


class ActivityPaginator:
    """
    Serves cursor pages of activity the principal is allowed to see.

    Rows appended after a cursor was issued sort ahead of it, so walking
    forward from any cursor never repeats or skips an event.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def page(
        self,
        principal: Principal,
        activity_filter: Optional[ActivityFilter] = None,
        cursor: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> ActivityPage:
        activity_filter = activity_filter or ActivityFilter()
        limit = clamp_limit(limit)

        query = (
            select(ItemActivity)
            .join(WorkItem, WorkItem.id == ItemActivity.item_id)
            .where(item_visibility(principal))
        )

        if activity_filter.item_id is not None:
            query = query.where(ItemActivity.item_id == activity_filter.item_id)
        if activity_filter.project_id is not None:
            query = query.where(WorkItem.project_id == activity_filter.project_id)
        if activity_filter.types:
            query = query.where(ItemActivity.type.in_([t.value for t in activity_filter.types]))
        if activity_filter.actor_type is not None:
            query = query.where(ItemActivity.actor_type == activity_filter.actor_type.value)

        if since is not None:
            query = query.where(ItemActivity.created_at >= as_utc(since))

        if cursor:
            cursor_at, cursor_id = decode_cursor(cursor)
            query = query.where(
                or_(
                    ItemActivity.created_at < cursor_at,
                    and_(ItemActivity.created_at == cursor_at, ItemActivity.id < cursor_id),
                )
            )

        query = query.order_by(ItemActivity.created_at.desc(), ItemActivity.id.desc()).limit(limit + 1)
        rows = list((await self.session.execute(query)).scalars().all())

        next_cursor = None
        if len(rows) > limit:
            rows = rows[:limit]
            last = rows[-1]
            next_cursor = encode_cursor(last.created_at, last.id)

        return ActivityPage(items=rows, limit=limit, next_cursor=next_cursor)
