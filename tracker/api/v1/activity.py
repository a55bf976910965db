"""
Cross-item activity feed for dashboards and polling agents.

Consumers keep the last ``nextCursor`` and resume from it; a consumer that
lost its cursor restarts from ``since``.
"""

import uuid
from datetime import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Query

from tracker.api.deps import CurrentPrincipal, DbSession
from tracker.kernel.events.pagination import ActivityFilter, ActivityPaginator
from tracker.kernel.models.activity import ActivityType
from tracker.kernel.principal import ActorType
from tracker.schemas.activity import ActivityPageResponse, ActivityResponse
from tracker.schemas.common import PageInfo

router = APIRouter()


@router.get("", response_model=ActivityPageResponse)
async def list_activity(
    principal: CurrentPrincipal,
    db: DbSession,
    project_id: Annotated[Optional[uuid.UUID], Query(alias="projectId")] = None,
    types: Annotated[Optional[List[ActivityType]], Query(alias="type")] = None,
    actor_type: Annotated[Optional[ActorType], Query(alias="actorType")] = None,
    since: Optional[datetime] = None,
    cursor: Optional[str] = None,
    limit: Optional[int] = None,
):
    page = await ActivityPaginator(db).page(
        principal,
        ActivityFilter(project_id=project_id, types=types or (), actor_type=actor_type),
        cursor=cursor,
        since=since,
        limit=limit,
    )
    return ActivityPageResponse(
        items=[ActivityResponse.model_validate(a) for a in page.items],
        page=PageInfo(limit=page.limit, next_cursor=page.next_cursor),
    )
