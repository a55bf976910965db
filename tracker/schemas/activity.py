"""
Activity feed schemas.
"""

import uuid
from typing import Any, Dict, List, Optional

from pydantic import Field

from tracker.kernel.models.activity import ActivityType
from tracker.kernel.principal import ActorType
from tracker.schemas.common import CamelModel, PageInfo, UtcDatetime


class ActivityResponse(CamelModel):
    id: uuid.UUID
    item_id: uuid.UUID
    actor_type: ActorType
    actor_user_id: Optional[uuid.UUID] = None
    agent_key_id: Optional[uuid.UUID] = None
    type: ActivityType
    message: str
    # The ORM attribute is ``payload``; declarative models reserve ``metadata``
    payload: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias="payload",
        serialization_alias="metadata",
    )
    created_at: UtcDatetime


class ActivityPageResponse(CamelModel):
    items: List[ActivityResponse]
    page: PageInfo
