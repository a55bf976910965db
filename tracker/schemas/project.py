"""
Project schemas.
"""

import uuid
from typing import Optional

from pydantic import Field

from tracker.schemas.common import CamelModel, UtcDatetime


class ProjectCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=2000)


class ProjectResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    owner_id: uuid.UUID
    created_at: UtcDatetime
    updated_at: UtcDatetime
