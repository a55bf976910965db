"""
Agent API key schemas.

Neither response ever carries the secret hash; only issuance carries the
plaintext token, once.
"""

import uuid
from typing import Optional

from pydantic import Field

from tracker.schemas.common import CamelModel, UtcDatetime


class AgentKeyCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=120)


class AgentKeyResponse(CamelModel):
    id: uuid.UUID
    project_id: uuid.UUID
    created_by_user_id: uuid.UUID
    name: str
    prefix: str
    last_used_at: Optional[UtcDatetime] = None
    revoked_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime


class AgentKeyIssuedResponse(CamelModel):
    key_id: uuid.UUID
    name: str
    prefix: str
    token: str
    created_at: UtcDatetime
