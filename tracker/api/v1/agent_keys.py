"""
Agent key management endpoints (humans only).
"""

import uuid
from typing import List

from fastapi import APIRouter, status

from tracker.api.deps import CurrentPrincipal, DbSession
from tracker.kernel.identity.agent_keys import AgentKeyService
from tracker.kernel.permissions import Operation, PermissionService, require_human
from tracker.schemas.agent_key import AgentKeyCreate, AgentKeyIssuedResponse, AgentKeyResponse

router = APIRouter()


@router.get("/{project_id}/agent-keys", response_model=List[AgentKeyResponse])
async def list_agent_keys(project_id: uuid.UUID, principal: CurrentPrincipal, db: DbSession):
    await PermissionService(db).get_project(principal, project_id, Operation.MANAGE_KEYS)
    keys = await AgentKeyService(db).list_for_project(project_id)
    return [AgentKeyResponse.model_validate(key) for key in keys]


@router.post(
    "/{project_id}/agent-keys",
    response_model=AgentKeyIssuedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_agent_key(
    project_id: uuid.UUID,
    data: AgentKeyCreate,
    principal: CurrentPrincipal,
    db: DbSession,
):
    """
    Issue a key bound to this project.

    The plaintext token is in this response and nowhere else, ever.
    """
    await PermissionService(db).get_project(principal, project_id, Operation.MANAGE_KEYS)
    human = require_human(principal)
    issued = await AgentKeyService(db).issue(project_id, created_by=human.user_id, name=data.name)
    return AgentKeyIssuedResponse(
        key_id=issued.key.id,
        name=issued.key.name,
        prefix=issued.key.prefix,
        token=issued.token,
        created_at=issued.key.created_at,
    )


@router.post("/{project_id}/agent-keys/{key_id}/revoke", response_model=AgentKeyResponse)
async def revoke_agent_key(
    project_id: uuid.UUID,
    key_id: uuid.UUID,
    principal: CurrentPrincipal,
    db: DbSession,
):
    await PermissionService(db).get_project(principal, project_id, Operation.MANAGE_KEYS)
    key = await AgentKeyService(db).revoke(project_id, key_id)
    return AgentKeyResponse.model_validate(key)
