"""
Project endpoints.
"""

import uuid
from typing import List

from fastapi import APIRouter, status
from sqlalchemy import select

from tracker.api.deps import CurrentHuman, CurrentPrincipal, DbSession
from tracker.kernel.models.project import Project
from tracker.kernel.permissions import PermissionService, project_visibility
from tracker.logging_config import get_logger
from tracker.schemas.project import ProjectCreate, ProjectResponse

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=List[ProjectResponse])
async def list_projects(principal: CurrentPrincipal, db: DbSession):
    """List projects visible to the caller (an agent sees only its own)."""
    result = await db.execute(
        select(Project).where(project_visibility(principal)).order_by(Project.name, Project.id)
    )
    return [ProjectResponse.model_validate(p) for p in result.scalars().all()]


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(data: ProjectCreate, principal: CurrentHuman, db: DbSession):
    project = Project(
        name=data.name.strip(),
        description=(data.description or "").strip() or None,
        owner_id=principal.user_id,
    )
    db.add(project)
    await db.flush()
    logger.info("Project created", extra={"project_id": str(project.id)})
    return ProjectResponse.model_validate(project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: uuid.UUID, principal: CurrentPrincipal, db: DbSession):
    project = await PermissionService(db).get_project(principal, project_id)
    return ProjectResponse.model_validate(project)
