"""
Authorization gate.

``authorize`` is a pure decision over (principal, project owner, operation).
The SQL visibility predicates express the same scoping rules inside list
queries so out-of-scope rows never reach counts or ordering.
"""

import uuid
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import ColumnElement, select, true
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.kernel.errors import Forbidden, NotFound
from tracker.kernel.models.item import WorkItem
from tracker.kernel.models.project import Project
from tracker.kernel.principal import AgentPrincipal, HumanPrincipal, Principal


class Operation(str, Enum):
    """What a principal is trying to do to a project or one of its items."""
    VIEW = "view"
    EDIT = "edit"
    CREATE_ITEM = "create_item"
    DELETE = "delete"
    TRANSITION = "transition"
    SUBMIT_RESOLUTION = "submit_resolution"
    REVIEW = "review"
    MANAGE_IMAGES = "manage_images"
    MANAGE_KEYS = "manage_keys"


class Decision(str, Enum):
    ALLOW = "allow"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


# Operations an agent may perform inside its own project
AGENT_OPERATIONS = frozenset({
    Operation.VIEW,
    Operation.TRANSITION,
    Operation.SUBMIT_RESOLUTION,
})


@dataclass(frozen=True)
class ProjectRef:
    """The ownership facts authorization needs about a resource."""
    project_id: uuid.UUID
    owner_id: uuid.UUID


def authorize(principal: Principal, resource: ProjectRef, operation: Operation) -> Decision:
    """
    Decide whether ``principal`` may perform ``operation`` on ``resource``.

    Out-of-scope resources yield NOT_FOUND rather than FORBIDDEN so that a
    principal cannot learn whether something it cannot see exists.
    """
    if isinstance(principal, HumanPrincipal):
        if principal.is_admin or principal.user_id == resource.owner_id:
            return Decision.ALLOW
        return Decision.NOT_FOUND

    if isinstance(principal, AgentPrincipal):
        if principal.project_id != resource.project_id:
            return Decision.NOT_FOUND
        if operation in AGENT_OPERATIONS:
            return Decision.ALLOW
        return Decision.FORBIDDEN

    return Decision.NOT_FOUND


def enforce(decision: Decision, what: str = "Resource") -> None:
    """Raise the error matching a negative decision."""
    if decision == Decision.NOT_FOUND:
        raise NotFound(f"{what} not found")
    if decision == Decision.FORBIDDEN:
        raise Forbidden("This credential is not allowed to perform this operation")


def require_human(principal: Principal, admin: bool = False) -> HumanPrincipal:
    """Guard for surfaces agents never reach (key management, accounts, project setup)."""
    if not isinstance(principal, HumanPrincipal):
        raise Forbidden("Agent keys cannot perform this operation")
    if admin and not principal.is_admin:
        raise Forbidden("Admin access required")
    return principal


def project_visibility(principal: Principal) -> ColumnElement[bool]:
    """WHERE clause limiting ``Project`` rows to those the principal can see."""
    if isinstance(principal, AgentPrincipal):
        return Project.id == principal.project_id
    if principal.is_admin:
        return true()
    return Project.owner_id == principal.user_id


def item_visibility(principal: Principal) -> ColumnElement[bool]:
    """WHERE clause limiting ``WorkItem`` rows to those the principal can see."""
    if isinstance(principal, AgentPrincipal):
        return WorkItem.project_id == principal.project_id
    if principal.is_admin:
        return true()
    return WorkItem.project_id.in_(
        select(Project.id).where(Project.owner_id == principal.user_id)
    )


class PermissionService:
    """
    Scoped lookups: fetch a project or item through the visibility
    predicate, then apply ``authorize`` for the intended operation.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_project(
        self,
        principal: Principal,
        project_id: uuid.UUID,
        operation: Operation = Operation.VIEW,
    ) -> Project:
        result = await self.session.execute(
            select(Project).where(Project.id == project_id, project_visibility(principal))
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFound("Project not found")
        enforce(authorize(principal, ProjectRef(project.id, project.owner_id), operation), "Project")
        return project

    async def get_item(
        self,
        principal: Principal,
        item_id: uuid.UUID,
        operation: Operation = Operation.VIEW,
        for_update: bool = False,
    ) -> WorkItem:
        """
        Load an item the principal may act on.

        With ``for_update`` the item row is locked until the transaction ends,
        serialising concurrent transitions of the same item.
        """
        query = (
            select(WorkItem, Project.owner_id)
            .join(Project, Project.id == WorkItem.project_id)
            .where(WorkItem.id == item_id, item_visibility(principal))
        )
        if for_update:
            query = query.with_for_update(of=WorkItem)
        row = (await self.session.execute(query)).one_or_none()
        if row is None:
            raise NotFound("Item not found")
        item, owner_id = row
        enforce(authorize(principal, ProjectRef(item.project_id, owner_id), operation), "Item")
        return item
