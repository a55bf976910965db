"""
Project model. Projects are the ownership and scoping unit for items and agent keys.
"""

import uuid
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracker.kernel.models.base import Base, TimestampMixin, generate_uuid

if TYPE_CHECKING:
    from tracker.kernel.models.user import User
    from tracker.kernel.models.item import WorkItem
    from tracker.kernel.models.agent_key import AgentApiKey


class Project(Base, TimestampMixin):
    """Top-level container for work items."""

    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    # Ownership
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    owner: Mapped["User"] = relationship(
        "User",
        back_populates="owned_projects",
    )
    items: Mapped[List["WorkItem"]] = relationship(
        "WorkItem",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    agent_keys: Mapped[List["AgentApiKey"]] = relationship(
        "AgentApiKey",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Project {self.name[:50]}>"
