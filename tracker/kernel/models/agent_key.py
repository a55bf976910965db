"""
Agent API key (machine credential) model.

Only a one-way hash of the secret half is stored. A key with ``revoked_at``
set authenticates nothing; revocation is permanent.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracker.kernel.models.base import Base, TimestampMixin, generate_uuid

if TYPE_CHECKING:
    from tracker.kernel.models.project import Project


class AgentApiKey(Base, TimestampMixin):
    """Project-scoped credential issued to an automation client."""

    __tablename__ = "agent_api_keys"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_by_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    prefix: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    secret_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    revoked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )

    project: Mapped["Project"] = relationship(
        "Project",
        back_populates="agent_keys",
    )

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def __repr__(self) -> str:
        return f"<AgentApiKey {self.prefix} project={self.project_id}>"
