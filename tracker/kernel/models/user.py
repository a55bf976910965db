"""
User model for identity management.
"""

import uuid
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracker.kernel.models.base import Base, TimestampMixin, generate_uuid

if TYPE_CHECKING:
    from tracker.kernel.models.project import Project


class UserRole(str, Enum):
    """User roles in the system."""
    MEMBER = "member"
    ADMIN = "admin"


class User(Base, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    display_name: Mapped[Optional[str]] = mapped_column(
        String(120),
        nullable=True,
    )
    role: Mapped[UserRole] = mapped_column(
        String(50),
        default=UserRole.MEMBER,
        nullable=False,
    )

    owned_projects: Mapped[List["Project"]] = relationship(
        "Project",
        back_populates="owner",
    )

    def __repr__(self) -> str:
        return f"<User {self.email}>"
