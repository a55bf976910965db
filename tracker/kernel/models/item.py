"""
Work item models.

The descriptive fields (title, description, tags, ...) are plain storage;
``status`` is owned by the lifecycle state machine and must only change
through it.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List

from sqlalchemy import DateTime, ForeignKey, Index, Integer, JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracker.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow

if TYPE_CHECKING:
    from tracker.kernel.models.project import Project


class ItemStatus(str, Enum):
    """Lifecycle status (wire representation is the value)."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    RESOLVED = "resolved"
    ARCHIVED = "archived"


TERMINAL_STATUSES = frozenset({ItemStatus.RESOLVED, ItemStatus.ARCHIVED})


class ItemType(str, Enum):
    ISSUE = "issue"
    FEATURE = "feature"


class ItemPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class WorkItem(Base, TimestampMixin):
    """An issue or feature request tracked inside a project."""

    __tablename__ = "items"

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
    type: Mapped[ItemType] = mapped_column(
        String(20),
        default=ItemType.ISSUE,
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        default="",
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )
    status: Mapped[ItemStatus] = mapped_column(
        String(20),
        default=ItemStatus.OPEN,
        nullable=False,
        index=True,
    )
    priority: Mapped[ItemPriority] = mapped_column(
        String(20),
        default=ItemPriority.MEDIUM,
        nullable=False,
    )
    tags: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    project: Mapped["Project"] = relationship(
        "Project",
        back_populates="items",
    )
    images: Mapped[List["ItemImage"]] = relationship(
        "ItemImage",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="ItemImage.sort_order",
    )

    def __repr__(self) -> str:
        return f"<WorkItem {self.id} {self.status}>"


class ItemImage(Base):
    """
    Metadata row for an image attached to an item.

    The bytes live in external blob storage at ``relative_path``.
    """

    __tablename__ = "item_images"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False,
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    relative_path: Mapped[str] = mapped_column(String(500), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    item: Mapped["WorkItem"] = relationship(
        "WorkItem",
        back_populates="images",
    )

    __table_args__ = (
        Index("ix_item_images_item_sort", "item_id", "sort_order"),
    )
