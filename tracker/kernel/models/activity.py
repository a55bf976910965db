"""
Immutable item activity log.

Every accepted mutation of a work item appends a row here inside the same
transaction as the mutation. Rows are never updated; they disappear only
through the database-level cascade when their item is deleted.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, JSON, String, Text, Uuid, event
from sqlalchemy.orm import Mapped, mapped_column

from tracker.kernel.models.base import Base, generate_uuid, utcnow
from tracker.kernel.principal import Actor, ActorType, AgentActor, UserActor


class ActivityType(str, Enum):
    """Activity event types (wire enum)."""

    ITEM_CREATED = "ITEM_CREATED"
    ITEM_UPDATED = "ITEM_UPDATED"
    IMAGE_UPLOADED = "IMAGE_UPLOADED"
    IMAGE_DELETED = "IMAGE_DELETED"
    IMAGES_REORDERED = "IMAGES_REORDERED"
    STATUS_CHANGE = "STATUS_CHANGE"
    RESOLUTION_NOTE = "RESOLUTION_NOTE"
    REVIEW_SUBMITTED = "REVIEW_SUBMITTED"
    REVIEW_APPROVED = "REVIEW_APPROVED"
    REVIEW_REJECTED = "REVIEW_REJECTED"


class ImmutableActivityError(RuntimeError):
    """Raised when code tries to modify or delete a written activity row."""


class ItemActivity(Base):
    """
    Append-only audit record for one work-item mutation.

    Total order is (created_at desc, id desc); id breaks timestamp ties.
    """

    __tablename__ = "item_activities"

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

    # Actor: exactly one of the two ids, matching actor_type
    actor_type: Mapped[ActorType] = mapped_column(String(10), nullable=False)
    actor_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("users.id"),
        nullable=True,
        index=True,
    )
    agent_key_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("agent_api_keys.id"),
        nullable=True,
        index=True,
    )

    type: Mapped[ActivityType] = mapped_column(String(40), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    payload: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "(actor_type = 'USER' AND actor_user_id IS NOT NULL AND agent_key_id IS NULL)"
            " OR (actor_type = 'AGENT' AND agent_key_id IS NOT NULL AND actor_user_id IS NULL)",
            name="ck_item_activities_single_actor",
        ),
        Index("ix_item_activities_item_order", "item_id", "created_at", "id"),
        Index("ix_item_activities_order", "created_at", "id"),
    )

    @property
    def actor(self) -> Actor:
        if self.actor_type == ActorType.AGENT:
            return AgentActor(self.agent_key_id)
        return UserActor(self.actor_user_id)

    @classmethod
    def for_actor(cls, actor: Actor, **fields) -> "ItemActivity":
        if isinstance(actor, AgentActor):
            return cls(actor_type=ActorType.AGENT, agent_key_id=actor.key_id, **fields)
        return cls(actor_type=ActorType.USER, actor_user_id=actor.user_id, **fields)

    def __repr__(self) -> str:
        return f"<ItemActivity {self.type} item={self.item_id}>"


@event.listens_for(ItemActivity, "before_update")
def _refuse_update(mapper, connection, target):
    raise ImmutableActivityError(f"Activity {target.id} is append-only and cannot be updated")


@event.listens_for(ItemActivity, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise ImmutableActivityError(f"Activity {target.id} is append-only and cannot be deleted")
