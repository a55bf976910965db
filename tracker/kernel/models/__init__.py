"""
Kernel Data Models

Core SQLAlchemy models: identity, projects, work items, agent credentials
and the append-only activity log.
"""

from tracker.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow, as_utc, enum_value
from tracker.kernel.models.user import User, UserRole
from tracker.kernel.models.project import Project
from tracker.kernel.models.item import (
    WorkItem,
    ItemImage,
    ItemStatus,
    ItemType,
    ItemPriority,
    TERMINAL_STATUSES,
)
from tracker.kernel.models.agent_key import AgentApiKey
from tracker.kernel.models.activity import ItemActivity, ActivityType, ImmutableActivityError

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "utcnow",
    "as_utc",
    "enum_value",
    # User
    "User",
    "UserRole",
    # Project
    "Project",
    # Items
    "WorkItem",
    "ItemImage",
    "ItemStatus",
    "ItemType",
    "ItemPriority",
    "TERMINAL_STATUSES",
    # Credentials
    "AgentApiKey",
    # Activity
    "ItemActivity",
    "ActivityType",
    "ImmutableActivityError",
]
