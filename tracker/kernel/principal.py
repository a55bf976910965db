"""
Authenticated identities and audit actors.

A principal is derived per request and passed explicitly into every
service call. An actor is the part of a principal written to the audit
trail: exactly one of a user id or an agent key id.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Union


class ActorType(str, Enum):
    USER = "USER"
    AGENT = "AGENT"


@dataclass(frozen=True)
class UserActor:
    user_id: uuid.UUID

    @property
    def actor_type(self) -> ActorType:
        return ActorType.USER


@dataclass(frozen=True)
class AgentActor:
    key_id: uuid.UUID

    @property
    def actor_type(self) -> ActorType:
        return ActorType.AGENT


Actor = Union[UserActor, AgentActor]


@dataclass(frozen=True)
class HumanPrincipal:
    """A signed-in person. Members see only projects they own; admins see everything."""

    user_id: uuid.UUID
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def actor(self) -> UserActor:
        return UserActor(self.user_id)


@dataclass(frozen=True)
class AgentPrincipal:
    """An automation client holding a key bound to exactly one project."""

    key_id: uuid.UUID
    project_id: uuid.UUID

    @property
    def actor(self) -> AgentActor:
        return AgentActor(self.key_id)


Principal = Union[HumanPrincipal, AgentPrincipal]


def is_agent(principal: Principal) -> bool:
    return isinstance(principal, AgentPrincipal)
