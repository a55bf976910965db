"""
Identity Core - session tokens, agent keys, and principal resolution.
"""

from tracker.kernel.identity.password import verify_password, hash_password
from tracker.kernel.identity.jwt import JWTManager, AccessTokenPayload, get_jwt_manager
from tracker.kernel.identity.agent_keys import (
    AgentKeyService,
    IssuedAgentKey,
    MalformedAgentToken,
    generate_agent_token,
    parse_agent_token,
    hash_agent_secret,
    verify_agent_secret,
)
from tracker.kernel.identity.resolver import PrincipalResolver
from tracker.kernel.identity.identity_service import IdentityService

__all__ = [
    "verify_password",
    "hash_password",
    "JWTManager",
    "AccessTokenPayload",
    "get_jwt_manager",
    "AgentKeyService",
    "IssuedAgentKey",
    "MalformedAgentToken",
    "generate_agent_token",
    "parse_agent_token",
    "hash_agent_secret",
    "verify_agent_secret",
    "PrincipalResolver",
    "IdentityService",
]
