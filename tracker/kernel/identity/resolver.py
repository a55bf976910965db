"""
Principal resolution.

Turns the raw credentials on a request into a ``Principal``. Every failure
mode collapses into ``Unauthenticated`` so callers cannot tell which check
failed; the reason is only logged.
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.config import Settings, get_settings
from tracker.kernel.errors import Unauthenticated
from tracker.kernel.identity.agent_keys import MalformedAgentToken, parse_agent_token, verify_agent_secret
from tracker.kernel.identity.jwt import JWTManager, get_jwt_manager
from tracker.kernel.models.agent_key import AgentApiKey
from tracker.kernel.models.base import as_utc, enum_value, utcnow
from tracker.kernel.models.user import User, UserRole
from tracker.kernel.principal import AgentPrincipal, HumanPrincipal, Principal
from tracker.logging_config import get_logger

logger = get_logger(__name__)

_KNOWN_ROLES = {role.value for role in UserRole}


def _reject(reason: str, **extra) -> Unauthenticated:
    logger.info("Authentication rejected: %s", reason, extra=extra or None)
    return Unauthenticated()


def parse_bearer(header: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


class PrincipalResolver:
    """
    Resolve a request's credentials to a principal.

    Exactly one credential kind must be presented: a bearer session token
    for humans or an agent key for automation clients.
    """

    def __init__(
        self,
        session: AsyncSession,
        jwt_manager: Optional[JWTManager] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.jwt_manager = jwt_manager or get_jwt_manager()
        self.settings = settings or get_settings()

    async def resolve(
        self,
        authorization: Optional[str] = None,
        agent_key: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Principal:
        bearer = parse_bearer(authorization)
        agent_key = agent_key.strip() if agent_key else None

        if bearer and agent_key:
            raise _reject("both session token and agent key presented")
        if bearer:
            return await self.resolve_session_token(bearer)
        if agent_key:
            return await self.resolve_agent_key(agent_key, now=now)
        raise _reject("no credentials")

    async def resolve_session_token(self, token: str) -> HumanPrincipal:
        """
        Verify a session token, then read the role from the user row.

        A role change or account removal takes effect on the next request
        rather than when the token expires.
        """
        payload = self.jwt_manager.verify_access_token(token)
        if payload is None:
            raise _reject("invalid or expired session token")
        if payload.role not in _KNOWN_ROLES:
            raise _reject("unknown role in session token", role=payload.role)
        try:
            user_id = uuid.UUID(payload.sub)
        except ValueError:
            raise _reject("session token subject is not a UUID")

        user = await self.session.get(User, user_id)
        if user is None:
            raise _reject("session token for unknown user", user_id=str(user_id))
        return HumanPrincipal(user_id=user.id, email=user.email, role=enum_value(user.role))

    async def resolve_agent_key(self, token: str, now: Optional[datetime] = None) -> AgentPrincipal:
        try:
            key_id, secret = parse_agent_token(token, tag=self.settings.agent_key_tag)
        except MalformedAgentToken as exc:
            raise _reject(f"malformed agent key ({exc})")

        result = await self.session.execute(
            select(AgentApiKey).where(AgentApiKey.id == key_id)
        )
        key = result.scalar_one_or_none()
        if key is None:
            raise _reject("unknown agent key", key_id=str(key_id))
        if key.revoked_at is not None:
            raise _reject("revoked agent key", key_id=str(key_id))
        if not verify_agent_secret(secret, key.secret_hash):
            raise _reject("agent key secret mismatch", key_id=str(key_id))

        await self._touch(key, now or utcnow())
        return AgentPrincipal(key_id=key.id, project_id=key.project_id)

    async def _touch(self, key: AgentApiKey, now: datetime) -> None:
        """
        Refresh last_used_at at most once per debounce window.

        Rides on the request's transaction; losing it to a rollback is fine.
        """
        window = timedelta(seconds=self.settings.agent_key_touch_interval_seconds)
        if key.last_used_at is not None and now - as_utc(key.last_used_at) < window:
            return
        key.last_used_at = now
        await self.session.flush()
