"""
Agent key credential store.

Tokens have the shape ``<tag>_<keyId hex>_<secret>``. The key id locates the
row; only a SHA-256 digest of the secret is persisted, and the plaintext
token is handed to the issuing human exactly once.
"""

import hashlib
import hmac
import re
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.config import get_settings
from tracker.kernel.errors import NotFound
from tracker.kernel.models.agent_key import AgentApiKey
from tracker.kernel.models.base import utcnow
from tracker.logging_config import get_logger

logger = get_logger(__name__)

SECRET_BYTES = 32
# The canonical form issued tokens use; uuid.UUID alone also takes braces, hyphens and urns
_KEY_ID_PATTERN = re.compile(r"[0-9a-f]{32}")


class MalformedAgentToken(ValueError):
    """Token does not have the ``<tag>_<keyId>_<secret>`` shape."""


def hash_agent_secret(secret: str) -> str:
    """One-way digest of the secret half of a token."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def verify_agent_secret(secret: str, stored_hash: str) -> bool:
    """Constant-time comparison of a presented secret against the stored digest."""
    return hmac.compare_digest(hash_agent_secret(secret), stored_hash)


def key_prefix(key_id: uuid.UUID, tag: Optional[str] = None) -> str:
    """Public, non-secret identifier shown in listings and audit views."""
    return f"{tag or get_settings().agent_key_tag}_{key_id.hex}"


def generate_agent_token(key_id: uuid.UUID, tag: Optional[str] = None) -> Tuple[str, str]:
    """Return (token, secret) for a key id."""
    secret = secrets.token_urlsafe(SECRET_BYTES)
    return f"{key_prefix(key_id, tag)}_{secret}", secret


def parse_agent_token(token: str, tag: Optional[str] = None) -> Tuple[uuid.UUID, str]:
    """
    Split a presented token into (key_id, secret).

    The secret may itself contain underscores, so only the first two
    separators are significant.

    Raises:
        MalformedAgentToken: wrong tag, bad key id, or empty secret
    """
    expected_tag = tag or get_settings().agent_key_tag
    parts = token.strip().split("_", 2)
    if len(parts) != 3:
        raise MalformedAgentToken("expected three underscore-separated parts")
    presented_tag, raw_key_id, secret = parts
    if presented_tag != expected_tag:
        raise MalformedAgentToken("unknown token tag")
    if not secret:
        raise MalformedAgentToken("empty secret")
    if not _KEY_ID_PATTERN.fullmatch(raw_key_id):
        raise MalformedAgentToken("key id is not 32 lowercase hex characters")
    return uuid.UUID(hex=raw_key_id), secret


@dataclass(frozen=True)
class IssuedAgentKey:
    """Issuance result; the only place the plaintext token ever appears."""

    key: AgentApiKey
    token: str


class AgentKeyService:
    """
    Issue, list and revoke project-scoped agent keys.

    Callers are responsible for authorizing the human doing the managing;
    this service only owns the credential rows.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def issue(
        self,
        project_id: uuid.UUID,
        created_by: uuid.UUID,
        name: str,
    ) -> IssuedAgentKey:
        key_id = uuid.uuid4()
        token, secret = generate_agent_token(key_id)
        key = AgentApiKey(
            id=key_id,
            project_id=project_id,
            created_by_user_id=created_by,
            name=name.strip(),
            prefix=key_prefix(key_id),
            secret_hash=hash_agent_secret(secret),
        )
        self.session.add(key)
        await self.session.flush()

        logger.info(
            "Agent key issued",
            extra={"key_prefix": key.prefix, "project_id": str(project_id), "created_by": str(created_by)},
        )
        return IssuedAgentKey(key=key, token=token)

    async def get(self, key_id: uuid.UUID) -> Optional[AgentApiKey]:
        result = await self.session.execute(
            select(AgentApiKey).where(AgentApiKey.id == key_id)
        )
        return result.scalar_one_or_none()

    async def list_for_project(self, project_id: uuid.UUID) -> List[AgentApiKey]:
        result = await self.session.execute(
            select(AgentApiKey)
            .where(AgentApiKey.project_id == project_id)
            .order_by(AgentApiKey.created_at.desc(), AgentApiKey.id.desc())
        )
        return list(result.scalars().all())

    async def revoke(
        self,
        project_id: uuid.UUID,
        key_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> AgentApiKey:
        """
        Revoke a key. Takes effect on the next request; repeating it is a no-op.

        Raises:
            NotFound: no such key in this project
        """
        result = await self.session.execute(
            select(AgentApiKey)
            .where(AgentApiKey.id == key_id, AgentApiKey.project_id == project_id)
            .with_for_update()
        )
        key = result.scalar_one_or_none()
        if key is None:
            raise NotFound("Agent key not found")

        if key.revoked_at is None:
            key.revoked_at = now or utcnow()
            await self.session.flush()
            logger.info(
                "Agent key revoked",
                extra={"key_prefix": key.prefix, "project_id": str(project_id)},
            )
        return key
