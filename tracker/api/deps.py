"""
FastAPI dependencies for principal resolution and database sessions.
"""

from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.api.middleware.rate_limit import charge_agent_quota
from tracker.config import get_settings
from tracker.database import async_session_maker
from tracker.kernel.identity.resolver import PrincipalResolver
from tracker.kernel.permissions import require_human
from tracker.kernel.principal import HumanPrincipal, Principal
from tracker.logging_config import bind_principal

# Security schemes (documentation only; resolution reads the raw headers)
bearer_scheme = HTTPBearer(auto_error=False)
agent_key_scheme = APIKeyHeader(name=get_settings().agent_key_header, auto_error=False)


async def get_db() -> AsyncSession:
    """
    Dependency that yields database sessions.

    The whole request is one transaction: commit on success, roll back on
    any exception so a mutation never lands without its activity row.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_principal(
    request: Request,
    db: DbSession,
    _bearer: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)] = None,
    _agent_key: Annotated[Optional[str], Depends(agent_key_scheme)] = None,
) -> Principal:
    """
    Resolve the request's credential to a principal or raise 401.

    Verified agent keys are then charged against their own rate limit.
    """
    settings = get_settings()
    resolver = PrincipalResolver(db, settings=settings)
    principal = await resolver.resolve(
        authorization=request.headers.get("Authorization"),
        agent_key=request.headers.get(settings.agent_key_header),
    )
    request.state.principal = principal
    bind_principal(principal)
    charge_agent_quota(principal)
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_principal)]


async def get_human(principal: CurrentPrincipal) -> HumanPrincipal:
    """Require a signed-in person (agents get 403)."""
    return require_human(principal)


CurrentHuman = Annotated[HumanPrincipal, Depends(get_human)]
