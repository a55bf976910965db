"""
API gateway rate limiting.

Scopes: auth POSTs per IP, everything else per user (or IP when the
caller has no valid session). Agent keys get their own quota, charged only
once the key has been verified so a forged secret never spends a real
key's budget. Fixed one-minute windows held in process memory.
"""

import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from tracker.config import get_settings
from tracker.kernel.errors import RateLimited
from tracker.kernel.identity.jwt import get_jwt_manager
from tracker.kernel.principal import AgentPrincipal, Principal

WINDOW_SECONDS = 60


def _get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _get_user_id_from_jwt(request: Request) -> Optional[str]:
    """User id from a valid bearer token, if any. Authentication proper runs later."""
    auth = request.headers.get("authorization")
    if not auth or not auth.lower().startswith("bearer "):
        return None
    payload = get_jwt_manager().verify_access_token(auth[7:].strip())
    return payload.sub if payload else None


class InMemoryRateLimitStore:
    """Fixed-window in-memory store. Key -> (count, window_start_ts)."""

    def __init__(self):
        self._data: Dict[str, Tuple[int, float]] = {}

    def check_and_incr(self, scope: str, identifier: str, limit: int, window_seconds: int = WINDOW_SECONDS) -> bool:
        """Returns True if under limit (and increments). False if over limit (no increment)."""
        key = f"{scope}:{identifier}"
        now = time.monotonic()
        count, start = self._data.get(key, (0, now))
        if now - start >= window_seconds:
            count, start = 0, now
        if count >= limit:
            return False
        self._data[key] = (count + 1, start)
        return True

    def cleanup_old(self, max_age_seconds: int = 3600) -> None:
        now = time.monotonic()
        for key in [k for k, (_, start) in self._data.items() if now - start > max_age_seconds]:
            self._data.pop(key, None)


_store: Optional[InMemoryRateLimitStore] = None


def get_store() -> InMemoryRateLimitStore:
    global _store
    if _store is None:
        _store = InMemoryRateLimitStore()
    return _store


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings = get_settings()
        if not settings.rate_limit_enabled:
            return await call_next(request)

        path = request.url.path or ""
        if not path.startswith(settings.api_v1_prefix):
            return await call_next(request)

        store = get_store()
        store.cleanup_old(max_age_seconds=7200)

        if path.startswith(f"{settings.api_v1_prefix}/auth") and request.method == "POST":
            scope, identifier, limit = "auth", _get_client_ip(request), settings.rate_limit_auth_per_minute
        else:
            user_id = _get_user_id_from_jwt(request)
            scope, identifier, limit = "api", user_id or _get_client_ip(request), settings.rate_limit_api_per_minute

        if not store.check_and_incr(scope, identifier, limit):
            return Response(
                content='{"detail":"Too many requests. Please try again later.","code":"RATE_LIMITED"}',
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                media_type="application/json",
                headers={"Retry-After": str(WINDOW_SECONDS)},
            )
        return await call_next(request)


def charge_agent_quota(principal: Principal) -> None:
    """Count a verified agent request against its key; raise RateLimited when spent."""
    settings = get_settings()
    if not settings.rate_limit_enabled or not isinstance(principal, AgentPrincipal):
        return
    if not get_store().check_and_incr("agent", str(principal.key_id), settings.rate_limit_agent_per_minute):
        raise RateLimited(retry_after=WINDOW_SECONDS)
