"""
Request correlation.

Accepts or mints an ``X-Request-ID``, exposes it on ``request.state``, in
the logging context and on the response. Requests slower than
``SLOW_REQUEST_MS`` are logged with the principal that made them, read
from ``request.state.principal`` once authentication has run.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from tracker.logging_config import get_logger, principal_label, principal_var, request_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_MS = 1000


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        request_token = request_id_var.set(request_id)
        # Nothing is authenticated yet; get_principal binds the caller later
        principal_token = principal_var.set(None)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id

            elapsed_ms = (time.perf_counter() - started) * 1000
            if elapsed_ms > SLOW_REQUEST_MS:
                principal = getattr(request.state, "principal", None)
                logger.warning(
                    "Slow request %s %s took %.0fms",
                    request.method,
                    request.url.path,
                    elapsed_ms,
                    extra={
                        "status_code": response.status_code,
                        "duration_ms": round(elapsed_ms, 1),
                        "caller": principal_label(principal),
                    },
                )
            return response
        finally:
            principal_var.reset(principal_token)
            request_id_var.reset(request_token)
