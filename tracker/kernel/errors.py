"""
Domain error taxonomy.

Every error surfaced to a caller carries a stable ``code`` and the HTTP
status it maps to. Route handlers let these propagate; the application
exception handler renders them.
"""

from typing import Any, Dict, List, Optional


class TrackerError(Exception):
    """Base class for errors with a stable, client-visible kind."""

    code: str = "ERROR"
    status_code: int = 400

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        body.update({k: v for k, v in self.extra.items() if v is not None})
        return body


class Unauthenticated(TrackerError):
    """Missing, invalid, expired or revoked credential. Never says which."""

    code = "UNAUTHENTICATED"
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class Forbidden(TrackerError):
    code = "FORBIDDEN"
    status_code = 403


class NotFound(TrackerError):
    """Absent, or outside the principal's visible scope."""

    code = "NOT_FOUND"
    status_code = 404


class InvalidTransition(TrackerError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current_status: str, requested_status: str, reason: Optional[str] = None):
        message = f"Cannot move item from {current_status} to {requested_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            currentStatus=current_status,
            requestedStatus=requested_status,
        )
        self.current_status = current_status
        self.requested_status = requested_status


class Conflict(TrackerError):
    code = "CONFLICT"
    status_code = 409

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message, currentStatus=current_status)
        self.current_status = current_status


class ValidationFailed(TrackerError):
    code = "VALIDATION_FAILED"
    status_code = 400

    def __init__(self, message: str = "Validation failed", issues: Optional[List[Dict[str, str]]] = None):
        super().__init__(message, issues=issues or [])
        self.issues = issues or []


class InvalidCursor(TrackerError):
    """Pagination token did not decode; clients restart from ``since``."""

    code = "INVALID_CURSOR"
    status_code = 400

    def __init__(self, message: str = "Invalid cursor"):
        super().__init__(message)


class RateLimited(TrackerError):
    """Caller exhausted its request quota for the current window."""

    code = "RATE_LIMITED"
    status_code = 429

    def __init__(self, retry_after: int, message: str = "Too many requests. Please try again later."):
        self.retry_after = retry_after
        super().__init__(message)
