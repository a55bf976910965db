"""
AAM Issue Tracker

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tracker.api.middleware.rate_limit import RateLimitMiddleware
from tracker.api.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware
from tracker.api.v1 import router as api_v1_router
from tracker.config import get_settings
from tracker.database import async_session_maker, close_db, init_db
from tracker.kernel.errors import RateLimited, TrackerError
from tracker.kernel.identity.identity_service import IdentityService
from tracker.logging_config import configure_logging, get_logger
from tracker.schemas.common import HealthResponse

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Runs startup and shutdown tasks.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    await init_db()
    logger.info("Database initialized")

    async with async_session_maker() as session:
        await IdentityService(session).ensure_admin_user()
        await session.commit()

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    AAM Issue Tracker

    Issue and feature tracking where coding agents and human reviewers share
    one work-item lifecycle.

    ## Features

    - **Items**: issues and feature requests with images and tags
    - **Lifecycle**: open, in progress, in review, resolved, archived
    - **Agent keys**: project-scoped machine credentials for coding agents
    - **Review gate**: agents submit resolutions; only humans approve
    - **Activity**: append-only audit trail with resumable cursor paging
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# add_middleware stacks innermost-first, so the last added is outermost
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(request: Request, status_code: int, content: dict) -> JSONResponse:
    headers = {}
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers[REQUEST_ID_HEADER] = req_id
        if status_code >= 500:
            content["request_id"] = req_id
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError):
    """Render domain errors as ``{"detail", "code", ...}``."""
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        response = _error_response(request, exc.status_code, exc.to_dict())
        response.headers["WWW-Authenticate"] = "Bearer"
        return response
    if isinstance(exc, RateLimited):
        response = _error_response(request, exc.status_code, exc.to_dict())
        response.headers["Retry-After"] = str(exc.retry_after)
        return response
    return _error_response(request, exc.status_code, exc.to_dict())


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return _error_response(request, exc.status_code, {"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request shape errors share the VALIDATION_FAILED contract with domain validation."""
    issues = []
    for error in exc.errors():
        issues.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })
    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        {"detail": "Validation failed", "code": "VALIDATION_FAILED", "issues": issues},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    if settings.debug:
        content = {"detail": str(exc), "type": type(exc).__name__}
    else:
        content = {"detail": "Internal server error"}
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, content)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check application health."""
    return HealthResponse(status="ok", version=settings.version, database="connected")


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.project_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else "disabled",
        "api": {
            "v1": settings.api_v1_prefix,
        },
    }


app.include_router(
    api_v1_router,
    prefix=settings.api_v1_prefix,
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tracker.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
