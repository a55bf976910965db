"""
Pydantic schemas for API request/response validation.
"""

from tracker.schemas.common import CamelModel, ErrorResponse, HealthResponse, PageInfo
from tracker.schemas.auth import TokenResponse, UserCreate, UserLogin, UserResponse
from tracker.schemas.project import ProjectCreate, ProjectResponse
from tracker.schemas.agent_key import AgentKeyCreate, AgentKeyIssuedResponse, AgentKeyResponse
from tracker.schemas.item import (
    ImageCreate,
    ImageReorderRequest,
    ImageResponse,
    ImagesCreateRequest,
    ItemCreate,
    ItemResponse,
    ItemStatusUpdate,
    ItemUpdate,
    PromptResponse,
    ResolutionResponse,
    ResolutionSubmissionRequest,
    ReviewRequest,
)
from tracker.schemas.activity import ActivityPageResponse, ActivityResponse

__all__ = [
    "CamelModel",
    "ErrorResponse",
    "HealthResponse",
    "PageInfo",
    "TokenResponse",
    "UserCreate",
    "UserLogin",
    "UserResponse",
    "ProjectCreate",
    "ProjectResponse",
    "AgentKeyCreate",
    "AgentKeyIssuedResponse",
    "AgentKeyResponse",
    "ImageCreate",
    "ImageReorderRequest",
    "ImageResponse",
    "ImagesCreateRequest",
    "ItemCreate",
    "ItemResponse",
    "ItemStatusUpdate",
    "ItemUpdate",
    "PromptResponse",
    "ResolutionResponse",
    "ResolutionSubmissionRequest",
    "ReviewRequest",
    "ActivityPageResponse",
    "ActivityResponse",
]
