"""
Authentication endpoints.
"""

from fastapi import APIRouter, status

from tracker.api.deps import CurrentHuman, DbSession
from tracker.kernel.errors import Unauthenticated
from tracker.kernel.identity.identity_service import IdentityService
from tracker.schemas.auth import TokenResponse, UserCreate, UserLogin, UserResponse

router = APIRouter()


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(data: UserCreate, db: DbSession):
    """
    Register a new member account.

    Returns a session token on successful registration.
    """
    identity_service = IdentityService(db)
    user = await identity_service.register_user(
        email=data.email,
        password=data.password,
        display_name=data.display_name,
    )
    token, expires_at = identity_service.issue_token(user)

    return TokenResponse(
        access_token=token,
        expires_at=expires_at,
        user=UserResponse.model_validate(user),
    )


@router.post("/login", response_model=TokenResponse)
async def login(data: UserLogin, db: DbSession):
    """Exchange email and password for a session token."""
    result = await IdentityService(db).authenticate(email=data.email, password=data.password)
    if result is None:
        raise Unauthenticated("Invalid email or password")

    user, token, expires_at = result
    return TokenResponse(
        access_token=token,
        expires_at=expires_at,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def me(principal: CurrentHuman, db: DbSession):
    user = await IdentityService(db).get_user_by_id(principal.user_id)
    if user is None:
        raise Unauthenticated()
    return UserResponse.model_validate(user)
