"""
Identity service for user account operations.
"""

import uuid
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.config import get_settings
from tracker.kernel.errors import Conflict
from tracker.kernel.identity.jwt import JWTManager, get_jwt_manager
from tracker.kernel.identity.password import hash_password, verify_password
from tracker.kernel.models.base import enum_value
from tracker.kernel.models.user import User, UserRole
from tracker.logging_config import get_logger

logger = get_logger(__name__)


class IdentityService:
    """
    Service for user identity operations.

    Handles registration, password login, and session token issuance.
    """

    def __init__(self, session: AsyncSession, jwt_manager: Optional[JWTManager] = None):
        self.session = session
        self.jwt_manager = jwt_manager or get_jwt_manager()

    async def register_user(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
        role: UserRole = UserRole.MEMBER,
    ) -> User:
        """
        Register a new user.

        Raises:
            Conflict: If email already exists
        """
        existing = await self.get_user_by_email(email)
        if existing:
            raise Conflict("A user with this email already exists")

        user = User(
            email=email.lower().strip(),
            password_hash=hash_password(password),
            display_name=(display_name or "").strip() or None,
            role=role,
        )
        self.session.add(user)
        await self.session.flush()

        logger.info("User registered", extra={"user_id": str(user.id), "role": enum_value(user.role)})
        return user

    async def authenticate(self, email: str, password: str) -> Optional[Tuple[User, str, datetime]]:
        """
        Check a password login.

        Returns:
            (user, token, expires_at) on success, None otherwise
        """
        user = await self.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            return None
        token, expires_at = self.issue_token(user)
        return user, token, expires_at

    def issue_token(self, user: User) -> Tuple[str, datetime]:
        return self.jwt_manager.create_access_token(
            user_id=user.id,
            email=user.email,
            role=enum_value(user.role),
        )

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(User.email == email.lower().strip())
        )
        return result.scalar_one_or_none()

    async def ensure_admin_user(self) -> User:
        """Create the configured admin account, or promote it if it exists as a member."""
        settings = get_settings()
        user = await self.get_user_by_email(settings.admin_email)

        if user is None:
            user = await self.register_user(
                email=settings.admin_email,
                password=settings.admin_password,
                display_name=settings.admin_name,
                role=UserRole.ADMIN,
            )
            logger.warning(
                "Created default admin user. Update ADMIN_PASSWORD in your environment for production.",
                extra={"email": user.email},
            )
        elif user.role != UserRole.ADMIN:
            user.role = UserRole.ADMIN
            await self.session.flush()
            logger.info("Promoted configured admin account", extra={"email": user.email})

        return user
