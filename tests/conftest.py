"""
Pytest fixtures for tracker tests.

Tests run against a throwaway SQLite database file; the environment is set
before anything from ``tracker`` is imported so the application engine
points at it as well.
"""

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="tracker-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tracker.database import engine
from tracker.kernel.identity.agent_keys import AgentKeyService, IssuedAgentKey
from tracker.kernel.identity.jwt import JWTManager
from tracker.kernel.identity.password import hash_password
from tracker.kernel.models import Base, ItemStatus, ItemType, Project, User, UserRole, WorkItem, enum_value
from tracker.kernel.principal import AgentPrincipal, HumanPrincipal

TEST_PASSWORD = "MemberPass123"
# One bcrypt hash shared by every fixture user
_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create the schema on the test database, drop it afterwards."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


async def _make_user(session: AsyncSession, email: str, role: UserRole) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email,
        password_hash=_PASSWORD_HASH,
        display_name=email.split("@")[0],
        role=role,
    )
    session.add(user)
    await session.commit()
    return user


@pytest_asyncio.fixture
async def member(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "member@example.com", UserRole.MEMBER)


@pytest_asyncio.fixture
async def other_member(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "other@example.com", UserRole.MEMBER)


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "root@example.com", UserRole.ADMIN)


@pytest_asyncio.fixture
async def project(db_session: AsyncSession, member: User) -> Project:
    project = Project(id=uuid.uuid4(), name="Checkout", description="Web checkout", owner_id=member.id)
    db_session.add(project)
    await db_session.commit()
    return project


@pytest_asyncio.fixture
async def other_project(db_session: AsyncSession, other_member: User) -> Project:
    project = Project(id=uuid.uuid4(), name="Billing", owner_id=other_member.id)
    db_session.add(project)
    await db_session.commit()
    return project


async def _make_item(session: AsyncSession, project: Project, status: ItemStatus = ItemStatus.OPEN) -> WorkItem:
    item = WorkItem(
        id=uuid.uuid4(),
        project_id=project.id,
        type=ItemType.ISSUE,
        title="Submit button blocked",
        description="Submit stays disabled after valid input.",
        status=status,
        tags=["checkout"],
    )
    session.add(item)
    await session.commit()
    return item


@pytest_asyncio.fixture
async def item(db_session: AsyncSession, project: Project) -> WorkItem:
    return await _make_item(db_session, project)


@pytest_asyncio.fixture
async def other_item(db_session: AsyncSession, other_project: Project) -> WorkItem:
    return await _make_item(db_session, other_project)


@pytest_asyncio.fixture
async def agent_key(db_session: AsyncSession, project: Project, member: User) -> IssuedAgentKey:
    issued = await AgentKeyService(db_session).issue(project.id, created_by=member.id, name="ci-agent")
    await db_session.commit()
    return issued


@pytest.fixture
def member_principal(member: User) -> HumanPrincipal:
    return HumanPrincipal(user_id=member.id, email=member.email, role="member")


@pytest.fixture
def other_principal(other_member: User) -> HumanPrincipal:
    return HumanPrincipal(user_id=other_member.id, email=other_member.email, role="member")


@pytest.fixture
def admin_principal(admin: User) -> HumanPrincipal:
    return HumanPrincipal(user_id=admin.id, email=admin.email, role="admin")


@pytest.fixture
def agent_principal(agent_key: IssuedAgentKey) -> AgentPrincipal:
    return AgentPrincipal(key_id=agent_key.key.id, project_id=agent_key.key.project_id)


@pytest.fixture
def jwt_manager() -> JWTManager:
    return JWTManager()


@pytest.fixture
def auth_headers(jwt_manager: JWTManager):
    """Build bearer headers for a user."""

    def _headers(user: User) -> dict:
        token, _ = jwt_manager.create_access_token(user_id=user.id, email=user.email, role=enum_value(user.role))
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def client(db_engine) -> AsyncGenerator[AsyncClient, None]:
    """In-process HTTP client against the application."""
    from tracker.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
