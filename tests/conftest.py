import os
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"
ADMIN_API_KEY = "test-admin-key-must-be-at-least-32-characters-long"

# Set test env vars before importing app modules
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["ADMIN_API_KEY"] = ADMIN_API_KEY
os.environ["REDIS_URL"] = "memory://"
os.environ["RUN_SCHEDULER_IN_APP"] = "false"


def enable_sqlite_foreign_keys(engine) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(TEST_DATABASE_URL, echo=False)
enable_sqlite_foreign_keys(engine)
TestingSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(autouse=True)
async def setup_database():
    from sitepulse.core.limiter import limiter
    from sitepulse.db.base import Base
    import sitepulse.models  # noqa: F401

    # Disable rate limiting in tests; limits are tested explicitly where needed
    limiter.enabled = False

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def database_url() -> str:
    return TEST_DATABASE_URL


@pytest.fixture
def session_factory() -> async_sessionmaker[AsyncSession]:
    return TestingSessionLocal


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    from sitepulse.api.deps import get_session_factory
    from sitepulse.db.session import get_db
    from sitepulse.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    return {"X-API-Key": ADMIN_API_KEY}


@pytest.fixture
async def site(db_session: AsyncSession):
    """An active site with a fresh tracking id."""
    from sitepulse.schemas.site import SiteCreate
    from sitepulse.services.site_service import SiteService

    created = await SiteService(db_session).create(
        SiteCreate(name="Recipe Hub", url="https://recipes.example.com", category="food")
    )
    await db_session.commit()
    return created


@pytest.fixture
async def other_site(db_session: AsyncSession):
    from sitepulse.schemas.site import SiteCreate
    from sitepulse.services.site_service import SiteService

    created = await SiteService(db_session).create(
        SiteCreate(name="Travel Notes", url="https://travel.example.com")
    )
    await db_session.commit()
    return created
