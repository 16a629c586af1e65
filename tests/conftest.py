"""
Pytest configuration and fixtures for the BeeKeeper API tests
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from beekeeper.models.article import Article, ArticleStatus
from beekeeper.models.forum import ForumCategory, ForumThread
from beekeeper.models.site import Feature, SiteSettings
from beekeeper.policy.roles import Role
from database import Base, get_db
from helpers import make_user
from main import app


@pytest.fixture
async def session_factory(tmp_path):
    """A fresh SQLite file per test, so sessions never share a connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app, wired to the test database"""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def seed(session_factory):
    """Persist rows in their own committed session and hand them back"""
    async def _seed(*rows):
        async with session_factory() as session:
            session.add_all(rows)
            await session.commit()
            for row in rows:
                await session.refresh(row)
        return rows[0] if len(rows) == 1 else rows
    return _seed


@pytest.fixture
def fetch(session_factory):
    """Reload a row straight from the database, bypassing the API"""
    async def _fetch(model, pk):
        async with session_factory() as session:
            return await session.get(model, pk)
    return _fetch


@pytest.fixture
async def admin(seed):
    return await seed(make_user("admin", Role.ADMIN))


@pytest.fixture
async def author(seed):
    return await seed(make_user("author", Role.AUTHOR))


@pytest.fixture
async def other_author(seed):
    return await seed(make_user("other_author", Role.AUTHOR))


@pytest.fixture
async def reader(seed):
    return await seed(make_user("reader", Role.USER))


@pytest.fixture
async def article(seed, author):
    """A published article owned by `author`"""
    return await seed(Article(
        title="Spring hive inspection",
        slug="spring-hive-inspection",
        content="Check the brood pattern before anything else.",
        excerpt="Check the brood pattern",
        status=ArticleStatus.PUBLISHED,
        owner_id=author.id,
        view_count=0,
    ))


@pytest.fixture
async def forum_enabled(seed):
    return await seed(Feature(name="forum", enabled=True))


@pytest.fixture
async def category(seed, admin, forum_enabled):
    return await seed(ForumCategory(name="Swarm control", slug="swarm-control", owner_id=admin.id))


@pytest.fixture
async def thread(seed, category, author):
    """An open thread owned by `author`"""
    return await seed(ForumThread(
        title="Queen cells in May",
        slug="queen-cells-in-may",
        content="Found six capped queen cells on one frame today.",
        category_id=category.id,
        owner_id=author.id,
        view_count=0,
    ))


@pytest.fixture
async def maintenance(seed):
    return await seed(SiteSettings(
        site_title="BeeKeeper's Blog",
        maintenance_mode=True,
        maintenance_title="Hive inspection",
        maintenance_message="Back soon",
        maintenance_estimated_time="1 hour",
    ))

