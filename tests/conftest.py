"""
Test infrastructure for the comments API.

Strategy
--------
- SQLite in-memory via aiosqlite replaces Postgres; StaticPool makes every
  session share the single connection, because an in-memory SQLite
  database only exists on the connection that created it.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test and dropped after.
- Redis is disabled by setting cache._redis = None; CacheManager treats
  that as a permanent miss, so the post lookup always reaches the database.
- Identities are real signed tokens from ``create_access_token``, sent as
  a Bearer header, so the identity verifier runs on every request.
- Service-level tests use the in-memory stores and never touch SQLite.
"""
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from app.cache import cache
from app.database import Base, get_db
from app.main import app
from app.middleware import install_query_counter
from app.models import Post
from app.security import create_access_token
from app.services.comment_service import CommentService
from app.stores.memory import InMemoryCommentStore, InMemoryPostLookup

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency override: replace production get_db with the test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def auth_headers(user_id: str, moderator: bool = False) -> dict[str, str]:
    """Authorization header carrying a freshly signed token for *user_id*."""
    return {"Authorization": f"Bearer {create_access_token(user_id, is_moderator=moderator)}"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def post_id() -> int:
    """A committed post owned by ``post-owner`` for comments to attach to."""
    async with async_session_test() as session:
        post = Post(author_id="post-owner", title="Hello world", created_at=datetime.now(timezone.utc))
        session.add(post)
        await session.commit()
        return post.id


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """
    Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport.

    Redis is disabled before each test so results never depend on
    external infrastructure.
    """
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def headers():
    return auth_headers


@pytest.fixture
def posts() -> InMemoryPostLookup:
    return InMemoryPostLookup(post_ids={1, 2})


@pytest.fixture
def store() -> InMemoryCommentStore:
    return InMemoryCommentStore()


@pytest.fixture
def service(store: InMemoryCommentStore, posts: InMemoryPostLookup) -> CommentService:
    """Service over in-memory stores, with retries but no backoff sleeps."""
    return CommentService(store, posts, max_attempts=50, backoff=0)
