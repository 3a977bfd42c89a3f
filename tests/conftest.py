"""
Shared pytest fixtures.

Every test gets its own in-memory SQLite database (aiosqlite over a
StaticPool, so all sessions share the one connection); nothing touches
the configured DATABASE_URL.
"""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from habitstreak.core.dependencies import get_streak_service
from habitstreak.db.base import (
    build_session_factory,
    create_all,
    enable_sqlite_foreign_keys,
    get_db,
    with_transaction,
)
from habitstreak.main import app
from habitstreak.models.task import Task
from habitstreak.repositories.tasks import TaskRepository
from habitstreak.services.streak_cache import TTLStreakCache
from habitstreak.services.streak_service import StreakService

SQLITE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture()
async def engine():
    engine = create_async_engine(
        SQLITE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture()
def service(session_factory):
    return StreakService(session_factory, cache=TTLStreakCache())


@pytest.fixture()
def make_task(session_factory):
    """Create a task and return its id. Keyword args are streak policy columns."""
    async def _make(name: str = "Read", **policy) -> int:
        async def _create(db):
            task = await TaskRepository(db).create(name=name, **policy)
            return task.id
        return await with_transaction(session_factory, _create)
    return _make


@pytest.fixture()
def edit_task(session_factory):
    """Change task columns behind the service's back (archive, disable, …)."""
    async def _edit(task_id: int, **values) -> None:
        async def _update(db):
            await db.execute(update(Task).where(Task.id == task_id).values(**values))
        await with_transaction(session_factory, _update)
    return _edit


@pytest_asyncio.fixture()
async def client(session_factory, service):
    async def override_get_db():
        async with session_factory() as db:
            yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_streak_service] = lambda: service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
