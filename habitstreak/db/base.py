"""
Async database plumbing: declarative Base, engine, session factory,
the FastAPI `get_db` dependency and the transaction façade.
"""
from __future__ import annotations

from typing import AsyncGenerator, Awaitable, Callable, TypeVar

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from habitstreak.core.config import settings

T = TypeVar("T")


class Base(DeclarativeBase):
    pass


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignores ON DELETE CASCADE unless the pragma is set per connection."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    engine = create_async_engine(database_url, echo=echo, pool_pre_ping=True)
    enable_sqlite_foreign_keys(engine)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.DATABASE_URL)
SessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as db:
        yield db


async def with_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    fn: Callable[[AsyncSession], Awaitable[T]],
) -> T:
    """
    Run `fn` inside one all-or-nothing transaction.

    Commits when `fn` returns, rolls back and re-raises when it fails, so
    either every write made through the session lands or none does.
    """
    async with session_factory() as db:
        async with db.begin():
            return await fn(db)


async def create_all(engine: AsyncEngine) -> None:
    """Create every table known to the ORM metadata (no migration tool)."""
    # models must be imported so their tables register on Base.metadata
    import habitstreak.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
