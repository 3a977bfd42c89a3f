"""
Dependency injection for the shared streak service.
"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from habitstreak.core.config import settings
from habitstreak.db.base import SessionLocal
from habitstreak.services.streak_cache import NullStreakCache, StreakCache, TTLStreakCache
from habitstreak.services.streak_service import StreakService


def build_streak_cache() -> StreakCache:
    """Cache implementation selected by STREAK_CACHE_ENABLED / STREAK_CACHE_TTL_SECONDS."""
    if not settings.STREAK_CACHE_ENABLED:
        return NullStreakCache()
    return TTLStreakCache(ttl_seconds=settings.STREAK_CACHE_TTL_SECONDS)


def build_streak_service(
    session_factory: async_sessionmaker[AsyncSession] = SessionLocal,
) -> StreakService:
    return StreakService(session_factory, cache=build_streak_cache())


# One instance per process: per-task locks and the cache live on it
streak_service = build_streak_service()


def get_streak_service() -> StreakService:
    """FastAPI dependency; tests override it with a service bound to their own engine."""
    return streak_service
