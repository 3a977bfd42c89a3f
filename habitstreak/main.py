import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from habitstreak.core.config import settings
from habitstreak.core.dependencies import streak_service
from habitstreak.core.errors import (
    HabitStreakException,
    habit_streak_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from habitstreak.core.logging import configure_logging
from habitstreak.db.base import create_all, engine, get_db
from habitstreak.routers import streaks as streaks_router
from habitstreak.routers import tasks as tasks_router

logger = logging.getLogger("habitstreak.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(env=settings.APP_ENV, level=settings.LOG_LEVEL)
    await create_all(engine)
    if settings.REBUILD_ON_STARTUP:
        # Stored streaks are brought back in line with completion history.
        await streak_service.recalculate_all_streaks_from_history(datetime.now(timezone.utc).date())
    logger.info("Habit streak API started env=%s", settings.APP_ENV)
    yield
    await engine.dispose()


app = FastAPI(
    title="Habit Streak API",
    description=(
        "**Habit Streak Continuity Engine**\n\n"
        "Tracks consecutive-day completion streaks per task under configurable "
        "policies (minimum daily count, skipped weekdays) and exposes liveness, "
        "at-risk and as-of views.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(HabitStreakException, habit_streak_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(tasks_router.router)
app.include_router(streaks_router.router)


@app.get("/health", tags=["health"], summary="Health check")
async def health(db: AsyncSession = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        await db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        logger.exception("Health check database ping failed")
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
