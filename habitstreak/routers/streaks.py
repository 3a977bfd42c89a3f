"""
Streaks router — read views over streak state plus maintenance triggers.

GET  /streaks                     — every stored record (cached)
GET  /streaks/at-risk             — live streaks that break tomorrow unless completed today
GET  /streaks/active              — live streaks with reminder priority
GET  /streaks/as-of               — every task's streak recomputed as of a date
GET  /streaks/{task_id}           — stored record (cached)
GET  /streaks/{task_id}/status    — liveness view (lapsed streaks read 0)
GET  /streaks/{task_id}/as-of     — one task recomputed as of a date
GET  /streaks/{task_id}/stats     — totals
POST /streaks/sweep               — persist lapses (daily job)
POST /streaks/rebuild             — recompute every streak from history
POST /streaks/cache/invalidate    — evict cached streaks
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from habitstreak.core.dependencies import get_streak_service
from habitstreak.core.errors import StreakNotFoundError
from habitstreak.schemas.common import ErrorResponse
from habitstreak.schemas.streaks import (
    ActiveStreakResponse,
    CacheInvalidateRequest,
    CacheInvalidateResponse,
    RebuildResponse,
    StreakComputationResponse,
    StreakRecordResponse,
    StreakStatsResponse,
    StreakStatusResponse,
    SweepResponse,
)
from habitstreak.services.streak_calculator import StreakComputation
from habitstreak.services.streak_service import ActiveStreak, StreakService

router = APIRouter(prefix="/streaks", tags=["streaks"])

_DATE_DESCRIPTION = "The caller's 'today'. Defaults to today (UTC)."


def _today() -> date:
    return datetime.now(timezone.utc).date()


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _active_to_response(a: ActiveStreak) -> ActiveStreakResponse:
    return ActiveStreakResponse(
        task_id=a.task_id,
        task_name=a.task_name,
        current_streak=a.streak.current_streak,
        best_streak=a.streak.best_streak,
        last_completion_date=a.streak.last_completion_date,
        streak_start_date=a.streak.streak_start_date,
        is_at_risk=a.is_at_risk,
        days_until_break=a.days_until_break,
        priority=a.priority,
    )


def _computation_to_response(task_id: int, as_of: date, c: StreakComputation) -> StreakComputationResponse:
    return StreakComputationResponse(
        task_id=task_id,
        as_of=as_of,
        current_streak=c.current_streak,
        best_streak=c.best_streak,
        last_completion_date=c.last_completion_date,
        streak_start_date=c.streak_start_date,
        is_active=c.is_active,
        completed_on_date=c.completed_on_date,
    )


# ---------------------------------------------------------------------------
# Collection views
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=list[StreakRecordResponse],
    summary="All stored streak records",
)
async def list_streaks(service: StreakService = Depends(get_streak_service)):
    """Longest current streak first. Lapsed streaks show their stored value until the sweep runs."""
    return [StreakRecordResponse.model_validate(r) for r in await service.get_all_streaks()]


@router.get(
    "/at-risk",
    response_model=list[ActiveStreakResponse],
    summary="Streaks that break tomorrow unless completed today",
)
async def at_risk_streaks(
    current_date: Optional[date] = Query(default=None, description=_DATE_DESCRIPTION),
    min_streak: int = Query(default=1, ge=1, description="Only streaks at least this long."),
    service: StreakService = Depends(get_streak_service),
):
    """
    Feed for reminder delivery. Each entry carries a `priority`
    (`low` < 7 days, `medium` ≥ 7, `high` ≥ 30, `critical` ≥ 100).
    """
    streaks = await service.get_at_risk_streaks(current_date or _today(), min_streak=min_streak)
    return [_active_to_response(a) for a in streaks]


@router.get(
    "/active",
    response_model=list[ActiveStreakResponse],
    summary="Live streaks",
)
async def active_streaks(
    current_date: Optional[date] = Query(default=None, description=_DATE_DESCRIPTION),
    service: StreakService = Depends(get_streak_service),
):
    return [_active_to_response(a) for a in await service.get_active_streaks(current_date or _today())]


@router.get(
    "/as-of",
    response_model=list[StreakComputationResponse],
    summary="Every task's streak as of a date",
)
async def streaks_as_of(
    target_date: Optional[date] = Query(
        default=None,
        description="Date to evaluate history at. Defaults to today (UTC).",
        examples=["2024-01-09"],
    ),
    service: StreakService = Depends(get_streak_service),
):
    """Recomputed from completion history for every enabled task. Read-only."""
    as_of = target_date or _today()
    results = await service.get_streaks_for_date(as_of)
    return [_computation_to_response(task_id, as_of, c) for task_id, c in results.items()]


# ---------------------------------------------------------------------------
# Single-task views
# ---------------------------------------------------------------------------

@router.get(
    "/{task_id}",
    response_model=StreakRecordResponse,
    summary="Stored streak record for a task",
    responses={404: {"model": ErrorResponse, "description": "No streak record yet."}},
)
async def get_streak(task_id: int, service: StreakService = Depends(get_streak_service)):
    record = await service.get_streak(task_id)
    if record is None:
        raise StreakNotFoundError(task_id)
    return StreakRecordResponse.model_validate(record)


@router.get(
    "/{task_id}/status",
    response_model=StreakStatusResponse,
    summary="Is the streak alive and at risk?",
    responses={404: {"model": ErrorResponse, "description": "Task not found."}},
)
async def streak_status(
    task_id: int,
    current_date: Optional[date] = Query(default=None, description=_DATE_DESCRIPTION),
    service: StreakService = Depends(get_streak_service),
):
    """
    A lapsed streak reads `current_streak = 0` here even before the daily
    sweep has persisted the reset. Disabled tasks return all zeros.
    """
    today = current_date or _today()
    s = await service.check_streak_status(task_id, today)
    return StreakStatusResponse(
        task_id=task_id,
        current_date=today,
        is_active=s.is_active,
        is_at_risk=s.is_at_risk,
        current_streak=s.current_streak,
        best_streak=s.best_streak,
        days_until_break=s.days_until_break,
    )


@router.get(
    "/{task_id}/as-of",
    response_model=StreakComputationResponse,
    summary="Streak recomputed as of a date",
    responses={404: {"model": ErrorResponse, "description": "Task not found."}},
)
async def streak_as_of(
    task_id: int,
    target_date: Optional[date] = Query(
        default=None,
        description="Date to evaluate history at. Defaults to today (UTC).",
        examples=["2024-01-09"],
    ),
    service: StreakService = Depends(get_streak_service),
):
    as_of = target_date or _today()
    result = await service.get_streak_for_date(task_id, as_of)
    return _computation_to_response(task_id, as_of, result)


@router.get(
    "/{task_id}/stats",
    response_model=StreakStatsResponse,
    summary="Streak totals for a task",
    responses={404: {"model": ErrorResponse, "description": "Task not found."}},
)
async def streak_stats(task_id: int, service: StreakService = Depends(get_streak_service)):
    return StreakStatsResponse.model_validate(await service.get_streak_stats(task_id))


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------

@router.post(
    "/sweep",
    response_model=SweepResponse,
    summary="Persist lapsed streaks (daily job)",
)
async def sweep(
    current_date: Optional[date] = Query(default=None, description=_DATE_DESCRIPTION),
    service: StreakService = Depends(get_streak_service),
):
    """
    Resets `current_streak` to 0 for every stored streak that is no longer
    alive. Idempotent. A task that fails is listed in `failed`; the rest
    are still processed.
    """
    return SweepResponse.model_validate(await service.check_daily_streaks(current_date or _today()))


@router.post(
    "/rebuild",
    response_model=RebuildResponse,
    summary="Recompute every streak from completion history",
)
async def rebuild(
    current_date: Optional[date] = Query(default=None, description=_DATE_DESCRIPTION),
    service: StreakService = Depends(get_streak_service),
):
    """Same pass the API runs on startup. Best streaks never decrease."""
    result = await service.recalculate_all_streaks_from_history(current_date or _today())
    return RebuildResponse.model_validate(result)


@router.post(
    "/cache/invalidate",
    response_model=CacheInvalidateResponse,
    summary="Evict cached streaks",
)
async def invalidate_cache(
    body: CacheInvalidateRequest,
    service: StreakService = Depends(get_streak_service),
):
    service.invalidate_cache(body.task_id)
    return CacheInvalidateResponse(status="ok", task_id=body.task_id)
