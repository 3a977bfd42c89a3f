"""
Streak schemas.

GET  /streaks, /streaks/{id}            → StreakRecordResponse
GET  /streaks/{id}/status               → StreakStatusResponse
GET  /streaks/as-of, /streaks/{id}/as-of → StreakComputationResponse
GET  /streaks/{id}/stats                → StreakStatsResponse
GET  /streaks/active, /streaks/at-risk  → ActiveStreakResponse
POST /streaks/sweep                     → SweepResponse
POST /streaks/rebuild                   → RebuildResponse
POST /streaks/cache/invalidate          → CacheInvalidateRequest / CacheInvalidateResponse
"""
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from habitstreak.services.notification_priority import PriorityLevel


class StreakRecordResponse(BaseModel):
    """The stored record. current_streak may still be stale until the daily sweep."""
    model_config = ConfigDict(from_attributes=True)

    task_id: int
    current_streak: int
    best_streak: int
    last_completion_date: Optional[date]
    streak_start_date: Optional[date]


class StreakStatusResponse(BaseModel):
    task_id: int
    current_date: date
    is_active: bool
    is_at_risk: bool = Field(description="True when missing today breaks the streak tomorrow.")
    current_streak: int = Field(description="0 whenever the streak is not active.")
    best_streak: int
    days_until_break: int = Field(
        description="Calendar days until the streak lapses; 1 means at risk, 0 means lapsed."
    )


class StreakComputationResponse(BaseModel):
    """Streak recomputed from history as of a date. Nothing is persisted."""
    model_config = ConfigDict(from_attributes=True)

    task_id: int
    as_of: date
    current_streak: int
    best_streak: int
    last_completion_date: Optional[date]
    streak_start_date: Optional[date]
    is_active: bool
    completed_on_date: bool = Field(description="A qualifying completion exists on as_of itself.")


class StreakStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    task_id: int
    current_streak: int
    best_streak: int
    total_completions: int = Field(description="Sum of every logged count for the task.")
    last_completion_date: Optional[date]
    streak_start_date: Optional[date]


class ActiveStreakResponse(BaseModel):
    task_id: int
    task_name: str
    current_streak: int
    best_streak: int
    last_completion_date: Optional[date]
    streak_start_date: Optional[date]
    is_at_risk: bool
    days_until_break: int
    priority: PriorityLevel = Field(description="Reminder priority by streak length.")


class SweepResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_date: date
    checked: int
    reset: list[int] = Field(description="Task ids whose streak lapsed and was reset.")
    failed: list[int] = Field(description="Task ids the sweep could not process.")


class RebuildResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_date: date
    processed: int
    recalculated: int = Field(description="Tasks whose streak record was written.")
    failed: list[int]


class CacheInvalidateRequest(BaseModel):
    task_id: Optional[int] = Field(
        default=None, description="Evict one task; omit to clear the whole cache."
    )


class CacheInvalidateResponse(BaseModel):
    status: str
    task_id: Optional[int]
