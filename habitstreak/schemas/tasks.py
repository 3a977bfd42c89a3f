"""
Task and completion schemas.

POST /tasks                                 → TaskCreate / TaskResponse
POST /tasks/{id}/completions                → CompletionRequest / CompletionResponse
POST /tasks/{id}/completions/decrement      → DecrementRequest / CompletionResponse
"""
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from habitstreak.schemas.streaks import StreakRecordResponse


class TaskCreate(BaseModel):
    name: str = Field(min_length=1, max_length=256, examples=["Read 20 pages"])
    streak_enabled: bool = True
    streak_minimum_count: int = Field(
        default=1,
        description="Completions needed on a day for it to count (1-100).",
    )
    streak_skip_weekends: bool = Field(
        default=False,
        description="Saturdays and Sundays never break the streak.",
    )
    streak_skip_days: list[int] = Field(
        default_factory=list,
        description="Extra weekdays that never break the streak. 0 = Sunday … 6 = Saturday.",
        examples=[[3]],
    )


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    streak_enabled: bool
    streak_minimum_count: int
    streak_skip_weekends: bool
    streak_skip_days: list[int]
    archived_at: Optional[datetime]
    created_at: datetime
    policy_summary: str = Field(
        description="Human-readable policy, e.g. 'Minimum 2 completions per day, Weekends skipped'."
    )


class CompletionRequest(BaseModel):
    day: Optional[date] = Field(
        default=None, description="Day the activity belongs to. Defaults to today (UTC)."
    )
    count: int = Field(default=1, description="Total completions logged for the day (>= 0).")
    current_date: Optional[date] = Field(
        default=None,
        description="The caller's 'today' used for liveness. Defaults to today (UTC).",
    )


class DecrementRequest(BaseModel):
    day: Optional[date] = Field(
        default=None, description="Day whose count was lowered. Defaults to today (UTC)."
    )
    new_count: int = Field(description="The lowered total for the day (>= 0).")


class CompletionLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: date
    count: int


class CompletionResponse(BaseModel):
    log: CompletionLogResponse
    streak: Optional[StreakRecordResponse] = Field(
        description="Streak after the write; null while the task has never qualified."
    )
