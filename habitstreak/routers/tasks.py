"""
Tasks router — task creation with a validated streak policy, and the
completion endpoints that drive the streak engine.

POST   /tasks                                — create task
GET    /tasks/{task_id}                      — task + policy summary
DELETE /tasks/{task_id}                      — delete task, its logs and streak
POST   /tasks/{task_id}/completions          — log a completion (atomic with streak)
POST   /tasks/{task_id}/completions/decrement — lower a day's count (atomic with streak)
"""
from __future__ import annotations

from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from habitstreak.core.dependencies import get_streak_service
from habitstreak.core.errors import TaskNotFoundError
from habitstreak.db.base import get_db
from habitstreak.models.task import Task
from habitstreak.repositories.tasks import TaskRepository
from habitstreak.schemas.common import ErrorResponse
from habitstreak.schemas.streaks import StreakRecordResponse
from habitstreak.schemas.tasks import (
    CompletionLogResponse,
    CompletionRequest,
    CompletionResponse,
    DecrementRequest,
    TaskCreate,
    TaskResponse,
)
from habitstreak.services.calendar_rules import (
    StreakPolicy,
    describe_policy,
    ensure_valid_policy,
    parse_skip_days,
)
from habitstreak.services.streak_service import CompletionResult, StreakService

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _today() -> date:
    return datetime.now(timezone.utc).date()


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _task_to_response(task: Task) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        name=task.name,
        streak_enabled=task.streak_enabled,
        streak_minimum_count=task.streak_minimum_count,
        streak_skip_weekends=task.streak_skip_weekends,
        streak_skip_days=parse_skip_days(task.streak_skip_days),
        archived_at=task.archived_at,
        created_at=task.created_at,
        policy_summary=describe_policy(StreakPolicy.from_task(task)),
    )


def _completion_to_response(result: CompletionResult) -> CompletionResponse:
    return CompletionResponse(
        log=CompletionLogResponse.model_validate(result.log._asdict()),
        streak=(
            StreakRecordResponse.model_validate(result.streak)
            if result.streak is not None else None
        ),
    )


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a task with a streak policy",
    responses={422: {"model": ErrorResponse, "description": "Invalid streak policy."}},
)
async def create_task(body: TaskCreate, db: AsyncSession = Depends(get_db)):
    """
    Create a task. The streak policy is validated first:

    - `streak_minimum_count` must be between 1 and 100.
    - every skip day must be a weekday number 0-6 (0 = Sunday).
    - at least one weekday must stay applicable.

    Violations return **422 INVALID_STREAK_POLICY** with every problem listed.
    """
    ensure_valid_policy(
        minimum_count=body.streak_minimum_count,
        skip_days=body.streak_skip_days,
        skip_weekends=body.streak_skip_weekends,
    )
    task = await TaskRepository(db).create(
        name=body.name.strip(),
        streak_enabled=body.streak_enabled,
        streak_minimum_count=body.streak_minimum_count,
        streak_skip_weekends=body.streak_skip_weekends,
        streak_skip_days=body.streak_skip_days,
    )
    await db.commit()
    return _task_to_response(task)


@router.get(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Get a task",
    responses={404: {"model": ErrorResponse, "description": "Task not found."}},
)
async def get_task(task_id: int, db: AsyncSession = Depends(get_db)):
    task = await TaskRepository(db).get_by_id(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)
    return _task_to_response(task)


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a task with its logs and streak",
    responses={404: {"model": ErrorResponse, "description": "Task not found."}},
)
async def delete_task(task_id: int, service: StreakService = Depends(get_streak_service)):
    await service.remove_task(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Completions
# ---------------------------------------------------------------------------

@router.post(
    "/{task_id}/completions",
    response_model=CompletionResponse,
    summary="Log completions for a day and update the streak",
    responses={
        404: {"model": ErrorResponse, "description": "Task not found."},
        422: {"model": ErrorResponse, "description": "Negative count."},
    },
)
async def log_completion(
    task_id: int,
    body: CompletionRequest,
    service: StreakService = Depends(get_streak_service),
):
    """
    Store `count` as the day's total and update the streak in the **same
    transaction**: either both writes land or neither does.

    Logging the same day twice is idempotent for the streak. Backfilled or
    out-of-order days trigger a full recalculation from history.
    """
    today = _today()
    result = await service.complete_task_with_streak(
        task_id=task_id,
        day=body.day or today,
        count=body.count,
        current_date=body.current_date or today,
    )
    return _completion_to_response(result)


@router.post(
    "/{task_id}/completions/decrement",
    response_model=CompletionResponse,
    summary="Lower a day's count and repair the streak",
    responses={
        404: {"model": ErrorResponse, "description": "Task not found."},
        422: {"model": ErrorResponse, "description": "Negative count."},
    },
)
async def decrement_completion(
    task_id: int,
    body: DecrementRequest,
    service: StreakService = Depends(get_streak_service),
):
    """
    Store the lowered count. When the day drops below the minimum and was
    the streak's most recent day, the streak falls back to the chain ending
    at the previous qualifying day (or resets when there is none).
    """
    result = await service.decrement_task_with_streak(
        task_id=task_id,
        day=body.day or _today(),
        new_count=body.new_count,
    )
    return _completion_to_response(result)
