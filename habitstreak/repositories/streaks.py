"""
Streak Record Store — typed key-value surface over task_streaks.

No business rules live here. Rows leave this module as frozen StreakRecord
snapshots so callers (and the cache) never hold session-bound ORM objects.
Database errors propagate to the caller unchanged.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from habitstreak.core.errors import StreakNotFoundError
from habitstreak.models.streak import TaskStreak

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakRecord:
    task_id: int
    current_streak: int
    best_streak: int
    last_completion_date: Optional[date]
    streak_start_date: Optional[date]

    @classmethod
    def from_row(cls, row: TaskStreak) -> "StreakRecord":
        return cls(
            task_id=row.task_id,
            current_streak=row.current_streak,
            best_streak=row.best_streak,
            last_completion_date=row.last_completion_date,
            streak_start_date=row.streak_start_date,
        )


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


class StreakRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _row(self, task_id: int) -> Optional[TaskStreak]:
        result = await self.db.execute(
            select(TaskStreak).where(TaskStreak.task_id == task_id)
        )
        return result.scalar_one_or_none()

    async def get_by_task_id(self, task_id: int) -> Optional[StreakRecord]:
        row = await self._row(task_id)
        return StreakRecord.from_row(row) if row is not None else None

    async def get_all(self) -> List[StreakRecord]:
        """All records, longest current streak first."""
        result = await self.db.execute(
            select(TaskStreak).order_by(TaskStreak.current_streak.desc(), TaskStreak.task_id)
        )
        return [StreakRecord.from_row(row) for row in result.scalars().all()]

    async def create(
        self,
        task_id: int,
        current_streak: int,
        best_streak: int,
        last_completion_date: Optional[date],
        streak_start_date: Optional[date],
    ) -> StreakRecord:
        row = TaskStreak(
            task_id=task_id,
            current_streak=current_streak,
            best_streak=best_streak,
            last_completion_date=last_completion_date,
            streak_start_date=streak_start_date,
        )
        self.db.add(row)
        await self.db.flush()
        logger.debug("Streak created task_id=%s current=%s", task_id, current_streak)
        return StreakRecord.from_row(row)

    async def update(
        self,
        task_id: int,
        *,
        current_streak: int = UNSET,
        best_streak: int = UNSET,
        last_completion_date: Optional[date] = UNSET,
        streak_start_date: Optional[date] = UNSET,
    ) -> StreakRecord:
        """
        Partial update: only fields passed explicitly are written, so
        `streak_start_date=None` clears the column while omitting it keeps it.

        Raises:
            StreakNotFoundError: if the task has no streak row.
        """
        row = await self._row(task_id)
        if row is None:
            raise StreakNotFoundError(task_id)

        if current_streak is not UNSET:
            row.current_streak = current_streak
        if best_streak is not UNSET:
            row.best_streak = best_streak
        if last_completion_date is not UNSET:
            row.last_completion_date = last_completion_date
        if streak_start_date is not UNSET:
            row.streak_start_date = streak_start_date

        await self.db.flush()
        logger.debug(
            "Streak updated task_id=%s current=%s best=%s",
            task_id, row.current_streak, row.best_streak,
        )
        return StreakRecord.from_row(row)

    async def delete(self, task_id: int) -> None:
        await self.db.execute(delete(TaskStreak).where(TaskStreak.task_id == task_id))
