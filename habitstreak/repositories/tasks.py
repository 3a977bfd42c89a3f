"""
Task Repository — the engine reads streak policy and liveness from here.
"""
from __future__ import annotations

from typing import Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from habitstreak.models.task import Task
from habitstreak.services.calendar_rules import dump_skip_days


class TaskRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, task_id: int) -> Optional[Task]:
        return await self.db.get(Task, task_id)

    async def get_all(self) -> List[Task]:
        result = await self.db.execute(select(Task).order_by(Task.id))
        return list(result.scalars().all())

    async def get_by_ids(self, task_ids: Iterable[int]) -> List[Task]:
        ids = list(task_ids)
        if not ids:
            return []
        result = await self.db.execute(select(Task).where(Task.id.in_(ids)))
        return list(result.scalars().all())

    async def create(
        self,
        name: str,
        streak_enabled: bool = True,
        streak_minimum_count: int = 1,
        streak_skip_weekends: bool = False,
        streak_skip_days: Iterable[int] = (),
    ) -> Task:
        task = Task(
            name=name,
            streak_enabled=streak_enabled,
            streak_minimum_count=streak_minimum_count,
            streak_skip_weekends=streak_skip_weekends,
            streak_skip_days=dump_skip_days(streak_skip_days),
        )
        self.db.add(task)
        await self.db.flush()
        await self.db.refresh(task)
        return task

    async def delete(self, task_id: int) -> None:
        await self.db.execute(delete(Task).where(Task.id == task_id))
