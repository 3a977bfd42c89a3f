"""
Log Repository — completion history per task (task_logs).
"""
from __future__ import annotations

from datetime import date
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from habitstreak.models.task_log import TaskLog
from habitstreak.services.streak_calculator import CompletionLog


class LogRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_task(self, task_id: int) -> List[CompletionLog]:
        """Every log for the task, oldest day first."""
        result = await self.db.execute(
            select(TaskLog.day, TaskLog.count)
            .where(TaskLog.task_id == task_id)
            .order_by(TaskLog.day)
        )
        return [CompletionLog(day=row.day, count=row.count) for row in result.all()]

    async def create_or_update(self, task_id: int, day: date, count: int) -> CompletionLog:
        """Upsert by (task_id, day); the new count replaces the old one."""
        result = await self.db.execute(
            select(TaskLog).where(TaskLog.task_id == task_id, TaskLog.day == day)
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = TaskLog(task_id=task_id, day=day, count=count)
            self.db.add(row)
        else:
            row.count = count
        await self.db.flush()
        return CompletionLog(day=row.day, count=row.count)

    async def delete_for_task(self, task_id: int) -> None:
        await self.db.execute(delete(TaskLog).where(TaskLog.task_id == task_id))
