"""
Streak Service — every externally visible streak behaviour.

Write paths
-----------
record_completion(task_id, day, count, current_date)        incremental update
handle_completion_decrement(task_id, day, new_count)         tip-of-chain repair
reset_streak(task_id)                                        current -> 0
complete_task_with_streak(task_id, day, count, current_date) log + streak, one transaction
decrement_task_with_streak(task_id, day, new_count)          log + repair, one transaction
remove_task(task_id)                                         cascade delete
check_daily_streaks(current_date)                            sweep: persist lapses
recalculate_all_streaks_from_history(current_date)           rebuild from history

Read paths
----------
get_streak / get_all_streaks (cached), check_streak_status,
get_streak_for_date / get_streaks_for_date (as-of, never mutate),
get_streak_stats, get_active_streaks, get_at_risk_streaks.

Rules
-----
- "Today" is always a parameter; nothing here reads the clock.
- Mutations serialize per task on an asyncio.Lock; reads don't lock.
- Every mutation runs inside with_transaction(); the cache is evicted
  only after the commit succeeded.
- The cache is a copy. Write paths read the record from the database,
  never from the cache.
- Persistence errors propagate from user-facing paths. The sweep and the
  rebuild log a failing task and move on.
"""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from functools import partial
from typing import Any, Hashable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from habitstreak.core.errors import InvalidCompletionCountError, TaskNotFoundError
from habitstreak.db.base import with_transaction
from habitstreak.models.task import Task
from habitstreak.repositories.logs import LogRepository
from habitstreak.repositories.streaks import StreakRecord, StreakRepository
from habitstreak.repositories.tasks import TaskRepository
from habitstreak.services.calendar_rules import (
    ONE_DAY,
    StreakPolicy,
    continues_streak,
    days_until_break,
    is_streak_alive,
)
from habitstreak.services.notification_priority import PriorityLevel, priority_for_streak
from habitstreak.services.streak_cache import StreakCache, TTLStreakCache
from habitstreak.services.streak_calculator import (
    EMPTY_COMPUTATION,
    CompletionLog,
    StreakComputation,
    calculate_as_of,
    calculate_from_logs,
    qualifying_days,
    trace_chain_back,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StreakStatus:
    is_active: bool
    is_at_risk: bool
    current_streak: int   # 0 whenever not active, even before the sweep ran
    best_streak: int
    days_until_break: int


@dataclass(frozen=True)
class StreakStats:
    task_id: int
    current_streak: int
    best_streak: int
    total_completions: int
    last_completion_date: Optional[date]
    streak_start_date: Optional[date]


@dataclass(frozen=True)
class ActiveStreak:
    task_id: int
    task_name: str
    streak: StreakRecord
    is_at_risk: bool
    days_until_break: int
    priority: PriorityLevel


@dataclass(frozen=True)
class CompletionResult:
    log: CompletionLog
    streak: Optional[StreakRecord]


@dataclass
class SweepResult:
    current_date: date
    checked: int = 0
    reset: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


@dataclass
class RebuildResult:
    current_date: date
    processed: int = 0
    recalculated: int = 0
    failed: list[int] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ALL_STREAKS_KEY = "streaks:all"


def _task_key(task_id: int) -> tuple[str, int]:
    return ("streak", task_id)


def _ensure_count(count: int, day: date) -> None:
    if count < 0:
        raise InvalidCompletionCountError(count=count, day=day)


def _is_live_task(task: Task) -> bool:
    return bool(task.streak_enabled) and task.archived_at is None


def status_for_record(
    record: Optional[StreakRecord],
    policy: StreakPolicy,
    current_date: date,
) -> StreakStatus:
    """Fail-safe read view: a lapsed streak reads as 0 before the sweep persists it."""
    if record is None or record.current_streak == 0 or record.last_completion_date is None:
        return StreakStatus(
            is_active=False,
            is_at_risk=False,
            current_streak=0,
            best_streak=record.best_streak if record else 0,
            days_until_break=0,
        )

    active = is_streak_alive(record.last_completion_date, current_date, policy)
    remaining = days_until_break(record.last_completion_date, current_date, policy) if active else 0
    return StreakStatus(
        is_active=active,
        is_at_risk=active and remaining == 1,
        current_streak=record.current_streak if active else 0,
        best_streak=record.best_streak,
        days_until_break=remaining,
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class StreakService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: Optional[StreakCache] = None,
    ):
        self._session_factory = session_factory
        self._cache: StreakCache = cache if cache is not None else TTLStreakCache()
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        # Bumped on every eviction; a read that raced a write must not
        # repopulate the cache with what it fetched before the commit.
        self._generation = 0

    # -- cache ---------------------------------------------------------------

    def invalidate_cache(self, task_id: Optional[int] = None) -> None:
        """Evict one task plus the collection entry, or everything when task_id is None."""
        self._generation += 1
        if task_id is None:
            self._cache.clear()
            return
        self._cache.invalidate(_task_key(task_id))
        self._cache.invalidate(ALL_STREAKS_KEY)

    def _cache_fill(self, key: Hashable, value: Any, generation: int) -> None:
        if generation == self._generation:
            self._cache.set(key, value)

    # -- reads ---------------------------------------------------------------

    async def get_streak(self, task_id: int) -> Optional[StreakRecord]:
        cached = self._cache.get(_task_key(task_id))
        if cached is not None:
            return cached

        generation = self._generation
        async with self._session_factory() as db:
            record = await StreakRepository(db).get_by_task_id(task_id)
        if record is not None:
            self._cache_fill(_task_key(task_id), record, generation)
        return record

    async def get_all_streaks(self) -> list[StreakRecord]:
        cached = self._cache.get(ALL_STREAKS_KEY)
        if cached is not None:
            return list(cached)

        generation = self._generation
        async with self._session_factory() as db:
            records = await StreakRepository(db).get_all()
        self._cache_fill(ALL_STREAKS_KEY, tuple(records), generation)
        return records

    @staticmethod
    async def _require_task(db: AsyncSession, task_id: int) -> Task:
        task = await TaskRepository(db).get_by_id(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def _load_task(self, task_id: int) -> Task:
        async with self._session_factory() as db:
            return await self._require_task(db, task_id)

    async def check_streak_status(self, task_id: int, current_date: date) -> StreakStatus:
        task = await self._load_task(task_id)
        policy = StreakPolicy.from_task(task)
        if not policy.enabled:
            return StreakStatus(False, False, 0, 0, 0)

        record = await self.get_streak(task_id)
        return status_for_record(record, policy, current_date)

    async def get_streak_for_date(self, task_id: int, target_date: date) -> StreakComputation:
        """What the streak looked like on target_date, from history. Writes nothing."""
        async with self._session_factory() as db:
            task = await self._require_task(db, task_id)
            policy = StreakPolicy.from_task(task)
            if not policy.enabled:
                return EMPTY_COMPUTATION
            logs = await LogRepository(db).find_by_task(task_id)
        return calculate_as_of(logs, target_date, policy)

    async def get_streaks_for_date(self, target_date: date) -> dict[int, StreakComputation]:
        """As-of streaks for every enabled, non-archived task."""
        results: dict[int, StreakComputation] = {}
        async with self._session_factory() as db:
            logs_repo = LogRepository(db)
            for task in await TaskRepository(db).get_all():
                if not _is_live_task(task):
                    continue
                logs = await logs_repo.find_by_task(task.id)
                results[task.id] = calculate_as_of(logs, target_date, StreakPolicy.from_task(task))
        logger.debug("As-of streaks computed date=%s tasks=%s", target_date, len(results))
        return results

    async def get_streak_stats(self, task_id: int) -> StreakStats:
        async with self._session_factory() as db:
            if await TaskRepository(db).get_by_id(task_id) is None:
                raise TaskNotFoundError(task_id)
            record = await StreakRepository(db).get_by_task_id(task_id)
            logs = await LogRepository(db).find_by_task(task_id)

        return StreakStats(
            task_id=task_id,
            current_streak=record.current_streak if record else 0,
            best_streak=record.best_streak if record else 0,
            total_completions=sum(log.count for log in logs),
            last_completion_date=record.last_completion_date if record else None,
            streak_start_date=record.streak_start_date if record else None,
        )

    async def get_active_streaks(self, current_date: date) -> list[ActiveStreak]:
        """Stored streaks still alive on current_date, longest first."""
        records = [r for r in await self.get_all_streaks() if r.current_streak > 0]
        if not records:
            return []

        async with self._session_factory() as db:
            tasks = await TaskRepository(db).get_by_ids(r.task_id for r in records)
        task_map = {t.id: t for t in tasks}

        active: list[ActiveStreak] = []
        for record in records:
            task = task_map.get(record.task_id)
            if task is None or not _is_live_task(task):
                continue
            status = status_for_record(record, StreakPolicy.from_task(task), current_date)
            if not status.is_active:
                continue
            active.append(ActiveStreak(
                task_id=task.id,
                task_name=task.name,
                streak=record,
                is_at_risk=status.is_at_risk,
                days_until_break=status.days_until_break,
                priority=priority_for_streak(record.current_streak),
            ))

        active.sort(key=lambda a: a.streak.current_streak, reverse=True)
        logger.debug("Active streaks loaded date=%s count=%s", current_date, len(active))
        return active

    async def get_at_risk_streaks(self, current_date: date, min_streak: int = 1) -> list[ActiveStreak]:
        """Active streaks that break tomorrow unless completed today."""
        return [
            a for a in await self.get_active_streaks(current_date)
            if a.is_at_risk and a.streak.current_streak >= min_streak
        ]

    # -- incremental completion ---------------------------------------------

    async def _apply_completion(
        self,
        db: AsyncSession,
        task_id: int,
        day: date,
        count: int,
        current_date: date,
    ) -> tuple[Optional[StreakRecord], bool]:
        task = await self._require_task(db, task_id)
        policy = StreakPolicy.from_task(task)

        streaks = StreakRepository(db)
        existing = await streaks.get_by_task_id(task_id)

        if not policy.enabled:
            logger.debug("Streaks disabled task_id=%s", task_id)
            return existing, False

        if not policy.qualifies(count):
            logger.debug(
                "Count below minimum task_id=%s count=%s minimum=%s",
                task_id, count, policy.minimum_count,
            )
            return existing, False

        if existing is None:
            created = await streaks.create(
                task_id,
                current_streak=1,
                best_streak=1,
                last_completion_date=day,
                streak_start_date=day,
            )
            logger.info("Streak started task_id=%s day=%s", task_id, day)
            return created, True

        last = existing.last_completion_date
        if existing.current_streak > 0 and last is not None:
            if last == day:
                return existing, False

            if continues_streak(last, day, policy) and is_streak_alive(day, current_date, policy):
                current = existing.current_streak + 1
                updated = await streaks.update(
                    task_id,
                    current_streak=current,
                    best_streak=max(existing.best_streak, current),
                    last_completion_date=day,
                )
                logger.debug("Streak continued task_id=%s day=%s current=%s", task_id, day, current)
                return updated, True

        # Gap, backfill, or nothing live to extend: rebuild from history.
        logs = await LogRepository(db).find_by_task(task_id)
        logs.append(CompletionLog(day=day, count=count))
        computed = calculate_from_logs(logs, policy, current_date)
        updated = await self._overwrite(streaks, task_id, existing, computed)
        logger.info(
            "Streak recalculated task_id=%s day=%s previous=%s current=%s",
            task_id, day, existing.current_streak, updated.current_streak,
        )
        return updated, True

    @staticmethod
    async def _overwrite(
        streaks: StreakRepository,
        task_id: int,
        existing: Optional[StreakRecord],
        computed: StreakComputation,
    ) -> StreakRecord:
        """Persist a recomputation; best streak never goes down."""
        start = computed.streak_start_date if computed.current_streak > 0 else None
        if existing is None:
            return await streaks.create(
                task_id,
                current_streak=computed.current_streak,
                best_streak=computed.best_streak,
                last_completion_date=computed.last_completion_date,
                streak_start_date=start,
            )
        return await streaks.update(
            task_id,
            current_streak=computed.current_streak,
            best_streak=max(existing.best_streak, computed.best_streak),
            last_completion_date=computed.last_completion_date,
            streak_start_date=start,
        )

    async def record_completion(
        self,
        task_id: int,
        day: date,
        count: int,
        current_date: date,
    ) -> Optional[StreakRecord]:
        """
        Update the streak for a completion of `count` on `day`.

        Expects the log itself to be written by the caller; use
        complete_task_with_streak() to do both atomically.
        Returns the record, or None while the task has no streak yet.
        """
        _ensure_count(count, day)
        async with self._locks[task_id]:
            record, changed = await with_transaction(
                self._session_factory,
                partial(self._apply_completion, task_id=task_id, day=day,
                        count=count, current_date=current_date),
            )
            if changed:
                self.invalidate_cache(task_id)
        return record

    # -- decrement -----------------------------------------------------------

    async def _apply_decrement(
        self,
        db: AsyncSession,
        task_id: int,
        day: date,
        new_count: int,
    ) -> tuple[Optional[StreakRecord], bool]:
        task = await self._require_task(db, task_id)
        policy = StreakPolicy.from_task(task)

        streaks = StreakRepository(db)
        record = await streaks.get_by_task_id(task_id)
        if record is None or not policy.enabled:
            return record, False

        # Only losing the most recent qualifying day can change anything.
        if policy.qualifies(new_count) or record.last_completion_date != day:
            return record, False

        logs = await LogRepository(db).find_by_task(task_id)
        earlier = list(reversed(qualifying_days(logs, policy, up_to=day - ONE_DAY)))

        if record.current_streak == 0:
            # Lapsed chain stays at 0; only the last completion moves back.
            updated = await streaks.update(
                task_id,
                last_completion_date=earlier[0] if earlier else None,
                streak_start_date=None,
            )
            logger.debug(
                "Last completion moved back task_id=%s day=%s last=%s",
                task_id, day, updated.last_completion_date,
            )
            return updated, True

        if not earlier:
            updated = await streaks.update(
                task_id, current_streak=0, last_completion_date=None, streak_start_date=None
            )
            logger.info("Streak reset after decrement task_id=%s day=%s", task_id, day)
            return updated, True

        length, start = trace_chain_back(earlier, policy)
        updated = await streaks.update(
            task_id,
            current_streak=length,
            best_streak=max(record.best_streak, length),
            last_completion_date=earlier[0],
            streak_start_date=start,
        )
        logger.info(
            "Streak reverted task_id=%s day=%s current=%s last=%s",
            task_id, day, length, earlier[0],
        )
        return updated, True

    async def handle_completion_decrement(
        self,
        task_id: int,
        day: date,
        new_count: int,
    ) -> Optional[StreakRecord]:
        """Repair the streak after the count logged on `day` was lowered to new_count."""
        _ensure_count(new_count, day)
        async with self._locks[task_id]:
            record, changed = await with_transaction(
                self._session_factory,
                partial(self._apply_decrement, task_id=task_id, day=day, new_count=new_count),
            )
            if changed:
                self.invalidate_cache(task_id)
        return record

    async def reset_streak(self, task_id: int) -> StreakRecord:
        async def _reset(db: AsyncSession) -> StreakRecord:
            return await StreakRepository(db).update(
                task_id, current_streak=0, streak_start_date=None
            )

        async with self._locks[task_id]:
            record = await with_transaction(self._session_factory, _reset)
            self.invalidate_cache(task_id)
        logger.info("Streak reset task_id=%s", task_id)
        return record

    # -- atomic paths --------------------------------------------------------

    async def complete_task_with_streak(
        self,
        task_id: int,
        day: date,
        count: int,
        current_date: date,
    ) -> CompletionResult:
        """Write the completion log and update the streak; both commit or neither does."""
        _ensure_count(count, day)

        async def _work(db: AsyncSession) -> tuple[CompletionResult, bool]:
            await self._require_task(db, task_id)
            log = await LogRepository(db).create_or_update(task_id, day, count)
            streak, changed = await self._apply_completion(db, task_id, day, count, current_date)
            return CompletionResult(log=log, streak=streak), changed

        async with self._locks[task_id]:
            result, changed = await with_transaction(self._session_factory, _work)
            if changed:
                self.invalidate_cache(task_id)

        logger.info(
            "Completion saved task_id=%s day=%s count=%s current=%s",
            task_id, day, count, result.streak.current_streak if result.streak else 0,
        )
        return result

    async def decrement_task_with_streak(
        self,
        task_id: int,
        day: date,
        new_count: int,
    ) -> CompletionResult:
        """Lower the logged count for `day` and repair the streak in one transaction."""
        _ensure_count(new_count, day)

        async def _work(db: AsyncSession) -> tuple[CompletionResult, bool]:
            await self._require_task(db, task_id)
            log = await LogRepository(db).create_or_update(task_id, day, new_count)
            streak, changed = await self._apply_decrement(db, task_id, day, new_count)
            return CompletionResult(log=log, streak=streak), changed

        async with self._locks[task_id]:
            result, changed = await with_transaction(self._session_factory, _work)
            if changed:
                self.invalidate_cache(task_id)
        return result

    async def remove_task(self, task_id: int) -> None:
        """Delete the task with its streak record and logs."""
        async def _work(db: AsyncSession) -> None:
            tasks = TaskRepository(db)
            if await tasks.get_by_id(task_id) is None:
                raise TaskNotFoundError(task_id)
            await StreakRepository(db).delete(task_id)
            await LogRepository(db).delete_for_task(task_id)
            await tasks.delete(task_id)

        async with self._locks[task_id]:
            await with_transaction(self._session_factory, _work)
            self.invalidate_cache(task_id)
        self._locks.pop(task_id, None)
        logger.info("Task removed task_id=%s", task_id)

    # -- maintenance passes --------------------------------------------------

    async def _expire_if_lapsed(self, db: AsyncSession, task_id: int, current_date: date) -> bool:
        task = await TaskRepository(db).get_by_id(task_id)
        if task is None or not task.streak_enabled:
            return False

        streaks = StreakRepository(db)
        record = await streaks.get_by_task_id(task_id)
        if record is None or record.current_streak == 0 or record.last_completion_date is None:
            return False

        policy = StreakPolicy.from_task(task)
        if is_streak_alive(record.last_completion_date, current_date, policy):
            return False

        await streaks.update(task_id, current_streak=0, streak_start_date=None)
        logger.info(
            "Streak lapsed task_id=%s previous=%s last_completion=%s",
            task_id, record.current_streak, record.last_completion_date,
        )
        return True

    async def check_daily_streaks(self, current_date: date) -> SweepResult:
        """Persist current_streak = 0 for every stored streak that lapsed by current_date."""
        result = SweepResult(current_date=current_date)

        async with self._session_factory() as db:
            candidates = [
                r.task_id for r in await StreakRepository(db).get_all() if r.current_streak > 0
            ]

        for task_id in candidates:
            result.checked += 1
            try:
                async with self._locks[task_id]:
                    lapsed = await with_transaction(
                        self._session_factory,
                        partial(self._expire_if_lapsed, task_id=task_id, current_date=current_date),
                    )
                    if lapsed:
                        self.invalidate_cache(task_id)
            except Exception:
                logger.exception("Daily sweep failed task_id=%s", task_id)
                result.failed.append(task_id)
                continue
            if lapsed:
                result.reset.append(task_id)

        logger.info(
            "Daily sweep done date=%s checked=%s reset=%s failed=%s",
            current_date, result.checked, len(result.reset), len(result.failed),
        )
        return result

    async def _rebuild_task(self, db: AsyncSession, task_id: int, current_date: date) -> bool:
        task = await TaskRepository(db).get_by_id(task_id)
        if task is None or not _is_live_task(task):
            return False

        logs = await LogRepository(db).find_by_task(task_id)
        computed = calculate_from_logs(logs, StreakPolicy.from_task(task), current_date)

        streaks = StreakRepository(db)
        existing = await streaks.get_by_task_id(task_id)
        if existing is None and computed.best_streak == 0:
            return False

        record = await self._overwrite(streaks, task_id, existing, computed)
        logger.debug(
            "Streak rebuilt task_id=%s current=%s best=%s active=%s",
            task_id, record.current_streak, record.best_streak, computed.is_active,
        )
        return True

    async def recalculate_all_streaks_from_history(self, current_date: date) -> RebuildResult:
        """
        Startup consistency pass. Never raises: a task that fails is logged
        and skipped, a partial rebuild beats none.
        """
        result = RebuildResult(current_date=current_date)
        logger.info("Recalculating all streaks from history date=%s", current_date)

        try:
            async with self._session_factory() as db:
                task_ids = [t.id for t in await TaskRepository(db).get_all() if _is_live_task(t)]
        except Exception:
            logger.exception("Streak rebuild could not list tasks")
            return result

        for task_id in task_ids:
            try:
                async with self._locks[task_id]:
                    wrote = await with_transaction(
                        self._session_factory,
                        partial(self._rebuild_task, task_id=task_id, current_date=current_date),
                    )
            except Exception:
                logger.exception("Streak rebuild failed task_id=%s", task_id)
                result.failed.append(task_id)
                continue
            result.processed += 1
            if wrote:
                result.recalculated += 1

        self.invalidate_cache()
        logger.info(
            "Streak rebuild done date=%s processed=%s recalculated=%s failed=%s",
            current_date, result.processed, result.recalculated, len(result.failed),
        )
        return result
