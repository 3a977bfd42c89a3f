"""
Streak Calculator — rebuild streak state from the full completion history.

This is the authority: the incremental updates in StreakService must
always agree with what calculate_from_logs() returns for the same
history. Pure functions, no I/O; the history scan is O(number of logs).

Algorithm
---------
1. Drop logs dated after the as-of date.
2. Collapse repeated logs for one date (last one in input order wins).
3. Keep qualifying days (count >= minimum_count), oldest first.
4. Walk them: a day extends the run when continues_streak(prev, day)
   holds, otherwise it starts a new run. The longest run is best_streak.
5. The final run is live when is_streak_alive(last_day, as_of).
   A lapsed run reports current_streak = 0; its dates are kept for display.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, NamedTuple, Optional, Protocol, Sequence

from habitstreak.services.calendar_rules import (
    StreakPolicy,
    continues_streak,
    is_streak_alive,
)


class LogLike(Protocol):
    day: date
    count: int


class CompletionLog(NamedTuple):
    """Plain (day, count) pair; ORM TaskLog rows satisfy the same shape."""
    day: date
    count: int


@dataclass(frozen=True)
class StreakComputation:
    current_streak: int
    best_streak: int
    last_completion_date: Optional[date]
    streak_start_date: Optional[date]
    is_active: bool
    completed_on_date: bool  # a qualifying log exists on the as-of date itself


EMPTY_COMPUTATION = StreakComputation(
    current_streak=0,
    best_streak=0,
    last_completion_date=None,
    streak_start_date=None,
    is_active=False,
    completed_on_date=False,
)


def qualifying_days(
    logs: Iterable[LogLike],
    policy: StreakPolicy,
    up_to: Optional[date] = None,
) -> list[date]:
    """Sorted (oldest first) days whose effective count meets the minimum."""
    counts: dict[date, int] = {}
    for log in logs:
        if up_to is not None and log.day > up_to:
            continue
        counts[log.day] = log.count
    return sorted(d for d, c in counts.items() if policy.qualifies(c))


def calculate_as_of(
    logs: Iterable[LogLike],
    as_of_date: date,
    policy: StreakPolicy,
) -> StreakComputation:
    """What the streak was (or would have been) on as_of_date."""
    days = qualifying_days(logs, policy, up_to=as_of_date)
    if not days:
        return EMPTY_COMPUTATION

    best = 0
    run_length = 0
    run_start = days[0]
    previous: Optional[date] = None
    for day in days:
        if previous is not None and continues_streak(previous, day, policy):
            run_length += 1
        else:
            run_length = 1
            run_start = day
        best = max(best, run_length)
        previous = day

    last = days[-1]
    active = is_streak_alive(last, as_of_date, policy)
    return StreakComputation(
        current_streak=run_length if active else 0,
        best_streak=best,
        last_completion_date=last,
        streak_start_date=run_start,
        is_active=active,
        completed_on_date=last == as_of_date,
    )


def calculate_from_logs(
    logs: Iterable[LogLike],
    policy: StreakPolicy,
    as_of_date: date,
) -> StreakComputation:
    """Full recomputation as of `as_of_date` (normally today)."""
    return calculate_as_of(logs, as_of_date, policy)


def trace_chain_back(
    days_newest_first: Sequence[date],
    policy: StreakPolicy,
) -> tuple[int, date]:
    """
    Length and start of the chain that ends at days_newest_first[0].

    Every adjacent pair is checked with continues_streak, the same test the
    forward walk uses, so sparse logs across skip days are never over-counted.
    """
    if not days_newest_first:
        raise ValueError("trace_chain_back needs at least one day")
    length = 1
    start = days_newest_first[0]
    for older in days_newest_first[1:]:
        if not continues_streak(older, start, policy):
            break
        length += 1
        start = older
    return length, start
