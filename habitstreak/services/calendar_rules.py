"""
Calendar Rule Evaluator — which days count for a task's streak.

Weekday numbering: 0 = Sunday, 1 = Monday … 6 = Saturday.

A day is *applicable* unless the policy skips it (weekend with
skip_weekends, or its weekday listed in skip_days). Continuity only
breaks on applicable days: a missed skipped day never ends a streak.

Public API
----------
StreakPolicy.from_task(task)                         -> StreakPolicy
is_applicable_day(day, policy)                       -> bool
continues_streak(previous_date, new_date, policy)    -> bool
is_streak_alive(last_completion, current_date, ...)  -> bool
next_required_date(from_date, policy)                -> date
days_until_break(last_completion, current_date, ...) -> int
validate_policy(minimum_count, skip_days, ...)       -> list[str]
describe_policy(policy)                              -> str

All pure. Disabled policies are short-circuited by the caller; nothing
here looks at policy.enabled.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional

from habitstreak.core.errors import InvalidStreakPolicyError

ONE_DAY = timedelta(days=1)

SUNDAY = 0
SATURDAY = 6
WEEKEND = frozenset({SUNDAY, SATURDAY})
ALL_WEEKDAYS = frozenset(range(7))

MAX_MINIMUM_COUNT = 100


def weekday_of(day: date) -> int:
    """Weekday with Sunday as 0 (date.weekday() has Monday as 0)."""
    return (day.weekday() + 1) % 7


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StreakPolicy:
    enabled: bool = True
    minimum_count: int = 1
    skip_weekends: bool = False
    skip_days: frozenset[int] = field(default_factory=frozenset)

    @property
    def skipped_weekdays(self) -> frozenset[int]:
        if self.skip_weekends:
            return self.skip_days | WEEKEND
        return self.skip_days

    def qualifies(self, count: int) -> bool:
        return count >= self.minimum_count

    @classmethod
    def from_task(cls, task) -> "StreakPolicy":
        return cls(
            enabled=bool(task.streak_enabled),
            minimum_count=task.streak_minimum_count or 1,
            skip_weekends=bool(task.streak_skip_weekends),
            skip_days=frozenset(parse_skip_days(task.streak_skip_days)),
        )


def parse_skip_days(raw: Optional[str]) -> list[int]:
    if not raw:
        return []
    try:
        result = json.loads(raw)
    except (ValueError, TypeError):
        return []
    if not isinstance(result, list):
        return []
    return [d for d in result if isinstance(d, int)]


def dump_skip_days(days: Iterable[int]) -> str:
    return json.dumps(sorted(set(days)))


# ---------------------------------------------------------------------------
# Day rules
# ---------------------------------------------------------------------------

def is_applicable_day(day: date, policy: StreakPolicy) -> bool:
    return weekday_of(day) not in policy.skipped_weekdays


def continues_streak(previous_date: date, new_date: date, policy: StreakPolicy) -> bool:
    """
    True iff new_date is after previous_date and every day strictly between
    them is skipped by the policy. Same-day is the caller's business.
    """
    if new_date <= previous_date:
        return False
    gap = (new_date - previous_date).days - 1
    # Any weekday that can be applicable shows up within one week.
    for offset in range(1, min(gap, 7) + 1):
        if is_applicable_day(previous_date + timedelta(days=offset), policy):
            return False
    return True


def is_streak_alive(last_completion: date, current_date: date, policy: StreakPolicy) -> bool:
    """No unskipped day has gone by since last_completion, as seen on current_date."""
    return current_date == last_completion or continues_streak(last_completion, current_date, policy)


def next_required_date(from_date: date, policy: StreakPolicy) -> date:
    """First applicable day strictly after from_date."""
    for offset in range(1, 8):
        candidate = from_date + timedelta(days=offset)
        if is_applicable_day(candidate, policy):
            return candidate
    raise InvalidStreakPolicyError(["Policy skips every day of the week."])


def days_until_break(last_completion: date, current_date: date, policy: StreakPolicy) -> int:
    """
    Calendar days from current_date until the streak reads as lapsed.

    0 — already lapsed on current_date.
    1 — at risk: the required day is today, missing it breaks the streak tomorrow.
    A streak completed on current_date always has at least 2.
    """
    if not is_streak_alive(last_completion, current_date, policy):
        return 0
    lapse_date = next_required_date(last_completion, policy) + ONE_DAY
    return (lapse_date - current_date).days


# ---------------------------------------------------------------------------
# Validation / display
# ---------------------------------------------------------------------------

def validate_policy(
    minimum_count: Optional[int] = None,
    skip_days: Optional[Iterable[int]] = None,
    skip_weekends: bool = False,
) -> list[str]:
    """Return a list of human-readable problems; empty means valid."""
    errors: list[str] = []

    if minimum_count is not None:
        if isinstance(minimum_count, bool) or not isinstance(minimum_count, int) or minimum_count < 1:
            errors.append("Minimum count must be a positive integer")
        elif minimum_count > MAX_MINIMUM_COUNT:
            errors.append(f"Minimum count cannot exceed {MAX_MINIMUM_COUNT}")

    days = list(skip_days or [])
    for d in days:
        if isinstance(d, bool) or not isinstance(d, int) or d not in ALL_WEEKDAYS:
            errors.append(f"Invalid skip day: {d!r}. Expected a weekday number 0-6 (0 = Sunday)")

    skipped = {d for d in days if d in ALL_WEEKDAYS}
    if skip_weekends:
        skipped |= WEEKEND
    if skipped >= ALL_WEEKDAYS:
        errors.append("Policy must leave at least one applicable weekday")

    return errors


def ensure_valid_policy(
    minimum_count: Optional[int] = None,
    skip_days: Optional[Iterable[int]] = None,
    skip_weekends: bool = False,
) -> None:
    errors = validate_policy(minimum_count, skip_days, skip_weekends)
    if errors:
        raise InvalidStreakPolicyError(errors)


_WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def describe_policy(policy: StreakPolicy) -> str:
    if not policy.enabled:
        return "Streak tracking disabled"

    n = policy.minimum_count
    parts = [f"Minimum {n} completion{'s' if n > 1 else ''} per day"]
    if policy.skip_weekends:
        parts.append("Weekends skipped")
    extra = sorted(policy.skip_days - WEEKEND) if policy.skip_weekends else sorted(policy.skip_days)
    if extra:
        parts.append("Skips " + ", ".join(_WEEKDAY_NAMES[d] for d in extra))
    return ", ".join(parts)
