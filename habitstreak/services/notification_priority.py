"""
Reminder priority by streak length.

Ordered table of (min_streak_length, level), evaluated highest threshold
first; the first row the streak reaches wins.
"""
from __future__ import annotations

import enum


class PriorityLevel(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


PRIORITY_TIERS: tuple[tuple[int, PriorityLevel], ...] = (
    (100, PriorityLevel.critical),
    (30, PriorityLevel.high),
    (7, PriorityLevel.medium),
    (0, PriorityLevel.low),
)


def priority_for_streak(streak_length: int) -> PriorityLevel:
    for threshold, level in PRIORITY_TIERS:
        if streak_length >= threshold:
            return level
    return PriorityLevel.low
