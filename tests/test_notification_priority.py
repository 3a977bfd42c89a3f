"""
Tests for the streak-length → reminder priority table.
"""
import pytest

from habitstreak.services.notification_priority import (
    PRIORITY_TIERS,
    PriorityLevel,
    priority_for_streak,
)


@pytest.mark.parametrize(
    "length,expected",
    [
        (0, PriorityLevel.low),
        (6, PriorityLevel.low),
        (7, PriorityLevel.medium),
        (29, PriorityLevel.medium),
        (30, PriorityLevel.high),
        (99, PriorityLevel.high),
        (100, PriorityLevel.critical),
        (365, PriorityLevel.critical),
    ],
)
def test_priority_thresholds(length, expected):
    assert priority_for_streak(length) == expected


def test_tiers_are_highest_threshold_first():
    thresholds = [t for t, _ in PRIORITY_TIERS]
    assert thresholds == sorted(thresholds, reverse=True)


def test_priority_serializes_as_string():
    assert PriorityLevel.critical.value == "critical"
