"""
Unit tests for the streak calculator (pure functions, no DB).
"""
from datetime import date, timedelta

import pytest

from habitstreak.services.calendar_rules import StreakPolicy
from habitstreak.services.streak_calculator import (
    EMPTY_COMPUTATION,
    CompletionLog,
    calculate_as_of,
    calculate_from_logs,
    qualifying_days,
    trace_chain_back,
)

FRI = date(2024, 1, 5)
SAT = date(2024, 1, 6)
MON = date(2024, 1, 8)
TUE = date(2024, 1, 9)
WED = date(2024, 1, 10)
THU = date(2024, 1, 11)

DAILY = StreakPolicy()
WEEKDAYS = StreakPolicy(skip_weekends=True)


def logs(*pairs):
    return [CompletionLog(day=d, count=c) for d, c in pairs]


class TestQualifyingDays:
    def test_filters_below_minimum_and_future(self):
        policy = StreakPolicy(minimum_count=2)
        history = logs((MON, 2), (TUE, 1), (WED, 3))
        assert qualifying_days(history, policy, up_to=TUE) == [MON]

    def test_last_log_for_a_day_wins(self):
        history = logs((MON, 1), (MON, 0))
        assert qualifying_days(history, DAILY) == []

    def test_sorted_oldest_first(self):
        assert qualifying_days(logs((WED, 1), (MON, 1)), DAILY) == [MON, WED]


class TestCalculateAsOf:
    def test_empty_history(self):
        assert calculate_as_of([], MON, DAILY) == EMPTY_COMPUTATION

    def test_consecutive_run(self):
        result = calculate_as_of(logs((MON, 1), (TUE, 1), (WED, 1)), WED, DAILY)
        assert result.current_streak == 3
        assert result.best_streak == 3
        assert result.streak_start_date == MON
        assert result.last_completion_date == WED
        assert result.is_active is True
        assert result.completed_on_date is True

    def test_run_still_alive_the_next_day(self):
        result = calculate_as_of(logs((MON, 1), (TUE, 1)), WED, DAILY)
        assert result.current_streak == 2
        assert result.is_active is True
        assert result.completed_on_date is False

    def test_lapsed_run_reads_zero_but_keeps_best(self):
        result = calculate_as_of(logs((MON, 1), (TUE, 1)), THU, DAILY)
        assert result.current_streak == 0
        assert result.best_streak == 2
        assert result.is_active is False
        assert result.last_completion_date == TUE

    def test_weekend_is_transparent(self):
        history = logs((FRI, 1), (MON, 1))
        assert calculate_as_of(history, MON, WEEKDAYS).current_streak == 2
        assert calculate_as_of(history, MON, DAILY).current_streak == 1

    def test_best_from_earlier_run(self):
        history = logs(
            (date(2024, 1, 1), 1), (date(2024, 1, 2), 1), (date(2024, 1, 3), 1),
            (MON, 1),
        )
        result = calculate_as_of(history, MON, DAILY)
        assert result.current_streak == 1
        assert result.best_streak == 3
        assert result.streak_start_date == MON

    def test_qualifying_log_on_skipped_day_counts(self):
        history = logs((FRI, 1), (SAT, 1), (MON, 1))
        assert calculate_as_of(history, MON, WEEKDAYS).current_streak == 3

    def test_history_after_as_of_is_ignored(self):
        history = logs((MON, 1), (TUE, 1), (WED, 1))
        result = calculate_as_of(history, MON, DAILY)
        assert result.current_streak == 1
        assert result.last_completion_date == MON

    def test_minimum_count_boundary(self):
        policy = StreakPolicy(minimum_count=3)
        assert calculate_as_of(logs((MON, 2)), MON, policy).current_streak == 0
        assert calculate_as_of(logs((MON, 3)), MON, policy).current_streak == 1

    def test_calculate_from_logs_matches_as_of(self):
        history = logs((FRI, 1), (MON, 1), (TUE, 0))
        assert calculate_from_logs(history, WEEKDAYS, WED) == calculate_as_of(history, WED, WEEKDAYS)

    def test_long_run(self):
        start = date(2024, 1, 1)
        history = [CompletionLog(start + timedelta(days=i), 1) for i in range(45)]
        result = calculate_as_of(history, start + timedelta(days=44), DAILY)
        assert result.current_streak == 45
        assert result.streak_start_date == start


class TestTraceChainBack:
    def test_full_chain(self):
        assert trace_chain_back([WED, TUE, MON], DAILY) == (3, MON)

    def test_stops_at_gap(self):
        assert trace_chain_back([THU, WED, MON], DAILY) == (2, WED)

    def test_crosses_weekend_only_when_skipped(self):
        assert trace_chain_back([MON, FRI], WEEKDAYS) == (2, FRI)
        assert trace_chain_back([MON, FRI], DAILY) == (1, MON)

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            trace_chain_back([], DAILY)
