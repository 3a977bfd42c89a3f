"""
Tests for error handling: structured error responses, HTTP status codes,
and the custom exception classes.
"""
from datetime import date

import pytest

from habitstreak.core.errors import (
    HabitStreakException,
    InvalidCompletionCountError,
    InvalidStreakPolicyError,
    StreakNotFoundError,
    TaskNotFoundError,
)


# ---------------------------------------------------------------------------
# Unit tests on exception classes
# ---------------------------------------------------------------------------

class TestExceptionClasses:
    def test_task_not_found_error(self):
        err = TaskNotFoundError(task_id=7)
        assert err.http_status == 404
        assert err.code == "TASK_NOT_FOUND"
        assert "7" in err.message
        assert err.to_dict()["details"]["task_id"] == 7

    def test_streak_not_found_error(self):
        err = StreakNotFoundError(task_id=3)
        assert err.http_status == 404
        assert err.code == "STREAK_NOT_FOUND"

    def test_invalid_policy_lists_every_problem(self):
        err = InvalidStreakPolicyError(["a", "b"])
        assert err.http_status == 422
        assert err.code == "INVALID_STREAK_POLICY"
        assert err.to_dict()["details"]["errors"] == ["a", "b"]

    def test_invalid_completion_count(self):
        err = InvalidCompletionCountError(count=-2, day=date(2024, 1, 8))
        assert err.http_status == 422
        assert err.code == "INVALID_COMPLETION_COUNT"
        assert err.details == {"count": -2, "day": "2024-01-08"}

    def test_all_inherit_from_base(self):
        for err in (TaskNotFoundError(1), StreakNotFoundError(1), InvalidStreakPolicyError([])):
            assert isinstance(err, HabitStreakException)

    def test_to_dict_without_details(self):
        err = HabitStreakException("boom")
        assert err.to_dict() == {"code": "INTERNAL_ERROR", "message": "boom"}


# ---------------------------------------------------------------------------
# Error envelopes over HTTP
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
class TestErrorResponses:
    async def test_unknown_task_envelope(self, client):
        r = await client.get("/tasks/999")
        assert r.status_code == 404
        body = r.json()
        assert body["code"] == "TASK_NOT_FOUND"
        assert body["details"]["task_id"] == 999

    async def test_validation_error_envelope(self, client):
        r = await client.post("/tasks", json={})
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert any(e["field"] == "name" for e in body["details"]["errors"])

    async def test_bad_path_param(self, client):
        r = await client.get("/streaks/abc/status")
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"

    async def test_invalid_policy_envelope(self, client):
        r = await client.post("/tasks", json={
            "name": "Never",
            "streak_skip_weekends": True,
            "streak_skip_days": [1, 2, 3, 4, 5],
        })
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "INVALID_STREAK_POLICY"
        assert body["details"]["errors"] == ["Policy must leave at least one applicable weekday"]

    async def test_negative_count_envelope(self, client):
        task = (await client.post("/tasks", json={"name": "Run"})).json()
        r = await client.post(
            f"/tasks/{task['id']}/completions",
            json={"day": "2024-01-08", "count": -1},
        )
        assert r.status_code == 422
        assert r.json()["code"] == "INVALID_COMPLETION_COUNT"
