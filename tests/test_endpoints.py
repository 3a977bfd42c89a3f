"""
Integration tests for API endpoints using SQLite in-memory DB.
"""
import pytest

pytestmark = pytest.mark.asyncio


async def create_task(client, **body):
    body.setdefault("name", "Meditate")
    r = await client.post("/tasks", json=body)
    assert r.status_code == 201
    return r.json()


async def log(client, task_id, day, count=1, current_date=None):
    r = await client.post(
        f"/tasks/{task_id}/completions",
        json={"day": day, "count": count, "current_date": current_date or day},
    )
    assert r.status_code == 200
    return r.json()


class TestHealth:
    async def test_health(self, client):
        r = await client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"


class TestTasks:
    async def test_create_and_get(self, client):
        task = await create_task(
            client, name="Stretch", streak_minimum_count=2,
            streak_skip_weekends=True, streak_skip_days=[3],
        )
        assert task["streak_skip_days"] == [3]
        assert task["policy_summary"] == (
            "Minimum 2 completions per day, Weekends skipped, Skips Wednesday"
        )

        r = await client.get(f"/tasks/{task['id']}")
        assert r.status_code == 200
        assert r.json()["name"] == "Stretch"

    async def test_minimum_count_out_of_range(self, client):
        r = await client.post("/tasks", json={"name": "x", "streak_minimum_count": 0})
        assert r.status_code == 422
        assert r.json()["code"] == "INVALID_STREAK_POLICY"

    async def test_delete_cascades(self, client):
        task = await create_task(client)
        await log(client, task["id"], "2024-01-08")

        r = await client.delete(f"/tasks/{task['id']}")
        assert r.status_code == 204
        assert (await client.get(f"/tasks/{task['id']}")).status_code == 404
        assert (await client.get(f"/streaks/{task['id']}")).status_code == 404

    async def test_delete_unknown(self, client):
        r = await client.delete("/tasks/404")
        assert r.status_code == 404


class TestCompletions:
    async def test_completion_returns_log_and_streak(self, client):
        task = await create_task(client)
        body = await log(client, task["id"], "2024-01-08", count=3)
        assert body["log"] == {"day": "2024-01-08", "count": 3}
        assert body["streak"]["current_streak"] == 1
        assert body["streak"]["streak_start_date"] == "2024-01-08"

    async def test_below_minimum_has_no_streak(self, client):
        task = await create_task(client, streak_minimum_count=2)
        body = await log(client, task["id"], "2024-01-08", count=1)
        assert body["streak"] is None

    async def test_weekend_scenario(self, client):
        task = await create_task(client, streak_skip_weekends=True)
        await log(client, task["id"], "2024-01-05")
        body = await log(client, task["id"], "2024-01-08")
        assert body["streak"]["current_streak"] == 2
        assert body["streak"]["best_streak"] == 2
        await log(client, task["id"], "2024-01-09", count=0)

        r = await client.get(
            f"/streaks/{task['id']}/status", params={"current_date": "2024-01-10"}
        )
        assert r.status_code == 200
        status = r.json()
        assert status["is_active"] is False
        assert status["current_streak"] == 0
        assert status["best_streak"] == 2

    async def test_decrement(self, client):
        task = await create_task(client)
        for day in ("2024-01-08", "2024-01-09", "2024-01-10"):
            await log(client, task["id"], day)

        r = await client.post(
            f"/tasks/{task['id']}/completions/decrement",
            json={"day": "2024-01-10", "new_count": 0},
        )
        assert r.status_code == 200
        streak = r.json()["streak"]
        assert streak["current_streak"] == 2
        assert streak["last_completion_date"] == "2024-01-09"
        assert streak["best_streak"] == 3

    async def test_unknown_task(self, client):
        r = await client.post("/tasks/999/completions", json={"day": "2024-01-08"})
        assert r.status_code == 404
        assert r.json()["code"] == "TASK_NOT_FOUND"


class TestStreakViews:
    async def test_list_and_get(self, client):
        task = await create_task(client)
        await log(client, task["id"], "2024-01-08")

        r = await client.get("/streaks")
        assert r.status_code == 200
        assert [s["task_id"] for s in r.json()] == [task["id"]]

        r = await client.get(f"/streaks/{task['id']}")
        assert r.json()["current_streak"] == 1

    async def test_streak_not_found(self, client):
        task = await create_task(client)
        r = await client.get(f"/streaks/{task['id']}")
        assert r.status_code == 404
        assert r.json()["code"] == "STREAK_NOT_FOUND"

    async def test_active_and_at_risk(self, client):
        risky = await create_task(client, name="risky")
        safe = await create_task(client, name="safe")
        await log(client, risky["id"], "2024-01-08")
        await log(client, safe["id"], "2024-01-09")

        r = await client.get("/streaks/active", params={"current_date": "2024-01-09"})
        assert r.status_code == 200
        assert {s["task_name"] for s in r.json()} == {"risky", "safe"}

        r = await client.get("/streaks/at-risk", params={"current_date": "2024-01-09"})
        body = r.json()
        assert [s["task_id"] for s in body] == [risky["id"]]
        assert body[0]["priority"] == "low"
        assert body[0]["days_until_break"] == 1

        r = await client.get(
            "/streaks/at-risk", params={"current_date": "2024-01-09", "min_streak": 5}
        )
        assert r.json() == []

    async def test_as_of(self, client):
        task = await create_task(client, streak_skip_weekends=True)
        await log(client, task["id"], "2024-01-05")
        await log(client, task["id"], "2024-01-08")

        r = await client.get(f"/streaks/{task['id']}/as-of", params={"target_date": "2024-01-06"})
        body = r.json()
        assert body["current_streak"] == 1
        assert body["as_of"] == "2024-01-06"
        assert body["completed_on_date"] is False

        r = await client.get("/streaks/as-of", params={"target_date": "2024-01-08"})
        assert r.json()[0]["current_streak"] == 2

    async def test_stats(self, client):
        task = await create_task(client)
        await log(client, task["id"], "2024-01-08", count=2)
        await log(client, task["id"], "2024-01-09", count=4)
        r = await client.get(f"/streaks/{task['id']}/stats")
        assert r.status_code == 200
        assert r.json()["total_completions"] == 6


class TestMaintenance:
    async def test_sweep(self, client):
        task = await create_task(client)
        await log(client, task["id"], "2024-01-08")

        r = await client.post("/streaks/sweep", params={"current_date": "2024-01-11"})
        assert r.status_code == 200
        assert r.json()["reset"] == [task["id"]]

        r = await client.get(f"/streaks/{task['id']}")
        assert r.json()["current_streak"] == 0
        assert r.json()["last_completion_date"] == "2024-01-08"

    async def test_rebuild(self, client):
        task = await create_task(client)
        await log(client, task["id"], "2024-01-08")
        await log(client, task["id"], "2024-01-09")

        r = await client.post("/streaks/rebuild", params={"current_date": "2024-01-09"})
        assert r.status_code == 200
        body = r.json()
        assert body["processed"] == 1
        assert body["recalculated"] == 1
        assert body["failed"] == []

    async def test_cache_invalidate(self, client):
        r = await client.post("/streaks/cache/invalidate", json={"task_id": 1})
        assert r.json() == {"status": "ok", "task_id": 1}
        r = await client.post("/streaks/cache/invalidate", json={})
        assert r.json() == {"status": "ok", "task_id": None}
