# src/aegis/tests/test_tasks.py
from __future__ import annotations

import uuid

import pytest

from aegis.tests.utils.envelope import data_of, error_of

pytestmark = pytest.mark.anyio


async def test_task_crud(client, make_user, login):
    await login(await make_user())

    later = data_of(await client.post("/api/tasks", json={"title": "Lab report", "due_date": "2026-03-10T17:00:00"}))
    assert later["status"] == "pending"
    assert later["priority"] == "medium"
    assert later["progress_percentage"] == 0
    data_of(await client.post("/api/tasks", json={"title": "Someday", "priority": "low"}))
    data_of(await client.post("/api/tasks", json={"title": "Quiz prep", "due_date": "2026-03-01T09:00:00", "tags": ["ma101"]}))

    titles = [t["title"] for t in data_of(await client.get("/api/tasks"))]
    assert titles == ["Quiz prep", "Lab report", "Someday"]

    updated = data_of(
        await client.put(f"/api/tasks/{later['id']}", json={"status": "in_progress", "progress_percentage": 40})
    )
    assert updated["status"] == "in_progress"
    assert updated["progress_percentage"] == 40
    assert updated["title"] == "Lab report"
    error_of(await client.put(f"/api/tasks/{later['id']}", json={"progress_percentage": 140}), 400)

    r = await client.delete(f"/api/tasks/{later['id']}")
    assert data_of(r) == "Task deleted"
    error_of(await client.delete(f"/api/tasks/{later['id']}"), 404)
    error_of(await client.put(f"/api/tasks/{uuid.uuid4()}", json={"title": "x"}), 404)


async def test_tasks_are_private(client, make_user, login):
    await login(await make_user())
    mine = data_of(await client.post("/api/tasks", json={"title": "Secret"}))

    await login(await make_user())
    assert data_of(await client.get("/api/tasks")) == []
    error_of(await client.put(f"/api/tasks/{mine['id']}", json={"title": "Hijacked"}), 404)
    error_of(await client.delete(f"/api/tasks/{mine['id']}"), 404)
