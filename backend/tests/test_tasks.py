from datetime import datetime, timedelta, timezone


def _in(**delta) -> str:
    return (datetime.now(timezone.utc) + timedelta(**delta)).isoformat()


async def _create_task(client, headers, **overrides):
    payload = {"title": "Write report", **overrides}
    response = await client.post("/api/v1/tasks", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["task"]


async def test_create_task_defaults(client, auth):
    user, headers = auth
    task = await _create_task(client, headers)

    assert task["user_id"] == user["id"]
    assert task["status"] == "todo"
    assert task["priority"] == "medium"
    assert task["tags"] == []
    assert task["completed_at"] is None


async def test_created_task_reads_back_unchanged(client, auth):
    _, headers = auth
    task = await _create_task(client, headers, title="Buy milk", priority="high", status="todo")

    fetched = (await client.get(f"/api/v1/tasks/{task['id']}", headers=headers)).json()["task"]
    assert fetched == task
    assert (fetched["title"], fetched["priority"], fetched["status"]) == ("Buy milk", "high", "todo")
    assert fetched["id"] and fetched["created_at"]


async def test_create_completed_task_stamps_completed_at(client, auth):
    _, headers = auth
    task = await _create_task(client, headers, status="completed")
    assert task["completed_at"] is not None


async def test_create_task_in_someone_elses_project(client, auth, other_auth):
    _, headers = auth
    _, other_headers = other_auth
    project = (
        await client.post("/api/v1/projects", headers=other_headers, json={"name": "Private"})
    ).json()["project"]

    response = await client.post(
        "/api/v1/tasks", headers=headers, json={"title": "Sneaky", "project_id": project["id"]}
    )
    assert response.status_code == 404
    assert response.json()["error"] == "Project not found"


async def test_create_task_validation(client, auth):
    _, headers = auth
    response = await client.post(
        "/api/v1/tasks",
        headers=headers,
        json={"title": "", "priority": "urgent", "estimated_duration": 0},
    )
    assert response.status_code == 400
    fields = {e["field"] for e in response.json()["errors"]}
    assert {"title", "priority", "estimated_duration"} <= fields


async def test_list_tasks_paginates_with_filtered_total(client, auth):
    _, headers = auth
    for i in range(5):
        await _create_task(client, headers, title=f"High {i}", priority="high")
    await _create_task(client, headers, title="Low one", priority="low")

    response = await client.get(
        "/api/v1/tasks", headers=headers, params={"priority": "high", "limit": 2, "page": 2}
    )
    assert response.status_code == 200
    body = response.json()
    assert len(body["tasks"]) == 2
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 5, "pages": 3}


async def test_list_tasks_sorts_priority_by_urgency(client, auth):
    _, headers = auth
    await _create_task(client, headers, title="medium", priority="medium")
    await _create_task(client, headers, title="low", priority="low")
    await _create_task(client, headers, title="high", priority="high")

    response = await client.get(
        "/api/v1/tasks", headers=headers, params={"sort": "priority", "order": "desc"}
    )
    assert [t["title"] for t in response.json()["tasks"]] == ["high", "medium", "low"]


async def test_list_tasks_carries_project_name(client, auth):
    _, headers = auth
    project = (
        await client.post("/api/v1/projects", headers=headers, json={"name": "Launch", "color": "#112233"})
    ).json()["project"]
    await _create_task(client, headers, project_id=project["id"])

    tasks = (
        await client.get("/api/v1/tasks", headers=headers, params={"project_id": project["id"]})
    ).json()["tasks"]
    assert tasks[0]["project_name"] == "Launch"
    assert tasks[0]["project_color"] == "#112233"


async def test_list_tasks_due_date_range(client, auth):
    _, headers = auth
    await _create_task(client, headers, title="soon", due_date=_in(days=1))
    await _create_task(client, headers, title="later", due_date=_in(days=10))

    response = await client.get(
        "/api/v1/tasks",
        headers=headers,
        params={"due_date_from": _in(hours=1), "due_date_to": _in(days=3)},
    )
    assert [t["title"] for t in response.json()["tasks"]] == ["soon"]


async def test_upcoming_tasks(client, auth):
    _, headers = auth
    await _create_task(client, headers, title="in 2 days", due_date=_in(days=2))
    await _create_task(client, headers, title="tomorrow", due_date=_in(days=1))
    await _create_task(client, headers, title="overdue", due_date=_in(days=-1))
    await _create_task(client, headers, title="next month", due_date=_in(days=30))
    await _create_task(client, headers, title="done", due_date=_in(days=1), status="completed")
    await _create_task(client, headers, title="no date")

    response = await client.get("/api/v1/tasks/upcoming", headers=headers, params={"days": 7})
    assert response.status_code == 200
    assert [t["title"] for t in response.json()["tasks"]] == ["tomorrow", "in 2 days"]


async def test_tasks_are_owner_scoped(client, auth, other_auth):
    _, headers = auth
    _, other_headers = other_auth
    task = await _create_task(client, headers)
    url = f"/api/v1/tasks/{task['id']}"

    assert (await client.get(url, headers=other_headers)).status_code == 404
    assert (await client.put(url, headers=other_headers, json={"title": "x"})).status_code == 404
    assert (await client.patch(f"{url}/complete", headers=other_headers)).status_code == 404
    assert (await client.delete(url, headers=other_headers)).status_code == 404
    assert (await client.get("/api/v1/tasks", headers=other_headers)).json()["pagination"]["total"] == 0


async def test_completed_at_follows_status(client, auth):
    _, headers = auth
    task = await _create_task(client, headers)
    url = f"/api/v1/tasks/{task['id']}"

    completed = (await client.patch(f"{url}/complete", headers=headers)).json()["task"]
    assert completed["status"] == "completed"
    stamp = completed["completed_at"]
    assert stamp is not None

    # Completing again keeps the original timestamp
    again = (await client.put(url, headers=headers, json={"status": "completed"})).json()["task"]
    assert again["completed_at"] == stamp

    reopened = (await client.put(url, headers=headers, json={"status": "todo"})).json()["task"]
    assert reopened["status"] == "todo"
    assert reopened["completed_at"] is None


async def test_update_task_fields(client, auth):
    _, headers = auth
    task = await _create_task(client, headers)

    response = await client.put(
        f"/api/v1/tasks/{task['id']}",
        headers=headers,
        json={"priority": "high", "tags": ["q3", "report"], "actual_duration": 45, "description": None},
    )
    assert response.status_code == 200
    updated = response.json()["task"]
    assert updated["priority"] == "high"
    assert updated["tags"] == ["q3", "report"]
    assert updated["actual_duration"] == 45
    assert updated["title"] == "Write report"


async def test_update_task_rejects_unknown_fields_and_nulls(client, auth):
    _, headers = auth
    task = await _create_task(client, headers)
    url = f"/api/v1/tasks/{task['id']}"

    assert (await client.put(url, headers=headers, json={"user_id": "someone"})).status_code == 400
    assert (await client.put(url, headers=headers, json={"status": None})).status_code == 400
    assert (await client.put(url, headers=headers, json={})).status_code == 400

    unchanged = (await client.get(url, headers=headers)).json()["task"]
    assert unchanged["user_id"] == task["user_id"]
    assert unchanged["status"] == "todo"


async def test_delete_task(client, auth):
    _, headers = auth
    task = await _create_task(client, headers)
    url = f"/api/v1/tasks/{task['id']}"

    response = await client.delete(url, headers=headers)
    assert response.json() == {"success": True, "message": "Task deleted successfully"}
    assert (await client.get(url, headers=headers)).status_code == 404


async def test_complete_shortcut_restamps_completed_at(client, auth):
    _, headers = auth
    task = await _create_task(client, headers, status="completed")
    first = task["completed_at"]

    completed = (await client.patch(f"/api/v1/tasks/{task['id']}/complete", headers=headers)).json()["task"]
    assert completed["status"] == "completed"
    assert datetime.fromisoformat(completed["completed_at"]) > datetime.fromisoformat(first)


async def test_due_date_sort_puts_undated_tasks_last(client, auth):
    _, headers = auth
    await _create_task(client, headers, title="no date")
    await _create_task(client, headers, title="later", due_date=_in(days=5))
    await _create_task(client, headers, title="sooner", due_date=_in(days=1))

    for order, expected in (("asc", ["sooner", "later", "no date"]), ("desc", ["later", "sooner", "no date"])):
        response = await client.get(
            "/api/v1/tasks", headers=headers, params={"sort": "due_date", "order": order}
        )
        assert [t["title"] for t in response.json()["tasks"]] == expected
