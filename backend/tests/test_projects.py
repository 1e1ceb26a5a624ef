from datetime import datetime, timedelta, timezone


async def _create_project(client, headers, **overrides):
    payload = {"name": "Website Redesign", **overrides}
    response = await client.post("/api/v1/projects", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["project"]


async def _create_task(client, headers, **overrides):
    payload = {"title": "Draft copy", **overrides}
    response = await client.post("/api/v1/tasks", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["task"]


async def test_create_project_defaults(client, auth):
    _, headers = auth
    project = await _create_project(client, headers)

    assert project["name"] == "Website Redesign"
    assert project["status"] == "active"
    assert project["color"] == "#3B82F6"
    assert project["icon"] == "📋"


async def test_create_project_rejects_bad_color(client, auth):
    _, headers = auth
    response = await client.post(
        "/api/v1/projects", headers=headers, json={"name": "X", "color": "blue"}
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "color"


async def test_list_projects_includes_task_counts(client, auth):
    _, headers = auth
    project = await _create_project(client, headers)
    await _create_task(client, headers, project_id=project["id"])
    await _create_task(client, headers, project_id=project["id"], status="completed")
    await _create_project(client, headers, name="Empty")

    response = await client.get("/api/v1/projects", headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    by_name = {p["name"]: p for p in body["projects"]}
    assert by_name["Website Redesign"]["task_count"] == 2
    assert by_name["Website Redesign"]["completed_tasks"] == 1
    assert by_name["Empty"]["task_count"] == 0


async def test_list_projects_filter_and_sort(client, auth):
    _, headers = auth
    await _create_project(client, headers, name="B project")
    await _create_project(client, headers, name="A project")
    await _create_project(client, headers, name="Old", status="archived")

    response = await client.get(
        "/api/v1/projects", headers=headers, params={"status": "active", "sort": "name", "order": "asc"}
    )
    names = [p["name"] for p in response.json()["projects"]]
    assert names == ["A project", "B project"]


async def test_get_project_lists_its_tasks(client, auth):
    _, headers = auth
    project = await _create_project(client, headers)
    task = await _create_task(client, headers, project_id=project["id"])

    response = await client.get(f"/api/v1/projects/{project['id']}", headers=headers)
    assert response.status_code == 200
    tasks = response.json()["project"]["tasks"]
    assert [t["id"] for t in tasks] == [task["id"]]


async def test_projects_are_owner_scoped(client, auth, other_auth):
    _, headers = auth
    _, other_headers = other_auth
    project = await _create_project(client, headers)

    assert (await client.get(f"/api/v1/projects/{project['id']}", headers=other_headers)).status_code == 404
    assert (
        await client.put(f"/api/v1/projects/{project['id']}", headers=other_headers, json={"name": "Mine"})
    ).status_code == 404
    assert (await client.delete(f"/api/v1/projects/{project['id']}", headers=other_headers)).status_code == 404
    assert (await client.get("/api/v1/projects", headers=other_headers)).json()["count"] == 0


async def test_update_project(client, auth):
    _, headers = auth
    project = await _create_project(client, headers)

    response = await client.put(
        f"/api/v1/projects/{project['id']}",
        headers=headers,
        json={"status": "on_hold", "color": "#abc"},
    )
    assert response.status_code == 200
    updated = response.json()["project"]
    assert updated["status"] == "on_hold"
    assert updated["color"] == "#abc"
    assert updated["name"] == project["name"]


async def test_update_project_rejects_unknown_fields_and_nulls(client, auth):
    _, headers = auth
    project = await _create_project(client, headers)
    url = f"/api/v1/projects/{project['id']}"

    assert (await client.put(url, headers=headers, json={"user_id": "someone-else"})).status_code == 400
    assert (await client.put(url, headers=headers, json={"name": None})).status_code == 400
    empty = await client.put(url, headers=headers, json={})
    assert empty.status_code == 400
    assert empty.json()["error"] == "No valid fields to update"

    unchanged = (await client.get(url, headers=headers)).json()["project"]
    assert unchanged["name"] == project["name"]
    assert unchanged["user_id"] == project["user_id"]


async def test_delete_project_cascades_to_tasks(client, auth):
    _, headers = auth
    project = await _create_project(client, headers)
    task = await _create_task(client, headers, project_id=project["id"])

    response = await client.delete(f"/api/v1/projects/{project['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Project deleted successfully"

    assert (await client.get(f"/api/v1/projects/{project['id']}", headers=headers)).status_code == 404
    assert (await client.get(f"/api/v1/tasks/{task['id']}", headers=headers)).status_code == 404


async def test_project_stats(client, auth):
    _, headers = auth
    past = (datetime.now(timezone.utc) - timedelta(days=2)).isoformat()
    await _create_project(client, headers, name="Late", due_date=past)
    await _create_project(client, headers, name="Fine")
    await _create_project(client, headers, name="Done", status="completed")

    response = await client.get("/api/v1/projects/stats", headers=headers)
    assert response.status_code == 200
    stats = {s["status"]: s for s in response.json()["stats"]}
    assert stats["active"] == {"status": "active", "count": 2, "overdue": 1}
    assert stats["completed"]["count"] == 1
