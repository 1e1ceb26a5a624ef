async def _create_notification(client, headers, **overrides):
    payload = {"type": "info", "title": "Heads up", "message": "Something happened", **overrides}
    response = await client.post("/api/v1/notifications", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["notification"]


async def test_create_and_list_notifications(client, auth):
    _, headers = auth
    created = await _create_notification(client, headers, metadata={"task_id": "t-1"}, priority="high")
    assert created["read"] is False
    assert created["metadata"] == {"task_id": "t-1"}

    body = (await client.get("/api/v1/notifications", headers=headers)).json()
    assert body["success"] is True
    assert body["unreadCount"] == 1
    assert [n["id"] for n in body["notifications"]] == [created["id"]]


async def test_list_filters_by_read_state_and_type(client, auth):
    _, headers = auth
    first = await _create_notification(client, headers, type="reminder")
    await _create_notification(client, headers, type="warning")
    await client.patch(f"/api/v1/notifications/{first['id']}/read", headers=headers)

    unread = (await client.get("/api/v1/notifications", headers=headers, params={"read": "false"})).json()
    assert [n["type"] for n in unread["notifications"]] == ["warning"]

    reminders = (
        await client.get("/api/v1/notifications", headers=headers, params={"type": "reminder"})
    ).json()
    assert [n["id"] for n in reminders["notifications"]] == [first["id"]]
    assert reminders["unreadCount"] == 1


async def test_invalid_type_is_rejected(client, auth):
    _, headers = auth
    response = await client.post(
        "/api/v1/notifications",
        headers=headers,
        json={"type": "spam", "title": "x", "message": "y"},
    )
    assert response.status_code == 400


async def test_mark_read_and_read_all(client, auth):
    _, headers = auth
    one = await _create_notification(client, headers)
    await _create_notification(client, headers)
    await _create_notification(client, headers)

    marked = (await client.patch(f"/api/v1/notifications/{one['id']}/read", headers=headers)).json()
    assert marked["notification"]["read"] is True

    response = await client.patch("/api/v1/notifications/read-all", headers=headers)
    assert response.json() == {"success": True, "message": "All notifications marked as read"}
    assert (await client.get("/api/v1/notifications", headers=headers)).json()["unreadCount"] == 0


async def test_delete_and_clear_all(client, auth):
    _, headers = auth
    one = await _create_notification(client, headers)
    await _create_notification(client, headers)

    deleted = await client.delete(f"/api/v1/notifications/{one['id']}", headers=headers)
    assert deleted.status_code == 200
    again = await client.delete(f"/api/v1/notifications/{one['id']}", headers=headers)
    assert again.status_code == 404
    assert again.json()["error"] == "Notification not found"

    await client.delete("/api/v1/notifications/clear-all", headers=headers)
    assert (await client.get("/api/v1/notifications", headers=headers)).json()["notifications"] == []


async def test_notifications_are_owner_scoped(client, auth, other_auth):
    _, headers = auth
    _, other_headers = other_auth
    mine = await _create_notification(client, headers)

    assert (await client.patch(f"/api/v1/notifications/{mine['id']}/read", headers=other_headers)).status_code == 404
    assert (await client.delete(f"/api/v1/notifications/{mine['id']}", headers=other_headers)).status_code == 404

    # Another user's clear-all leaves this inbox alone
    await client.delete("/api/v1/notifications/clear-all", headers=other_headers)
    assert (await client.get("/api/v1/notifications", headers=headers)).json()["unreadCount"] == 1


async def test_default_preferences(client, auth):
    _, headers = auth
    prefs = (await client.get("/api/v1/notifications/preferences", headers=headers)).json()["preferences"]

    assert prefs["theme"] == "light"
    assert prefs["notification_settings"]["email"] is True
    assert prefs["notification_settings"]["dailyDigest"] is True
    assert prefs["ai_preferences"]["autoExtractTasks"] is True


async def test_update_preferences_upserts_and_keeps_other_sections(client, auth):
    _, headers = auth
    url = "/api/v1/notifications/preferences"

    first = await client.put(url, headers=headers, json={"theme": "dark"})
    assert first.status_code == 200
    assert first.json()["preferences"]["theme"] == "dark"

    settings = {"email": False, "push": True, "sms": False, "dailyDigest": False}
    second = (await client.put(url, headers=headers, json={"notification_settings": settings})).json()
    assert second["preferences"]["theme"] == "dark"
    assert second["preferences"]["notification_settings"] == settings

    stored = (await client.get(url, headers=headers)).json()["preferences"]
    assert stored["notification_settings"]["email"] is False


async def test_update_preferences_rejects_unknown_theme(client, auth):
    _, headers = auth
    response = await client.put(
        "/api/v1/notifications/preferences", headers=headers, json={"theme": "neon"}
    )
    assert response.status_code == 400


async def test_test_notification_is_stored_and_emailed(client, auth, email_service):
    user, headers = auth
    response = await client.post("/api/v1/notifications/test", headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["notification"]["type"] == "test"
    assert body["message"] == "Test notification sent successfully"

    sent = email_service.of_kind("custom_notification")
    assert len(sent) == 1
    assert sent[0][1] == user["email"]
    assert sent[0][2]["subject"] == "Test Notification"


async def test_test_notification_respects_email_preference(client, auth, email_service):
    _, headers = auth
    await client.put(
        "/api/v1/notifications/preferences",
        headers=headers,
        json={"notification_settings": {"email": False}},
    )
    await client.post("/api/v1/notifications/test", headers=headers)

    assert email_service.of_kind("custom_notification") == []
    inbox = (await client.get("/api/v1/notifications", headers=headers)).json()
    assert inbox["unreadCount"] == 1
