from datetime import datetime, timedelta, timezone

from src.server.dependencies import get_notification_service

DUE = datetime(2030, 1, 15, 9, 0, tzinfo=timezone.utc)


def create_task(client, headers, title="Dentist", due_date=DUE.isoformat()):
    resp = client.post("/api/tasks", json={"title": title, "due_date": due_date}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def test_rule_lifecycle(client, auth_headers, other_headers):
    task = create_task(client, auth_headers)
    url = f"/api/tasks/{task['id']}/notifications"

    resp = client.post(url, json={"channel": "in_app", "reminder_offset": 2, "reminder_unit": "hours"}, headers=auth_headers)
    assert resp.status_code == 201
    rule = resp.json()["data"]
    assert resp.json()["success"] is True
    assert rule["channel_label"] == "In-App"
    assert rule["reminder_text"] == "2 hours before"
    assert rule["reminder_time"].startswith("2030-01-15T07:00:00")

    resp = client.post(url, json={}, headers=auth_headers)
    default_rule = resp.json()["data"]
    assert (default_rule["channel"], default_rule["reminder_offset"], default_rule["reminder_unit"]) == (
        "email",
        30,
        "minutes",
    )

    resp = client.get(url, headers=auth_headers)
    assert [r["id"] for r in resp.json()["data"]] == [rule["id"], default_rule["id"]]

    resp = client.put(
        f"/api/notifications/rules/{rule['id']}", json={"reminder_offset": 1, "reminder_unit": "days"},
        headers=auth_headers,
    )
    assert resp.json()["data"]["reminder_text"] == "1 day before"

    resp = client.post(f"/api/notifications/rules/{rule['id']}/toggle", headers=auth_headers)
    assert resp.json()["data"]["is_enabled"] is False
    assert resp.json()["message"] == "Notification rule disabled successfully"

    assert client.get(url, headers=other_headers).status_code == 403
    assert client.post(f"/api/notifications/rules/{rule['id']}/toggle", headers=other_headers).status_code == 403
    assert client.delete("/api/notifications/rules/999", headers=auth_headers).status_code == 404

    resp = client.delete(f"/api/notifications/rules/{rule['id']}", headers=auth_headers)
    assert resp.json() == {"success": True, "message": "Notification rule deleted successfully"}
    assert len(client.get(url, headers=auth_headers).json()["data"]) == 1

    resp = client.post(url, json={"channel": "carrier_pigeon"}, headers=auth_headers)
    assert resp.status_code == 422


def test_history_after_dispatch(client, auth_headers, other_headers):
    task = create_task(client, auth_headers)
    url = f"/api/tasks/{task['id']}/notifications"
    client.post(url, json={"channel": "in_app", "reminder_offset": 30, "reminder_unit": "minutes"}, headers=auth_headers)
    client.post(url, json={"channel": "sms", "reminder_offset": 30, "reminder_unit": "minutes"}, headers=auth_headers)

    result = get_notification_service().process(DUE - timedelta(minutes=30))
    assert (result.sent, result.failed) == (1, 1)

    history = client.get("/api/notifications/history", headers=auth_headers).json()["data"]
    assert sorted(log["status"] for log in history) == ["failed", "sent"]
    assert all(log["metadata"]["task_title"] == "Dentist" for log in history)
    assert client.get("/api/notifications/history", headers=other_headers).json()["data"] == []

    assert client.get("/api/notifications/unread-count", headers=auth_headers).json() == {"success": True, "count": 2}

    log_id = history[0]["id"]
    assert client.post(f"/api/notifications/{log_id}/read", headers=other_headers).status_code == 404
    assert client.post(f"/api/notifications/{log_id}/read", headers=auth_headers).status_code == 200
    assert client.get("/api/notifications/unread-count", headers=auth_headers).json()["count"] == 1

    assert client.post("/api/notifications/read-all", headers=auth_headers).json()["count"] == 1
    assert client.delete(f"/api/notifications/{log_id}", headers=auth_headers).status_code == 200
    assert client.delete(f"/api/notifications/{log_id}", headers=auth_headers).status_code == 404


def test_due_date_change_rearms_rules(client, auth_headers):
    task = create_task(client, auth_headers)
    url = f"/api/tasks/{task['id']}/notifications"
    rule = client.post(url, json={"channel": "in_app"}, headers=auth_headers).json()["data"]
    get_notification_service().process(DUE - timedelta(minutes=30))
    assert client.get(url, headers=auth_headers).json()["data"][0]["last_sent_at"] is not None

    client.patch(f"/api/tasks/{task['id']}/date", json={"due_date": "2030-02-01T09:00:00Z"}, headers=auth_headers)
    rules = client.get(url, headers=auth_headers).json()["data"]
    assert rules[0]["id"] == rule["id"]
    assert rules[0]["last_sent_at"] is None


def test_settings(client, auth_headers):
    resp = client.get("/api/notifications/settings", headers=auth_headers)
    assert resp.status_code == 200
    settings = resp.json()["data"]
    assert settings["email_notifications_enabled"] is True
    assert settings["default_reminder_text"] == "30 minutes before"

    resp = client.put(
        "/api/notifications/settings",
        json={"email_notifications_enabled": False, "default_reminder_offset": 1, "default_reminder_unit": "hours"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["email_notifications_enabled"] is False
    assert data["default_reminder_text"] == "1 hour before"

    resp = client.put("/api/notifications/settings", json={"timezone": "Nowhere/City"}, headers=auth_headers)
    assert resp.status_code == 422
    assert "timezone" in resp.json()["errors"]


def test_scheduler_status(client, auth_headers):
    resp = client.get("/api/notifications/scheduler/status", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["running"] is False
    assert resp.json()["runs"] == 0


def test_default_rule_for_new_task_when_enabled(client, auth_headers, monkeypatch):
    from src.server import dependencies

    monkeypatch.setattr(dependencies.config.notifications, "create_default_rules", True)
    task = create_task(client, auth_headers)
    undated = client.post("/api/tasks", json={"title": "Someday"}, headers=auth_headers).json()["data"]

    rules = client.get(f"/api/tasks/{task['id']}/notifications", headers=auth_headers).json()["data"]
    assert [(r["channel"], r["reminder_text"]) for r in rules] == [("email", "30 minutes before")]
    assert client.get(f"/api/tasks/{undated['id']}/notifications", headers=auth_headers).json()["data"] == []


def test_reminder_offset_limits(client, auth_headers):
    task = create_task(client, auth_headers)
    url = f"/api/tasks/{task['id']}/notifications"

    resp = client.post(url, json={"reminder_offset": 10_000_000, "reminder_unit": "days"}, headers=auth_headers)
    assert resp.status_code == 422
    assert "reminder_offset" in resp.json()["errors"]
    resp = client.post(url, json={"reminder_offset": 400, "reminder_unit": "days"}, headers=auth_headers)
    assert resp.status_code == 422
    assert client.get(url, headers=auth_headers).json()["data"] == []

    resp = client.put(
        "/api/notifications/settings", json={"default_reminder_offset": 9000, "default_reminder_unit": "hours"},
        headers=auth_headers,
    )
    assert resp.status_code == 422
    assert "default_reminder_offset" in resp.json()["errors"]


def test_rule_on_task_due_at_start_of_calendar(client, auth_headers):
    task = create_task(client, auth_headers, title="Ancient", due_date="0001-01-01T00:05:00Z")
    resp = client.post(
        f"/api/tasks/{task['id']}/notifications", json={"reminder_offset": 30, "reminder_unit": "minutes"},
        headers=auth_headers,
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["reminder_time"] is None
