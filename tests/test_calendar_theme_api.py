def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_calendar_convert(client, auth_headers):
    resp = client.get("/api/calendar/convert", params={"date": "2024-03-20"}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["result"] == "1403-01-01"

    resp = client.get(
        "/api/calendar/convert",
        params={"date": "1403-12-30", "from": "jalali", "to": "gregorian"},
        headers=auth_headers,
    )
    assert resp.json()["data"]["result"] == "2025-03-20"

    resp = client.get("/api/calendar/convert", params={"date": "1402-12-30", "from": "jalali"}, headers=auth_headers)
    assert resp.status_code == 422
    assert "date" in resp.json()["errors"]

    assert client.get("/api/calendar/convert", params={"date": "2024-03-20"}).status_code == 401


def test_calendar_month_uses_preference(client, auth_headers):
    resp = client.get("/api/calendar/month", params={"year": 2024, "month": 2}, headers=auth_headers)
    assert resp.json()["data"]["calendar"] == "gregorian"
    assert resp.json()["data"]["days"] == 29

    client.put("/api/auth/preferences", json={"calendar_type": "jalali"}, headers=auth_headers)
    resp = client.get("/api/calendar/month", params={"year": 1403, "month": 12}, headers=auth_headers)
    data = resp.json()["data"]
    assert data["calendar"] == "jalali"
    assert data["name"] == "Esfand"
    assert data["days"] == 30

    resp = client.get("/api/calendar/month", params={"year": 2024, "month": 13}, headers=auth_headers)
    assert resp.status_code == 422


def test_calendar_format(client, auth_headers):
    resp = client.get(
        "/api/calendar/format",
        params={"date": "2024-03-20", "format": "D MMMM YYYY", "calendar": "jalali"},
        headers=auth_headers,
    )
    assert resp.json()["data"] == {"date": "2024-03-20", "calendar": "jalali", "formatted": "1 Farvardin 1403"}


def test_theme_defaults_and_updates(client, auth_headers):
    resp = client.get("/api/user/theme", headers=auth_headers)
    assert resp.status_code == 200
    theme = resp.json()["data"]
    assert theme["theme_mode"] == "system"
    assert theme["effective_theme_mode"] == "light"
    assert theme["locale"] == "en"
    assert theme["preferences"]["font_scale_percentage"] == 100

    resp = client.put("/api/user/theme/mode", json={"theme_mode": "dark"}, headers=auth_headers)
    assert resp.json()["data"]["effective_theme_mode"] == "dark"

    resp = client.put("/api/user/theme/locale", json={"locale": "fa"}, headers=auth_headers)
    assert resp.json()["data"]["locale"] == "fa"

    resp = client.put(
        "/api/user/theme/preferences", json={"font_scale": 1.25, "high_contrast": True}, headers=auth_headers
    )
    preferences = resp.json()["data"]["preferences"]
    assert preferences["font_scale_percentage"] == 125
    assert preferences["high_contrast"] is True

    resp = client.put("/api/user/theme/preferences", json={"font_scale": 2.0}, headers=auth_headers)
    assert resp.status_code == 422

    resp = client.put(
        "/api/user/theme",
        json={"theme_mode": "light", "primary_color": "#112233", "preferences": {"reduced_motion": True}},
        headers=auth_headers,
    )
    data = resp.json()["data"]
    assert data["theme_mode"] == "light"
    assert data["primary_color"] == "#112233"
    assert data["preferences"]["reduced_motion"] is True


def test_theme_reset_keeps_other_preferences(client, auth_headers):
    client.put("/api/auth/preferences", json={"items_per_page": 50}, headers=auth_headers)
    client.put("/api/user/theme/mode", json={"theme_mode": "dark"}, headers=auth_headers)

    resp = client.put("/api/user/theme/reset", headers=auth_headers)
    assert resp.json()["data"]["theme_mode"] == "system"
    assert resp.json()["message"] == "Theme reset to defaults."

    prefs = client.get("/api/auth/preferences", headers=auth_headers).json()["data"]
    assert prefs["items_per_page"] == 50
