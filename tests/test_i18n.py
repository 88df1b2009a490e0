import pytest

from src.i18n import Translator, parse_accept_language

FA = {"Accept-Language": "fa-IR,fa;q=0.9,en;q=0.5"}


@pytest.fixture
def translator():
    return Translator()


def test_bundled_catalogues(translator):
    assert set(translator.supported_locales) == {"en", "fa"}
    assert translator.get("tasks.create.success", "en") == "Task created successfully."
    assert translator.get("tasks.create.success", "fa") == "وظیفه با موفقیت ایجاد شد."
    assert translator.is_rtl("fa")
    assert not translator.is_rtl("en")


def test_fallbacks_and_placeholders(tmp_path):
    (tmp_path / "en.yaml").write_text(
        "greeting: 'Hi :name, :minutes minutes left (:min)'\nonly_en: 'English only'\n", encoding="utf-8"
    )
    (tmp_path / "fa.yaml").write_text("greeting: 'سلام :name'\n", encoding="utf-8")
    translator = Translator(tmp_path)

    assert translator.get("greeting", "en", name="Sara", minutes=5, min=1) == "Hi Sara, 5 minutes left (1)"
    assert translator.get("greeting", "fa", name="Sara") == "سلام Sara"
    assert translator.get("only_en", "fa") == "English only"
    assert translator.get("greeting", "de", name="X").startswith("Hi X")
    assert translator.get("missing.key", "en") == "missing.key"
    # a branch of the tree is not a message
    assert translator.get("greeting.deeper", "en") == "greeting.deeper"


def test_missing_locales_dir(tmp_path):
    translator = Translator(tmp_path / "nowhere")
    assert translator.supported_locales == ()
    assert translator.get("tasks.create.success") == "tasks.create.success"


@pytest.mark.parametrize(
    "header, expected",
    [
        (None, None),
        ("", None),
        ("fa", "fa"),
        ("fa-IR,fa;q=0.9,en;q=0.8", "fa"),
        ("en-US,en;q=0.9,fa;q=0.8", "en"),
        ("de-DE,de;q=0.9,fa;q=0.7,en;q=0.6", "fa"),
        ("en;q=0.2,fa;q=0.8", "fa"),
        ("fa;q=0,en;q=0.1", "en"),
        ("de,fr", None),
        ("fa;q=abc,en", "en"),
    ],
)
def test_parse_accept_language(header, expected):
    assert parse_accept_language(header, ("en", "fa")) == expected


def test_persian_responses_from_header(client, auth_headers):
    headers = {**auth_headers, **FA}
    resp = client.post("/api/tasks", json={"title": "Read"}, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["message"] == "وظیفه با موفقیت ایجاد شد."
    assert resp.headers["X-Locale"] == "fa"

    resp = client.get("/api/tasks/9999", headers=headers)
    assert resp.status_code == 404
    assert resp.json() == {"message": "وظیفه یافت نشد"}

    resp = client.post("/api/tasks", json={"title": ""}, headers=headers)
    assert resp.status_code == 422
    assert resp.json()["message"] == "داده‌های ارسال‌شده معتبر نیستند."
    assert "title" in resp.json()["errors"]

    resp = client.get("/api/tasks", headers=FA)
    assert resp.status_code == 401
    assert resp.json() == {"message": "احراز هویت نشده است."}


def test_saved_language_applies_without_header(client, auth_headers):
    resp = client.post("/api/tasks", json={"title": "Plain"}, headers=auth_headers)
    assert resp.json()["message"] == "Task created successfully."
    assert resp.headers["X-Locale"] == "en"

    client.put("/api/user/theme/locale", json={"locale": "fa"}, headers=auth_headers)
    resp = client.post("/api/tasks", json={"title": "Persian"}, headers=auth_headers)
    assert resp.json()["message"] == "وظیفه با موفقیت ایجاد شد."
    assert resp.headers["X-Locale"] == "fa"

    # the header wins over the saved preference
    resp = client.post("/api/tasks", json={"title": "English"}, headers={**auth_headers, "Accept-Language": "en"})
    assert resp.json()["message"] == "Task created successfully."


def test_other_users_row_in_persian(client, auth_headers, other_headers):
    task = client.post("/api/tasks", json={"title": "Mine"}, headers=auth_headers).json()["data"]
    resp = client.get(f"/api/tasks/{task['id']}", headers={**other_headers, **FA})
    assert resp.status_code == 403
    assert resp.json() == {"message": "دسترسی غیرمجاز"}


def test_throttle_message_in_persian(client, register):
    register()
    for _ in range(5):
        client.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrong"})

    resp = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrong"}, headers=FA)
    assert resp.status_code == 429
    seconds = resp.headers["Retry-After"]
    assert resp.json()["message"] == f"تلاش‌های ورود بیش از حد مجاز است. لطفاً {seconds} ثانیه دیگر دوباره تلاش کنید."
    assert resp.json()["errors"] == {"email": [resp.json()["message"]]}


def test_forgot_password_message_in_persian(client):
    resp = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"}, headers=FA)
    assert resp.status_code == 200
    assert resp.json()["message"] == "اگر این نشانی ایمیل ثبت شده باشد، کد بازنشانی رمز عبور ارسال شده است."
