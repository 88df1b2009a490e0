import pytest

from src.accounts import AuthService, PreferenceRepository, UserRepository
from src.accounts.security import hash_password, hash_token, parse_user_agent, verify_password
from src.accounts.throttle import AttemptThrottle
from src.taskflow.config import AuthConfig, MailConfig
from src.taskflow.exceptions import (
    AuthenticationError,
    NotFoundError,
    PermissionDeniedError,
    ThrottledError,
    ValidationError,
)
from src.taskflow.mailer import LogMailer


@pytest.fixture
def mailer():
    return LogMailer(MailConfig())


@pytest.fixture
def service(tmp_path, mailer):
    db_path = tmp_path / "accounts.db"
    return AuthService(
        UserRepository(db_path=db_path),
        PreferenceRepository(db_path=db_path),
        mailer,
        AuthConfig(),
    )


def test_password_hash_round_trip():
    stored = hash_password("secret123", iterations=1000)
    assert stored.startswith("pbkdf2_sha256$1000$")
    assert verify_password("secret123", stored)
    assert not verify_password("wrong", stored)
    assert not verify_password("secret123", "not-a-hash")


def test_token_hash_is_stable():
    assert hash_token("abc") == hash_token("abc")
    assert hash_token("abc") != hash_token("abd")


def test_parse_user_agent():
    agent = (
        "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
    )
    assert parse_user_agent(agent) == {"device_type": "Mobile", "browser": "Safari", "platform": "iOS"}
    edge = "Mozilla/5.0 (Windows NT 10.0) Chrome/120.0 Safari/537.36 Edg/120.0"
    assert parse_user_agent(edge)["browser"] == "Edge"
    assert parse_user_agent(edge)["platform"] == "Windows"


def test_throttle_window_slides():
    now = [100.0]
    throttle = AttemptThrottle(max_attempts=2, decay_seconds=60, clock=lambda: now[0])

    throttle.hit("k")
    assert not throttle.too_many_attempts("k")
    throttle.hit("k")
    assert throttle.too_many_attempts("k")
    assert throttle.available_in("k") == 60

    now[0] += 30
    assert throttle.available_in("k") == 30
    now[0] += 30
    assert not throttle.too_many_attempts("k")

    throttle.hit("k")
    throttle.clear("k")
    assert not throttle.too_many_attempts("k")


def test_register_and_authenticate(service):
    user, token, session = service.register("Alice", "Alice@Example.com", "secret123", "secret123")
    assert user.email == "alice@example.com"
    assert session.is_active

    resolved, resolved_session = service.authenticate(token)
    assert resolved.id == user.id
    assert resolved_session.id == session.id

    preference = service.preferences.get(user.id)
    assert preference.get("theme_mode") == "system"


def test_register_validation(service):
    with pytest.raises(ValidationError) as excinfo:
        service.register("Alice", "alice@example.com", "short", "short")
    assert "password" in excinfo.value.errors

    with pytest.raises(ValidationError) as excinfo:
        service.register("Alice", "alice@example.com", "secret123", "different1")
    assert excinfo.value.errors["password"] == ["The password field confirmation does not match."]

    service.register("Alice", "alice@example.com", "secret123")
    with pytest.raises(ValidationError) as excinfo:
        service.register("Other", "ALICE@example.com", "secret123")
    assert excinfo.value.errors == {"email": ["The email has already been taken."]}


def test_login_rejects_bad_credentials_and_throttles(service):
    service.register("Alice", "alice@example.com", "secret123")

    for _ in range(5):
        with pytest.raises(ValidationError) as excinfo:
            service.login("alice@example.com", "wrong-password", ip_address="1.2.3.4")
        assert not isinstance(excinfo.value, ThrottledError)

    with pytest.raises(ThrottledError) as excinfo:
        service.login("alice@example.com", "secret123", ip_address="1.2.3.4")
    assert excinfo.value.retry_after > 0

    # another address is a different throttle key
    user, token, _ = service.login("alice@example.com", "secret123", ip_address="5.6.7.8")
    assert user.email == "alice@example.com"
    assert token


def test_logout_and_revoke_sessions(service):
    user, token, session = service.register("Alice", "alice@example.com", "secret123")
    other = service.register("Bob", "bob@example.com", "secret123")[0]
    _, second_token, second = service.login("alice@example.com", "secret123")

    assert len(service.list_sessions(user)) == 2

    with pytest.raises(PermissionDeniedError):
        service.revoke_session(other, second.id)
    with pytest.raises(NotFoundError):
        service.revoke_session(user, 9999)

    service.revoke_session(user, second.id)
    with pytest.raises(AuthenticationError):
        service.authenticate(second_token)

    service.logout(session)
    with pytest.raises(AuthenticationError):
        service.authenticate(token)


def test_refresh_rotates_token(service):
    _, token, session = service.register("Alice", "alice@example.com", "secret123")
    new_token = service.refresh(session)

    assert new_token != token
    with pytest.raises(AuthenticationError):
        service.authenticate(token)
    assert service.authenticate(new_token)[1].id == session.id


def test_change_password_revokes_other_sessions(service, mailer):
    user, token, session = service.register("Alice", "alice@example.com", "secret123")
    _, other_token, _ = service.login("alice@example.com", "secret123")

    with pytest.raises(ValidationError) as excinfo:
        service.change_password(user, session, "nope", "newsecret1", "newsecret1")
    assert "current_password" in excinfo.value.errors

    service.change_password(user, session, "secret123", "newsecret1", "newsecret1")
    assert service.authenticate(token)[0].id == user.id
    with pytest.raises(AuthenticationError):
        service.authenticate(other_token)
    assert mailer.outbox[-1].subject == "Your password was changed"
    assert service.login("alice@example.com", "newsecret1")[0].id == user.id


def test_password_reset_flow(service, mailer):
    user, token, _ = service.register("Alice", "alice@example.com", "secret123")

    assert service.send_password_reset("nobody@example.com") is None
    reset_token = service.send_password_reset("alice@example.com")
    assert reset_token in mailer.outbox[-1].body

    with pytest.raises(ValidationError):
        service.reset_password(reset_token, "other@example.com", "brandnew1", "brandnew1")

    service.reset_password(reset_token, "alice@example.com", "brandnew1", "brandnew1")
    with pytest.raises(AuthenticationError):
        service.authenticate(token)
    assert service.login("alice@example.com", "brandnew1")[0].id == user.id

    with pytest.raises(ValidationError) as excinfo:
        service.reset_password(reset_token, "alice@example.com", "another12", "another12")
    assert excinfo.value.errors == {"token": ["This password reset token is invalid."]}


def test_password_reset_requests_are_throttled(service):
    service.register("Alice", "alice@example.com", "secret123")
    for _ in range(3):
        service.send_password_reset("alice@example.com")
    with pytest.raises(ThrottledError):
        service.send_password_reset("alice@example.com")


def test_delete_account_requires_password(service):
    user, token, _ = service.register("Alice", "alice@example.com", "secret123")
    with pytest.raises(ValidationError):
        service.delete_account(user, "wrong")

    service.delete_account(user, "secret123")
    assert service.users.get(user.id) is None
    with pytest.raises(AuthenticationError):
        service.authenticate(token)


def test_deactivated_user_cannot_login(service):
    user, _, _ = service.register("Alice", "alice@example.com", "secret123")
    service.users.update(user.id, is_active=False)
    with pytest.raises(ValidationError) as excinfo:
        service.login("alice@example.com", "secret123")
    assert "deactivated" in excinfo.value.errors["email"][0]


def test_preferences_update_and_reset(tmp_path):
    repo = PreferenceRepository(db_path=tmp_path / "prefs.db")
    users = UserRepository(db_path=tmp_path / "prefs.db")
    user = users.create("Alice", "alice@example.com", hash_password("secret123", iterations=1000))

    pref = repo.update(user.id, {"theme_mode": "dark", "font_scale": 1.25, "unknown": 1})
    assert pref.get("theme_mode") == "dark"
    assert pref.effective_theme_mode() == "dark"
    assert pref.font_scale_percentage() == 125
    assert "unknown" not in pref.to_dict()

    pref = repo.reset(user.id, ["theme_mode"])
    assert pref.get("theme_mode") == "system"
    assert pref.get("font_scale") == 1.25


def test_throttle_forgets_expired_keys():
    now = [100.0]
    throttle = AttemptThrottle(max_attempts=5, decay_seconds=60, clock=lambda: now[0])

    throttle.hit("read@example.com|1.2.3.4")
    throttle.hit("gone@example.com|1.2.3.4")
    assert len(throttle._hits) == 2

    now[0] += 61
    assert not throttle.too_many_attempts("read@example.com|1.2.3.4")
    assert "read@example.com|1.2.3.4" not in throttle._hits

    # the next hit sweeps keys nobody asked about again
    assert throttle.hit("new@example.com|1.2.3.4") == 1
    assert list(throttle._hits) == ["new@example.com|1.2.3.4"]
    assert throttle.available_in("never-seen") == 0
    assert "never-seen" not in throttle._hits
