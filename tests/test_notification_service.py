from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
import requests

from src.accounts import UserRepository
from src.notifications import (
    Channel,
    LogStatus,
    NotificationRepository,
    NotificationService,
    ReminderUnit,
    build_channels,
    is_due,
    reminder_time,
)
from src.notifications import channels as channels_module
from src.taskflow.config import MailConfig, NotificationConfig
from src.taskflow.exceptions import ValidationError
from src.taskflow.mailer import LogMailer
from src.tasks import TaskRepository

DUE = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db(tmp_path):
    return tmp_path / "notifications.db"


@pytest.fixture
def user_id(db):
    return UserRepository(db_path=db).create("Alice", "alice@example.com", "x").id


@pytest.fixture
def tasks(db):
    return TaskRepository(db_path=db)


@pytest.fixture
def repository(db):
    return NotificationRepository(db_path=db)


@pytest.fixture
def mailer():
    return LogMailer(MailConfig())


def make_service(repository, mailer, **config):
    notification_config = NotificationConfig(**config)
    return NotificationService(repository, build_channels(mailer, notification_config), notification_config)


@pytest.fixture
def service(repository, mailer):
    return make_service(repository, mailer)


def test_reminder_time_and_window(repository, tasks, user_id):
    task = tasks.create(user_id, "Call", due_date=DUE)
    rule = repository.create_rule(user_id, task.id, reminder_offset=2, reminder_unit=ReminderUnit.HOURS)

    fire_at = DUE - timedelta(hours=2)
    assert reminder_time(rule, DUE) == fire_at
    assert reminder_time(rule, None) is None
    assert rule.reminder_text == "2 hours before"

    assert is_due(rule, DUE, fire_at)
    assert is_due(rule, DUE, fire_at + timedelta(minutes=4, seconds=59))
    assert not is_due(rule, DUE, fire_at + timedelta(minutes=5))
    assert not is_due(rule, DUE, fire_at - timedelta(seconds=1))
    # naive values are read as UTC
    assert is_due(rule, DUE.replace(tzinfo=None), fire_at.replace(tzinfo=None))

    disabled = repository.toggle_rule(rule.id)
    assert disabled.is_enabled is False
    assert not is_due(disabled, DUE, fire_at)


def test_process_sends_email_once(repository, service, tasks, user_id, mailer):
    task = tasks.create(user_id, "Submit report", due_date=DUE)
    rule = repository.create_rule(user_id, task.id, Channel.EMAIL, 30, ReminderUnit.MINUTES)
    now = DUE - timedelta(minutes=29)

    assert service.count_due(now) == 1
    result = service.process(now)
    assert (result.due, result.sent, result.failed, result.dispatched) == (1, 1, 0, 1)
    assert result.rule_ids == [rule.id]
    assert mailer.outbox[-1].to == "alice@example.com"
    assert "Submit report" in mailer.outbox[-1].subject

    logs = repository.list_logs(user_id)
    assert len(logs) == 1
    assert logs[0].status is LogStatus.SENT
    assert logs[0].sent_at is not None
    assert logs[0].metadata["task_title"] == "Submit report"

    assert repository.get_rule(rule.id).last_sent_at is not None
    assert service.process(now).due == 0
    assert len(mailer.outbox) == 1


def test_second_process_loses_the_claim(db, repository, tasks, user_id, mailer):
    task = tasks.create(user_id, "Race", due_date=DUE)
    repository.create_rule(user_id, task.id, Channel.IN_APP, 10, ReminderUnit.MINUTES)
    now = DUE - timedelta(minutes=10)

    first = make_service(NotificationRepository(db_path=db), mailer)
    second = make_service(NotificationRepository(db_path=db), mailer)
    candidates = second.due_candidates(now)

    assert first.process(now).sent == 1
    # the second run saw the rule as due before the first claimed it
    assert second.repository.claim_rule(candidates[0].rule.id, now) is False
    assert second.process(now).sent == 0
    assert len(repository.list_logs(user_id)) == 1


def test_failed_channels_are_logged(repository, service, tasks, user_id):
    task = tasks.create(user_id, "Text me", due_date=DUE)
    sms = repository.create_rule(user_id, task.id, Channel.SMS, 1, ReminderUnit.DAYS)
    push = repository.create_rule(user_id, task.id, Channel.PUSH, 1, ReminderUnit.DAYS)

    result = service.process(DUE - timedelta(days=1))
    assert (result.sent, result.failed, result.dispatched) == (0, 2, 2)

    logs = {log.notification_rule_id: log for log in repository.list_logs(user_id)}
    assert logs[sms.id].status is LogStatus.FAILED
    assert "not supported" in logs[sms.id].error_message
    assert logs[push.id].status is LogStatus.FAILED
    assert "not configured" in logs[push.id].error_message


def test_push_posts_to_webhook(monkeypatch, repository, mailer, tasks, user_id):
    post = MagicMock()
    post.return_value.raise_for_status.return_value = None
    monkeypatch.setattr(channels_module.requests, "post", post)
    service = make_service(repository, mailer, push_webhook_url="https://push.example.com/hook")

    task = tasks.create(user_id, "Ping", due_date=DUE)
    repository.create_rule(user_id, task.id, Channel.PUSH, 15, ReminderUnit.MINUTES)

    assert service.process(DUE - timedelta(minutes=15)).sent == 1
    args, kwargs = post.call_args
    assert args[0] == "https://push.example.com/hook"
    assert kwargs["json"]["task_title"] == "Ping"
    assert kwargs["json"]["reminder"] == "15 minutes before"


def test_push_http_error_marks_failed(monkeypatch, repository, mailer, tasks, user_id):
    post = MagicMock(side_effect=requests.exceptions.ConnectionError("refused"))
    monkeypatch.setattr(channels_module.requests, "post", post)
    service = make_service(repository, mailer, push_webhook_url="https://push.example.com/hook")

    task = tasks.create(user_id, "Ping", due_date=DUE)
    repository.create_rule(user_id, task.id, Channel.PUSH, 15, ReminderUnit.MINUTES)

    result = service.process(DUE - timedelta(minutes=15))
    assert result.failed == 1
    assert repository.list_logs(user_id)[0].status is LogStatus.FAILED


def test_disabled_channel_setting_skips_without_claiming(repository, service, tasks, user_id, mailer):
    service.update_settings(user_id, email_notifications_enabled=False)
    task = tasks.create(user_id, "Quiet", due_date=DUE)
    rule = repository.create_rule(user_id, task.id, Channel.EMAIL, 30, ReminderUnit.MINUTES)

    result = service.process(DUE - timedelta(minutes=30))
    assert (result.due, result.skipped, result.dispatched) == (1, 1, 0)
    assert mailer.outbox == []
    assert repository.get_rule(rule.id).last_sent_at is None


def test_completed_tasks_and_inactive_users_are_ignored(db, repository, service, tasks, user_id):
    done = tasks.create(user_id, "Done", due_date=DUE, is_completed=True)
    repository.create_rule(user_id, done.id, Channel.IN_APP, 30, ReminderUnit.MINUTES)

    users = UserRepository(db_path=db)
    other = users.create("Bob", "bob@example.com", "x").id
    task = tasks.create(other, "Bob's", due_date=DUE)
    repository.create_rule(other, task.id, Channel.IN_APP, 30, ReminderUnit.MINUTES)
    users.update(other, is_active=False)

    assert service.due_candidates(DUE - timedelta(minutes=30)) == []


def test_dry_run_changes_nothing(repository, service, tasks, user_id):
    task = tasks.create(user_id, "Dry", due_date=DUE)
    rule = repository.create_rule(user_id, task.id, Channel.IN_APP, 30, ReminderUnit.MINUTES)

    result = service.process(DUE - timedelta(minutes=30), dry_run=True)
    assert result.dry_run is True
    assert result.due == 1
    assert result.dispatched == 0
    assert result.rule_ids == [rule.id]
    assert repository.get_rule(rule.id).last_sent_at is None
    assert repository.list_logs(user_id) == []


def test_rearm_after_due_date_change(repository, service, tasks, user_id):
    task = tasks.create(user_id, "Move me", due_date=DUE)
    rule = repository.create_rule(user_id, task.id, Channel.IN_APP, 30, ReminderUnit.MINUTES)
    service.process(DUE - timedelta(minutes=30))
    assert repository.get_rule(rule.id).last_sent_at is not None

    new_due = DUE + timedelta(days=1)
    tasks.update(task.id, due_date=new_due)
    assert service.rearm_task(task.id) == 1
    assert service.process(new_due - timedelta(minutes=30)).sent == 1


def test_rule_defaults_come_from_settings(repository, service, tasks, user_id):
    task = tasks.create(user_id, "Defaults")
    rule = service.create_rule(user_id, task.id)
    assert (rule.channel, rule.reminder_offset, rule.reminder_unit) == (
        Channel.EMAIL,
        30,
        ReminderUnit.MINUTES,
    )

    service.update_settings(user_id, default_reminder_offset=2, default_reminder_unit=ReminderUnit.DAYS)
    rule = service.create_rule(user_id, task.id, channel=Channel.IN_APP)
    assert rule.reminder_text == "2 days before"
    assert [r.id for r in service.list_rules(task.id, user_id)] == [1, 2]


def test_settings_validate_timezone(service, user_id):
    settings = service.update_settings(user_id, timezone="Asia/Tehran")
    assert settings.timezone == "Asia/Tehran"

    with pytest.raises(ValidationError) as excinfo:
        service.update_settings(user_id, timezone="Mars/Olympus")
    assert "timezone" in excinfo.value.errors


def test_history_read_state(repository, service, tasks, user_id):
    task = tasks.create(user_id, "History", due_date=DUE)
    repository.create_rule(user_id, task.id, Channel.IN_APP, 30, ReminderUnit.MINUTES)
    repository.create_rule(user_id, task.id, Channel.IN_APP, 31, ReminderUnit.MINUTES)
    service.process(DUE - timedelta(minutes=30))

    logs = service.history(user_id)
    assert len(logs) == 2
    assert service.unread_count(user_id) == 2

    assert service.mark_read(logs[0].id, user_id + 1) is None
    assert service.mark_read(logs[0].id, user_id).is_read
    assert service.unread_count(user_id) == 1
    assert service.mark_all_read(user_id) == 1
    assert service.unread_count(user_id) == 0

    assert service.delete_log(logs[1].id, user_id) is True
    assert len(service.history(user_id)) == 1


def test_out_of_range_lead_time_does_not_block_other_reminders(db, repository, service, tasks, user_id):
    mine = tasks.create(user_id, "Mine", due_date=DUE)
    rule = repository.create_rule(user_id, mine.id, Channel.IN_APP, 30, ReminderUnit.MINUTES)

    other_id = UserRepository(db_path=db).create("Mallory", "mallory@example.com", "x").id
    theirs = tasks.create(other_id, "Theirs", due_date=DUE)
    huge = repository.create_rule(other_id, theirs.id, Channel.IN_APP, 10_000_000, ReminderUnit.DAYS)
    assert reminder_time(huge, DUE) is None

    result = service.process(DUE - timedelta(minutes=29))
    assert (result.sent, result.failed) == (1, 0)
    assert result.rule_ids == [rule.id]


def test_due_date_at_start_of_calendar(repository, service, tasks, user_id):
    early = datetime(1, 1, 1, 0, 5, tzinfo=timezone.utc)
    task = tasks.create(user_id, "Ancient", due_date=early)
    rule = repository.create_rule(user_id, task.id, Channel.IN_APP, 30, ReminderUnit.MINUTES)

    assert reminder_time(rule, early) is None
    assert not is_due(rule, early, early)
    assert service.process(early).due == 0


def test_unexpected_channel_error_marks_log_failed(monkeypatch, repository, service, tasks, user_id):
    task = tasks.create(user_id, "Flaky", due_date=DUE)
    repository.create_rule(user_id, task.id, Channel.IN_APP, 30, ReminderUnit.MINUTES)
    monkeypatch.setattr(service.channels[Channel.IN_APP], "deliver", MagicMock(side_effect=RuntimeError("boom")))

    result = service.process(DUE - timedelta(minutes=30))
    assert (result.sent, result.failed) == (0, 1)
    [log] = repository.list_logs(user_id)
    assert log.status is LogStatus.FAILED
    assert "boom" in log.error_message


def test_lead_time_is_capped_per_unit(repository, service, tasks, user_id):
    task = tasks.create(user_id, "Yearly", due_date=DUE)

    with pytest.raises(ValidationError) as excinfo:
        service.create_rule(user_id, task.id, reminder_offset=366, reminder_unit=ReminderUnit.DAYS)
    assert "reminder_offset" in excinfo.value.errors
    rule = service.create_rule(user_id, task.id, reminder_offset=365, reminder_unit=ReminderUnit.DAYS)

    with pytest.raises(ValidationError):
        service.update_rule(rule.id, reminder_offset=400)
    minutes_rule = service.create_rule(user_id, task.id, reminder_offset=500, reminder_unit=ReminderUnit.MINUTES)
    with pytest.raises(ValidationError):
        service.update_rule(minutes_rule.id, reminder_unit=ReminderUnit.DAYS)
    assert service.update_rule(minutes_rule.id, reminder_unit=ReminderUnit.HOURS).reminder_text == "500 hours before"

    with pytest.raises(ValidationError) as excinfo:
        service.update_settings(user_id, default_reminder_offset=9000, default_reminder_unit=ReminderUnit.HOURS)
    assert "default_reminder_offset" in excinfo.value.errors
