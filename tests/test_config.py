"""Config and mailer tests"""

import pytest

from src.taskflow.config import Config, MailConfig
from src.taskflow.logger import setup_logger
from src.taskflow.mailer import LogMailer, MailMessage, SmtpMailer, create_mailer


def test_from_yaml_reads_sections(tmp_path):
    """Values in the YAML file override the defaults"""
    config_file = tmp_path / "app_config.yaml"
    config_file.write_text(
        """
database:
  path: /tmp/custom.db
server:
  port: 9000
auth:
  max_login_attempts: 3
notifications:
  scheduler_enabled: false
  push_webhook_url: https://push.example.com
mail:
  driver: smtp
  host: smtp.example.com
pagination:
  max_per_page: 50
log:
  level: DEBUG
""",
        encoding="utf-8",
    )

    config = Config.from_yaml(config_file)

    assert config.database.path == "/tmp/custom.db"
    assert config.server.port == 9000
    assert config.server.host == "0.0.0.0"
    assert config.auth.max_login_attempts == 3
    assert config.auth.token_ttl_days == 30
    assert config.notifications.scheduler_enabled is False
    assert config.notifications.push_webhook_url == "https://push.example.com"
    assert config.mail.driver == "smtp"
    assert config.mail.port == 25
    assert config.pagination.max_per_page == 50
    assert config.pagination.default_per_page == 15
    assert config.log_level == "DEBUG"


def test_from_yaml_missing_file_uses_defaults(tmp_path):
    config = Config.from_yaml(tmp_path / "missing.yaml")
    assert config.database.path == "data/taskflow.db"
    assert config.notifications.interval_seconds == 60
    assert config.mail.driver == "log"


def test_from_env(monkeypatch):
    monkeypatch.setenv("TASKFLOW_PORT", "8123")
    monkeypatch.setenv("MAIL_DRIVER", "smtp")
    config = Config.from_env()
    assert config.server.port == 8123
    assert config.mail.driver == "smtp"


def test_create_mailer_drivers():
    assert isinstance(create_mailer(MailConfig()), LogMailer)
    assert isinstance(create_mailer(MailConfig(driver="smtp")), SmtpMailer)
    with pytest.raises(ValueError):
        create_mailer(MailConfig(driver="carrier-pigeon"))


def test_log_mailer_keeps_outbox():
    mailer = LogMailer(MailConfig())
    mailer.send(MailMessage(to="a@example.com", subject="Hi", body="Hello"))
    assert [message.subject for message in mailer.outbox] == ["Hi"]


def test_setup_logger_creates_log_directory(tmp_path):
    log_file = tmp_path / "logs" / "taskflow.log"
    setup_logger("DEBUG", str(log_file))
    assert log_file.parent.is_dir()
