"""
Configuration module

Related classes:
  - server.dependencies: builds repositories and services from this config
  - scheduler.ReminderScheduler: uses the notification settings
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


@dataclass
class DatabaseConfig:
    """SQLite settings"""

    path: str = "data/taskflow.db"


@dataclass
class ServerConfig:
    """HTTP server settings"""

    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class AuthConfig:
    """Token and throttling settings"""

    token_ttl_days: int = 30
    max_login_attempts: int = 5
    login_decay_seconds: int = 60
    max_reset_requests: int = 3
    reset_decay_seconds: int = 3600
    reset_token_ttl_minutes: int = 60
    password_min_length: int = 8


@dataclass
class NotificationConfig:
    """Reminder engine settings"""

    scheduler_enabled: bool = True
    interval_seconds: int = 60
    send_window_minutes: int = 5
    create_default_rules: bool = False
    push_webhook_url: Optional[str] = None
    push_timeout_seconds: float = 10.0


@dataclass
class MailConfig:
    """Outgoing mail settings (driver: log | smtp)"""

    driver: str = "log"
    host: str = "localhost"
    port: int = 25
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = False
    from_address: str = "no-reply@taskflow.local"
    from_name: str = "Taskflow"


@dataclass
class PaginationConfig:
    """List endpoint paging"""

    default_per_page: int = 15
    max_per_page: int = 100


@dataclass
class Config:
    """Application configuration"""

    database: DatabaseConfig = None  # type: ignore
    server: ServerConfig = None  # type: ignore
    auth: AuthConfig = None  # type: ignore
    notifications: NotificationConfig = None  # type: ignore
    mail: MailConfig = None  # type: ignore
    pagination: PaginationConfig = None  # type: ignore

    log_level: str = "INFO"
    log_file: str = "logs/taskflow.log"

    def __post_init__(self):
        if self.database is None:
            self.database = DatabaseConfig()
        if self.server is None:
            self.server = ServerConfig()
        if self.auth is None:
            self.auth = AuthConfig()
        if self.notifications is None:
            self.notifications = NotificationConfig()
        if self.mail is None:
            self.mail = MailConfig()
        if self.pagination is None:
            self.pagination = PaginationConfig()

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "Config":
        """Load settings from a YAML file

        Args:
            config_path: file path (defaults to config/app_config.yaml)

        Returns:
            Config: loaded settings, or defaults when the file does not exist
        """
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            config_path = project_root / "config" / "app_config.yaml"

        if not Path(config_path).exists():
            return cls()

        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data: Dict[str, Any] = yaml.safe_load(f) or {}

        db_data = yaml_data.get("database", {})
        server_data = yaml_data.get("server", {})
        auth_data = yaml_data.get("auth", {})
        notification_data = yaml_data.get("notifications", {})
        mail_data = yaml_data.get("mail", {})
        pagination_data = yaml_data.get("pagination", {})
        log_data = yaml_data.get("log", {})

        return cls(
            database=DatabaseConfig(path=db_data.get("path", "data/taskflow.db")),
            server=ServerConfig(
                host=server_data.get("host", "0.0.0.0"),
                port=server_data.get("port", 8000),
                cors_origins=server_data.get("cors_origins", ["*"]),
            ),
            auth=AuthConfig(
                token_ttl_days=auth_data.get("token_ttl_days", 30),
                max_login_attempts=auth_data.get("max_login_attempts", 5),
                login_decay_seconds=auth_data.get("login_decay_seconds", 60),
                max_reset_requests=auth_data.get("max_reset_requests", 3),
                reset_decay_seconds=auth_data.get("reset_decay_seconds", 3600),
                reset_token_ttl_minutes=auth_data.get("reset_token_ttl_minutes", 60),
                password_min_length=auth_data.get("password_min_length", 8),
            ),
            notifications=NotificationConfig(
                scheduler_enabled=notification_data.get("scheduler_enabled", True),
                interval_seconds=notification_data.get("interval_seconds", 60),
                send_window_minutes=notification_data.get("send_window_minutes", 5),
                create_default_rules=notification_data.get("create_default_rules", False),
                push_webhook_url=notification_data.get("push_webhook_url"),
                push_timeout_seconds=notification_data.get("push_timeout_seconds", 10.0),
            ),
            mail=MailConfig(
                driver=mail_data.get("driver", "log"),
                host=mail_data.get("host", "localhost"),
                port=mail_data.get("port", 25),
                username=mail_data.get("username"),
                password=mail_data.get("password"),
                use_tls=mail_data.get("use_tls", False),
                from_address=mail_data.get("from_address", "no-reply@taskflow.local"),
                from_name=mail_data.get("from_name", "Taskflow"),
            ),
            pagination=PaginationConfig(
                default_per_page=pagination_data.get("default_per_page", 15),
                max_per_page=pagination_data.get("max_per_page", 100),
            ),
            log_level=log_data.get("level", "INFO"),
            log_file=log_data.get("file", "logs/taskflow.log"),
        )

    @classmethod
    def from_env(cls) -> "Config":
        """Load settings from environment variables"""
        return cls(
            database=DatabaseConfig(path=os.getenv("TASKFLOW_DB_PATH", "data/taskflow.db")),
            server=ServerConfig(
                host=os.getenv("TASKFLOW_HOST", "0.0.0.0"),
                port=int(os.getenv("TASKFLOW_PORT", "8000")),
            ),
            notifications=NotificationConfig(
                scheduler_enabled=os.getenv("TASKFLOW_SCHEDULER_ENABLED", "1") == "1",
                interval_seconds=int(os.getenv("TASKFLOW_SCHEDULER_INTERVAL", "60")),
                push_webhook_url=os.getenv("TASKFLOW_PUSH_WEBHOOK_URL"),
            ),
            mail=MailConfig(
                driver=os.getenv("MAIL_DRIVER", "log"),
                host=os.getenv("MAIL_HOST", "localhost"),
                port=int(os.getenv("MAIL_PORT", "25")),
                username=os.getenv("MAIL_USERNAME"),
                password=os.getenv("MAIL_PASSWORD"),
                use_tls=os.getenv("MAIL_USE_TLS", "0") == "1",
                from_address=os.getenv("MAIL_FROM_ADDRESS", "no-reply@taskflow.local"),
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE", "logs/taskflow.log"),
        )
