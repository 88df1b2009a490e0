from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional

# longest lead time a reminder may have
MAX_LEAD_TIME = timedelta(days=365)


class ReminderUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"

    def to_timedelta(self, offset: int) -> timedelta:
        return timedelta(**{self.value: offset})

    @property
    def max_offset(self) -> int:
        return MAX_LEAD_TIME // self.to_timedelta(1)

    def describe(self, offset: int) -> str:
        singular = self.value[:-1]
        return f"{offset} {singular}{'s' if offset > 1 else ''} before"


class Channel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    IN_APP = "in_app"

    @property
    def label(self) -> str:
        return {
            "email": "Email",
            "sms": "SMS",
            "push": "Push Notification",
            "in_app": "In-App",
        }[self.value]


class LogStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(slots=True)
class NotificationRule:
    """When and how to remind a user about one task."""

    id: int
    user_id: int
    task_id: int
    channel: Channel
    reminder_offset: int
    reminder_unit: ReminderUnit
    is_enabled: bool
    last_sent_at: Optional[datetime]
    created_at: str
    updated_at: str

    @property
    def lead_time(self) -> timedelta:
        return self.reminder_unit.to_timedelta(self.reminder_offset)

    @property
    def reminder_text(self) -> str:
        return self.reminder_unit.describe(self.reminder_offset)


@dataclass(slots=True)
class NotificationLog:
    """One delivery attempt of a rule."""

    id: int
    notification_rule_id: int
    user_id: int
    task_id: int
    channel: Channel
    status: LogStatus
    sent_at: Optional[datetime]
    read_at: Optional[datetime]
    error_message: Optional[str]
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_read(self) -> bool:
        return self.read_at is not None


@dataclass(slots=True)
class NotificationSettings:
    id: int
    user_id: int
    email_notifications_enabled: bool
    in_app_notifications_enabled: bool
    timezone: str
    default_reminder_offset: int
    default_reminder_unit: ReminderUnit
    created_at: str
    updated_at: str

    @property
    def default_reminder_text(self) -> str:
        return self.default_reminder_unit.describe(self.default_reminder_offset)

    def channel_enabled(self, channel: Channel) -> bool:
        if channel is Channel.EMAIL:
            return self.email_notifications_enabled
        if channel is Channel.IN_APP:
            return self.in_app_notifications_enabled
        return True
