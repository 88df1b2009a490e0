"""Task reminders: rules, delivery logs, channels and the dispatch engine."""

from .channels import EmailChannel, InAppChannel, PushChannel, Reminder, build_channels
from .models import (
    MAX_LEAD_TIME,
    Channel,
    LogStatus,
    NotificationLog,
    NotificationRule,
    NotificationSettings,
    ReminderUnit,
)
from .reminders import SEND_WINDOW, is_due, reminder_time
from .repository import NotificationRepository, ReminderCandidate
from .service import DispatchResult, NotificationService

__all__ = [
    "Channel",
    "DispatchResult",
    "EmailChannel",
    "InAppChannel",
    "LogStatus",
    "MAX_LEAD_TIME",
    "NotificationLog",
    "NotificationRepository",
    "NotificationRule",
    "NotificationService",
    "NotificationSettings",
    "PushChannel",
    "Reminder",
    "ReminderCandidate",
    "ReminderUnit",
    "SEND_WINDOW",
    "build_channels",
    "is_due",
    "reminder_time",
]
