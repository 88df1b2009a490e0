"""Reminder delivery channels."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import requests

from src.taskflow.config import NotificationConfig
from src.taskflow.exceptions import DeliveryError
from src.taskflow.mailer import MailMessage, Mailer

from .models import Channel
from .repository import ReminderCandidate

logger = logging.getLogger(__name__)


@dataclass
class Reminder:
    """What a channel needs to tell the user about a due task."""

    user_id: int
    user_name: str
    user_email: str
    task_id: int
    task_title: str
    task_description: str
    due_date: str
    reminder_text: str

    @classmethod
    def from_candidate(cls, candidate: ReminderCandidate) -> "Reminder":
        return cls(
            user_id=candidate.rule.user_id,
            user_name=candidate.user_name,
            user_email=candidate.user_email,
            task_id=candidate.rule.task_id,
            task_title=candidate.task_title,
            task_description=candidate.task_description,
            due_date=candidate.due_date.isoformat(),
            reminder_text=candidate.rule.reminder_text,
        )

    def to_payload(self) -> dict:
        return {
            "user_id": self.user_id,
            "task_id": self.task_id,
            "title": f"Reminder: {self.task_title}",
            "task_title": self.task_title,
            "due_date": self.due_date,
            "reminder": self.reminder_text,
        }


class NotificationChannel:
    """Base channel. ``deliver`` raises DeliveryError on failure."""

    channel: Channel

    def deliver(self, reminder: Reminder) -> None:
        raise NotImplementedError


class EmailChannel(NotificationChannel):
    channel = Channel.EMAIL

    def __init__(self, mailer: Mailer):
        self.mailer = mailer

    def deliver(self, reminder: Reminder) -> None:
        body = (
            f"Hello {reminder.user_name},\n\n"
            f"This is a reminder for your task \"{reminder.task_title}\".\n"
            f"Due: {reminder.due_date}\n"
        )
        if reminder.task_description:
            body += f"\n{reminder.task_description}\n"
        try:
            self.mailer.send(
                MailMessage(
                    to=reminder.user_email,
                    subject=f"Task reminder: {reminder.task_title}",
                    body=body,
                )
            )
        except (OSError, ValueError) as exc:
            raise DeliveryError(f"Mail delivery failed: {exc}") from exc


class InAppChannel(NotificationChannel):
    """The delivery log itself is the in-app notification."""

    channel = Channel.IN_APP

    def deliver(self, reminder: Reminder) -> None:
        logger.debug("In-app reminder for user %s, task %s", reminder.user_id, reminder.task_id)


class PushChannel(NotificationChannel):
    """POSTs the reminder as JSON to a configured webhook."""

    channel = Channel.PUSH

    def __init__(self, webhook_url: Optional[str], timeout: float = 10.0):
        self.webhook_url = webhook_url
        self.timeout = timeout

    def deliver(self, reminder: Reminder) -> None:
        if not self.webhook_url:
            raise DeliveryError("Push webhook is not configured")
        try:
            response = requests.post(
                self.webhook_url,
                headers={"Content-Type": "application/json"},
                json=reminder.to_payload(),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            logger.error("Push delivery failed: %s", exc)
            raise DeliveryError(f"Push delivery failed: {exc}") from exc


class UnsupportedChannel(NotificationChannel):
    def __init__(self, channel: Channel):
        self.channel = channel

    def deliver(self, reminder: Reminder) -> None:
        raise DeliveryError(f"Channel '{self.channel.value}' is not supported")


def build_channels(mailer: Mailer, config: NotificationConfig) -> Dict[Channel, NotificationChannel]:
    return {
        Channel.EMAIL: EmailChannel(mailer),
        Channel.IN_APP: InAppChannel(),
        Channel.PUSH: PushChannel(config.push_webhook_url, config.push_timeout_seconds),
        Channel.SMS: UnsupportedChannel(Channel.SMS),
    }
