"""Reminder due-time arithmetic."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from .models import NotificationRule

SEND_WINDOW = timedelta(minutes=5)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def reminder_time(rule: NotificationRule, due_date: Optional[datetime]) -> Optional[datetime]:
    """The moment a rule should fire, or None when the task has no due date.

    A lead time reaching before ``datetime.min`` also yields None.
    """
    if due_date is None:
        return None
    try:
        return _aware(due_date) - rule.lead_time
    except OverflowError:
        return None


def is_due(
    rule: NotificationRule,
    due_date: Optional[datetime],
    now: datetime,
    window: timedelta = SEND_WINDOW,
) -> bool:
    """True when ``reminder_time <= now < reminder_time + window`` for an unsent, enabled rule."""
    if not rule.is_enabled or rule.last_sent_at is not None:
        return False
    fire_at = reminder_time(rule, due_date)
    if fire_at is None:
        return False
    now = _aware(now)
    if now < fire_at:
        return False
    try:
        return now < fire_at + window
    except OverflowError:
        # window end lies past datetime.max
        return True
