"""
Reminder dispatch and notification management

Related classes:
  - notifications.repository.NotificationRepository: rules / logs / settings storage
  - notifications.channels: delivery per channel
  - taskflow.scheduler.ReminderScheduler: runs dispatch periodically
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.storage import utc_now
from src.taskflow.config import NotificationConfig
from src.taskflow.exceptions import DeliveryError, ValidationError

from .channels import NotificationChannel, Reminder, UnsupportedChannel
from .models import Channel, NotificationRule, NotificationSettings, ReminderUnit
from .reminders import is_due
from .repository import NotificationRepository, ReminderCandidate


def check_lead_time(field_name: str, offset: int, unit: ReminderUnit) -> None:
    """Reject lead times longer than MAX_LEAD_TIME."""
    unit = ReminderUnit(unit)
    if offset > unit.max_offset:
        raise ValidationError.single(
            field_name,
            f"The reminder offset may not be greater than {unit.max_offset} {unit.value}.",
        )


@dataclass
class DispatchResult:
    """Outcome of one dispatch run"""

    due: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    dry_run: bool = False
    rule_ids: List[int] = field(default_factory=list)

    @property
    def dispatched(self) -> int:
        return self.sent + self.failed

    def to_dict(self) -> dict:
        return {
            "due": self.due,
            "dispatched": self.dispatched,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "dry_run": self.dry_run,
            "rule_ids": self.rule_ids,
        }


class NotificationService:
    """Reminder engine plus rule / settings / history management"""

    def __init__(
        self,
        repository: NotificationRepository,
        channels: Dict[Channel, NotificationChannel],
        config: Optional[NotificationConfig] = None,
    ):
        self.repository = repository
        self.channels = channels
        self.config = config or NotificationConfig()
        self.window = timedelta(minutes=self.config.send_window_minutes)
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # dispatch
    # ------------------------------------------------------------------
    def due_candidates(self, now: Optional[datetime] = None) -> List[ReminderCandidate]:
        now = now or utc_now()
        return [
            candidate
            for candidate in self.repository.reminder_candidates()
            if is_due(candidate.rule, candidate.due_date, now, self.window)
        ]

    def count_due(self, now: Optional[datetime] = None) -> int:
        return len(self.due_candidates(now))

    def process(self, now: Optional[datetime] = None, dry_run: bool = False) -> DispatchResult:
        """
        Send every due reminder once

        A rule is claimed with a single conditional UPDATE before delivery,
        so concurrent runs never deliver the same rule twice.

        Args:
            now: reference time (defaults to the current UTC time)
            dry_run: only count due rules

        Returns:
            DispatchResult
        """
        now = now or utc_now()
        candidates = self.due_candidates(now)
        result = DispatchResult(due=len(candidates), dry_run=dry_run)
        if dry_run:
            result.rule_ids = [candidate.rule.id for candidate in candidates]
            return result

        settings_cache: Dict[int, NotificationSettings] = {}
        for candidate in candidates:
            try:
                self._dispatch_one(candidate, now, settings_cache, result)
            except Exception as exc:
                # keep going with the remaining reminders
                self.logger.exception("Reminder %s could not be dispatched: %s", candidate.rule.id, exc)
                result.failed += 1

        if result.due:
            self.logger.info(
                "Reminder run: due=%s sent=%s failed=%s skipped=%s",
                result.due,
                result.sent,
                result.failed,
                result.skipped,
            )
        return result

    def dispatch_due_notifications(self, now: Optional[datetime] = None) -> int:
        """Deliver due reminders and return how many were dispatched"""
        return self.process(now).dispatched

    def _dispatch_one(
        self,
        candidate: ReminderCandidate,
        now: datetime,
        settings_cache: Dict[int, NotificationSettings],
        result: DispatchResult,
    ) -> None:
        rule = candidate.rule
        settings = settings_cache.get(rule.user_id)
        if settings is None:
            settings = self.repository.get_settings(rule.user_id)
            settings_cache[rule.user_id] = settings
        if not settings.channel_enabled(rule.channel):
            result.skipped += 1
            return

        if not self.repository.claim_rule(rule.id, now):
            self.logger.info("Rule %s already claimed by another run", rule.id)
            result.skipped += 1
            return

        result.rule_ids.append(rule.id)
        if self._deliver(candidate, now):
            result.sent += 1
        else:
            result.failed += 1

    def _deliver(self, candidate: ReminderCandidate, now: datetime) -> bool:
        rule = candidate.rule
        reminder = Reminder.from_candidate(candidate)
        log = self.repository.create_log(
            rule,
            metadata={
                "task_title": candidate.task_title,
                "due_date": reminder.due_date,
                "reminder": rule.reminder_text,
            },
        )
        channel = self.channels.get(rule.channel) or UnsupportedChannel(rule.channel)
        try:
            channel.deliver(reminder)
        except DeliveryError as exc:
            self.logger.warning("Reminder %s via %s failed: %s", rule.id, rule.channel.value, exc)
            self.repository.mark_failed(log.id, str(exc))
            return False
        except Exception as exc:
            self.logger.exception("Reminder %s via %s raised: %s", rule.id, rule.channel.value, exc)
            self.repository.mark_failed(log.id, f"Unexpected error: {exc}")
            return False
        self.repository.mark_sent(log.id, now)
        return True

    # ------------------------------------------------------------------
    # rules
    # ------------------------------------------------------------------
    def list_rules(self, task_id: int, user_id: int) -> List[NotificationRule]:
        return self.repository.list_rules(task_id, user_id)

    def create_rule(
        self,
        user_id: int,
        task_id: int,
        channel: Optional[Channel] = None,
        reminder_offset: Optional[int] = None,
        reminder_unit: Optional[ReminderUnit] = None,
        is_enabled: bool = True,
    ) -> NotificationRule:
        """Create a rule; missing offset / unit come from the user's settings"""
        if reminder_offset is None or reminder_unit is None:
            settings = self.repository.get_settings(user_id)
            reminder_offset = reminder_offset or settings.default_reminder_offset
            reminder_unit = reminder_unit or settings.default_reminder_unit
        check_lead_time("reminder_offset", reminder_offset, reminder_unit)
        return self.repository.create_rule(
            user_id,
            task_id,
            channel=channel or Channel.EMAIL,
            reminder_offset=reminder_offset,
            reminder_unit=reminder_unit,
            is_enabled=is_enabled,
        )

    def create_default_rules_for_task(self, user_id: int, task_id: int) -> NotificationRule:
        return self.create_rule(user_id, task_id, channel=Channel.EMAIL)

    def update_rule(self, rule_id: int, **changes) -> Optional[NotificationRule]:
        current = self.repository.get_rule(rule_id)
        if current is not None and ("reminder_offset" in changes or "reminder_unit" in changes):
            check_lead_time(
                "reminder_offset",
                changes.get("reminder_offset") or current.reminder_offset,
                changes.get("reminder_unit") or current.reminder_unit,
            )
        return self.repository.update_rule(rule_id, **changes)

    def toggle_rule(self, rule_id: int) -> Optional[NotificationRule]:
        return self.repository.toggle_rule(rule_id)

    def delete_rule(self, rule_id: int) -> bool:
        return self.repository.delete_rule(rule_id)

    def rearm_task(self, task_id: int) -> int:
        """Let already-sent rules fire again after the task's due date changed"""
        return self.repository.reset_rules_for_task(task_id)

    # ------------------------------------------------------------------
    # settings
    # ------------------------------------------------------------------
    def get_settings(self, user_id: int) -> NotificationSettings:
        return self.repository.get_settings(user_id)

    def update_settings(self, user_id: int, **changes) -> NotificationSettings:
        timezone = changes.get("timezone")
        if timezone is not None:
            try:
                ZoneInfo(timezone)
            except (ZoneInfoNotFoundError, ValueError) as exc:
                raise ValidationError.single(
                    "timezone", "The timezone must be a valid zone."
                ) from exc
        if changes.get("default_reminder_offset") or changes.get("default_reminder_unit"):
            current = self.repository.get_settings(user_id)
            check_lead_time(
                "default_reminder_offset",
                changes.get("default_reminder_offset") or current.default_reminder_offset,
                changes.get("default_reminder_unit") or current.default_reminder_unit,
            )
        return self.repository.update_settings(user_id, **changes)

    # ------------------------------------------------------------------
    # history
    # ------------------------------------------------------------------
    def history(self, user_id: int, limit: int = 50):
        return self.repository.list_logs(user_id, limit)

    def mark_read(self, log_id: int, user_id: int):
        return self.repository.mark_read(log_id, user_id)

    def mark_all_read(self, user_id: int) -> int:
        return self.repository.mark_all_read(user_id)

    def unread_count(self, user_id: int) -> int:
        return self.repository.unread_count(user_id)

    def delete_log(self, log_id: int, user_id: int) -> bool:
        return self.repository.delete_log(log_id, user_id)
