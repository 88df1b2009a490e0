from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.storage import BaseRepository, from_db, to_db

from .models import (
    Channel,
    LogStatus,
    NotificationLog,
    NotificationRule,
    NotificationSettings,
    ReminderUnit,
)

DEFAULT_REMINDER_OFFSET = 30
DEFAULT_REMINDER_UNIT = ReminderUnit.MINUTES


@dataclass(slots=True)
class ReminderCandidate:
    """An enabled, unsent rule of an open task with a due date."""

    rule: NotificationRule
    task_title: str
    task_description: str
    due_date: datetime
    user_name: str
    user_email: str


class NotificationRepository(BaseRepository):
    """Notification rules, delivery logs and per-user notification settings."""

    # ------------------------------------------------------------------
    # rules
    # ------------------------------------------------------------------
    @staticmethod
    def _row_to_rule(row: sqlite3.Row) -> NotificationRule:
        return NotificationRule(
            id=row["id"],
            user_id=row["user_id"],
            task_id=row["task_id"],
            channel=Channel(row["channel"]),
            reminder_offset=row["reminder_offset"],
            reminder_unit=ReminderUnit(row["reminder_unit"]),
            is_enabled=bool(row["is_enabled"]),
            last_sent_at=from_db(row["last_sent_at"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def list_rules(self, task_id: int, user_id: int) -> List[NotificationRule]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM notification_rules WHERE task_id = ? AND user_id = ? ORDER BY id",
                (task_id, user_id),
            ).fetchall()
        return [self._row_to_rule(row) for row in rows]

    def get_rule(self, rule_id: int) -> Optional[NotificationRule]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM notification_rules WHERE id = ?", (rule_id,)).fetchone()
        return self._row_to_rule(row) if row else None

    def create_rule(
        self,
        user_id: int,
        task_id: int,
        channel: Channel = Channel.EMAIL,
        reminder_offset: int = DEFAULT_REMINDER_OFFSET,
        reminder_unit: ReminderUnit = DEFAULT_REMINDER_UNIT,
        is_enabled: bool = True,
    ) -> NotificationRule:
        now = self._now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO notification_rules (user_id, task_id, channel, reminder_offset, reminder_unit,
                                                is_enabled, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    task_id,
                    Channel(channel).value,
                    reminder_offset,
                    ReminderUnit(reminder_unit).value,
                    int(is_enabled),
                    now,
                    now,
                ),
            )
            conn.commit()
            rule_id = cursor.lastrowid
        return self.get_rule(rule_id)

    def update_rule(
        self,
        rule_id: int,
        *,
        channel: Optional[Channel] = None,
        reminder_offset: Optional[int] = None,
        reminder_unit: Optional[ReminderUnit] = None,
        is_enabled: Optional[bool] = None,
    ) -> Optional[NotificationRule]:
        fields: list[str] = []
        params: list[object] = []
        if channel is not None:
            fields.append("channel = ?")
            params.append(Channel(channel).value)
        if reminder_offset is not None:
            fields.append("reminder_offset = ?")
            params.append(reminder_offset)
        if reminder_unit is not None:
            fields.append("reminder_unit = ?")
            params.append(ReminderUnit(reminder_unit).value)
        if is_enabled is not None:
            fields.append("is_enabled = ?")
            params.append(int(is_enabled))
        if not fields:
            return self.get_rule(rule_id)

        fields.append("updated_at = ?")
        params.extend([self._now(), rule_id])
        with self._connect() as conn:
            conn.execute(f"UPDATE notification_rules SET {', '.join(fields)} WHERE id = ?", params)
            conn.commit()
        return self.get_rule(rule_id)

    def toggle_rule(self, rule_id: int) -> Optional[NotificationRule]:
        with self._connect() as conn:
            conn.execute(
                "UPDATE notification_rules SET is_enabled = 1 - is_enabled, updated_at = ? WHERE id = ?",
                (self._now(), rule_id),
            )
            conn.commit()
        return self.get_rule(rule_id)

    def delete_rule(self, rule_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM notification_rules WHERE id = ?", (rule_id,))
            conn.commit()
            return cursor.rowcount > 0

    def reminder_candidates(self) -> List[ReminderCandidate]:
        """Enabled, never-sent rules of open tasks that have a due date."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT r.*, t.title AS task_title, t.description AS task_description,
                       t.due_date AS task_due_date, u.name AS user_name, u.email AS user_email
                FROM notification_rules r
                JOIN tasks t ON t.id = r.task_id
                JOIN users u ON u.id = r.user_id
                WHERE r.is_enabled = 1
                  AND r.last_sent_at IS NULL
                  AND t.is_completed = 0
                  AND t.due_date IS NOT NULL
                  AND u.is_active = 1
                ORDER BY t.due_date, r.id
                """
            ).fetchall()
        return [
            ReminderCandidate(
                rule=self._row_to_rule(row),
                task_title=row["task_title"],
                task_description=row["task_description"] or "",
                due_date=from_db(row["task_due_date"]),
                user_name=row["user_name"],
                user_email=row["user_email"],
            )
            for row in rows
        ]

    def claim_rule(self, rule_id: int, sent_at: datetime) -> bool:
        """Mark a rule as sent unless another run already did; True when this call won."""
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE notification_rules SET last_sent_at = ?, updated_at = ?
                WHERE id = ? AND last_sent_at IS NULL
                """,
                (to_db(sent_at), self._now(), rule_id),
            )
            conn.commit()
            return cursor.rowcount == 1

    def reset_rules_for_task(self, task_id: int) -> int:
        """Re-arm the rules of a task whose due date moved."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE notification_rules SET last_sent_at = NULL, updated_at = ? WHERE task_id = ?",
                (self._now(), task_id),
            )
            conn.commit()
            return cursor.rowcount

    # ------------------------------------------------------------------
    # logs
    # ------------------------------------------------------------------
    @staticmethod
    def _row_to_log(row: sqlite3.Row) -> NotificationLog:
        return NotificationLog(
            id=row["id"],
            notification_rule_id=row["notification_rule_id"],
            user_id=row["user_id"],
            task_id=row["task_id"],
            channel=Channel(row["channel"]),
            status=LogStatus(row["status"]),
            sent_at=from_db(row["sent_at"]),
            read_at=from_db(row["read_at"]),
            error_message=row["error_message"],
            metadata=json.loads(row["metadata_json"]) if row["metadata_json"] else {},
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def create_log(
        self,
        rule: NotificationRule,
        status: LogStatus = LogStatus.PENDING,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> NotificationLog:
        now = self._now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO notification_logs (notification_rule_id, user_id, task_id, channel, status,
                                               metadata_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    rule.id,
                    rule.user_id,
                    rule.task_id,
                    rule.channel.value,
                    LogStatus(status).value,
                    json.dumps(metadata, ensure_ascii=False) if metadata else None,
                    now,
                    now,
                ),
            )
            conn.commit()
            log_id = cursor.lastrowid
        return self.get_log(log_id)

    def get_log(self, log_id: int) -> Optional[NotificationLog]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM notification_logs WHERE id = ?", (log_id,)).fetchone()
        return self._row_to_log(row) if row else None

    def mark_sent(self, log_id: int, sent_at: datetime) -> Optional[NotificationLog]:
        with self._connect() as conn:
            conn.execute(
                "UPDATE notification_logs SET status = ?, sent_at = ?, error_message = NULL, updated_at = ? WHERE id = ?",
                (LogStatus.SENT.value, to_db(sent_at), self._now(), log_id),
            )
            conn.commit()
        return self.get_log(log_id)

    def mark_failed(self, log_id: int, error_message: str) -> Optional[NotificationLog]:
        with self._connect() as conn:
            conn.execute(
                "UPDATE notification_logs SET status = ?, error_message = ?, updated_at = ? WHERE id = ?",
                (LogStatus.FAILED.value, error_message, self._now(), log_id),
            )
            conn.commit()
        return self.get_log(log_id)

    def list_logs(self, user_id: int, limit: int = 50) -> List[NotificationLog]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM notification_logs WHERE user_id = ? ORDER BY created_at DESC, id DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        return [self._row_to_log(row) for row in rows]

    def list_task_logs(self, task_id: int) -> List[NotificationLog]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM notification_logs WHERE task_id = ? ORDER BY created_at DESC, id DESC",
                (task_id,),
            ).fetchall()
        return [self._row_to_log(row) for row in rows]

    def mark_read(self, log_id: int, user_id: int) -> Optional[NotificationLog]:
        """Mark one of the user's logs read; None when it is not theirs."""
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE notification_logs SET read_at = COALESCE(read_at, ?), updated_at = ?
                WHERE id = ? AND user_id = ?
                """,
                (self._now(), self._now(), log_id, user_id),
            )
            conn.commit()
            if cursor.rowcount == 0:
                return None
        return self.get_log(log_id)

    def mark_all_read(self, user_id: int) -> int:
        now = self._now()
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE notification_logs SET read_at = ?, updated_at = ? WHERE user_id = ? AND read_at IS NULL",
                (now, now, user_id),
            )
            conn.commit()
            return cursor.rowcount

    def unread_count(self, user_id: int) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM notification_logs WHERE user_id = ? AND read_at IS NULL",
                (user_id,),
            ).fetchone()
        return row["total"]

    def delete_log(self, log_id: int, user_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM notification_logs WHERE id = ? AND user_id = ?", (log_id, user_id)
            )
            conn.commit()
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # settings
    # ------------------------------------------------------------------
    @staticmethod
    def _row_to_settings(row: sqlite3.Row) -> NotificationSettings:
        return NotificationSettings(
            id=row["id"],
            user_id=row["user_id"],
            email_notifications_enabled=bool(row["email_notifications_enabled"]),
            in_app_notifications_enabled=bool(row["in_app_notifications_enabled"]),
            timezone=row["timezone"],
            default_reminder_offset=row["default_reminder_offset"],
            default_reminder_unit=ReminderUnit(row["default_reminder_unit"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get_settings(self, user_id: int) -> NotificationSettings:
        """Settings of a user, created with defaults on first read."""
        now = self._now()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO user_notification_settings (user_id, created_at, updated_at)
                VALUES (?, ?, ?)
                """,
                (user_id, now, now),
            )
            conn.commit()
            row = conn.execute(
                "SELECT * FROM user_notification_settings WHERE user_id = ?", (user_id,)
            ).fetchone()
        return self._row_to_settings(row)

    def update_settings(
        self,
        user_id: int,
        *,
        email_notifications_enabled: Optional[bool] = None,
        in_app_notifications_enabled: Optional[bool] = None,
        timezone: Optional[str] = None,
        default_reminder_offset: Optional[int] = None,
        default_reminder_unit: Optional[ReminderUnit] = None,
    ) -> NotificationSettings:
        self.get_settings(user_id)
        fields: list[str] = []
        params: list[object] = []
        if email_notifications_enabled is not None:
            fields.append("email_notifications_enabled = ?")
            params.append(int(email_notifications_enabled))
        if in_app_notifications_enabled is not None:
            fields.append("in_app_notifications_enabled = ?")
            params.append(int(in_app_notifications_enabled))
        if timezone is not None:
            fields.append("timezone = ?")
            params.append(timezone)
        if default_reminder_offset is not None:
            fields.append("default_reminder_offset = ?")
            params.append(default_reminder_offset)
        if default_reminder_unit is not None:
            fields.append("default_reminder_unit = ?")
            params.append(ReminderUnit(default_reminder_unit).value)
        if fields:
            fields.append("updated_at = ?")
            params.extend([self._now(), user_id])
            with self._connect() as conn:
                conn.execute(
                    f"UPDATE user_notification_settings SET {', '.join(fields)} WHERE user_id = ?",
                    params,
                )
                conn.commit()
        return self.get_settings(user_id)
