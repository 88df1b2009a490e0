from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.storage import BaseRepository, from_db, to_db

from .models import PREFERENCE_DEFAULTS, PasswordResetToken, User, UserPreference, UserSession


class UserRepository(BaseRepository):
    """Users, their sessions and password reset tokens."""

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            password_hash=row["password_hash"],
            timezone=row["timezone"],
            locale=row["locale"],
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> UserSession:
        return UserSession(
            id=row["id"],
            user_id=row["user_id"],
            ip_address=row["ip_address"],
            user_agent=row["user_agent"],
            device_type=row["device_type"],
            browser=row["browser"],
            platform=row["platform"],
            is_active=bool(row["is_active"]),
            last_activity_at=from_db(row["last_activity_at"]),
            expires_at=from_db(row["expires_at"]),
            created_at=row["created_at"],
        )

    # ------------------------------------------------------------------ users

    def create(
        self,
        name: str,
        email: str,
        password_hash: str,
        timezone: str = "UTC",
        locale: str = "en",
    ) -> User:
        """Insert a user.

        Raises:
            sqlite3.IntegrityError: the email is already registered
        """
        now = self._now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO users (name, email, password_hash, timezone, locale, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (name, email.strip().lower(), password_hash, timezone, locale, now, now),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM users WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return self._row_to_user(row)

    def get(self, user_id: int) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row_to_user(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?", (email.strip().lower(),)
            ).fetchone()
        return self._row_to_user(row) if row else None

    def update(
        self,
        user_id: int,
        *,
        name: Optional[str] = None,
        timezone: Optional[str] = None,
        locale: Optional[str] = None,
        password_hash: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Optional[User]:
        fields: list[str] = []
        params: list[object] = []

        if name is not None:
            fields.append("name = ?")
            params.append(name)
        if timezone is not None:
            fields.append("timezone = ?")
            params.append(timezone)
        if locale is not None:
            fields.append("locale = ?")
            params.append(locale)
        if password_hash is not None:
            fields.append("password_hash = ?")
            params.append(password_hash)
        if is_active is not None:
            fields.append("is_active = ?")
            params.append(int(is_active))

        if not fields:
            return self.get(user_id)

        fields.append("updated_at = ?")
        params.append(self._now())
        params.append(user_id)

        with self._connect() as conn:
            conn.execute(f"UPDATE users SET {', '.join(fields)} WHERE id = ?", params)
            conn.commit()
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row_to_user(row) if row else None

    def delete(self, user_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            conn.commit()
            return cursor.rowcount > 0

    # --------------------------------------------------------------- sessions

    def create_session(
        self,
        user_id: int,
        token_hash: str,
        expires_at: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        device: Optional[Dict[str, str]] = None,
    ) -> UserSession:
        device = device or {}
        now = self._now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO user_sessions (
                    user_id, token_hash, ip_address, user_agent, device_type, browser, platform,
                    is_active, last_activity_at, expires_at, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?, ?, ?)
                """,
                (
                    user_id,
                    token_hash,
                    ip_address,
                    user_agent,
                    device.get("device_type"),
                    device.get("browser"),
                    device.get("platform"),
                    now,
                    to_db(expires_at),
                    now,
                ),
            )
            conn.commit()
            row = conn.execute(
                "SELECT * FROM user_sessions WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        return self._row_to_session(row)

    def get_session_by_token_hash(self, token_hash: str) -> Optional[UserSession]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM user_sessions WHERE token_hash = ?", (token_hash,)
            ).fetchone()
        return self._row_to_session(row) if row else None

    def get_session(self, session_id: int) -> Optional[UserSession]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM user_sessions WHERE id = ?", (session_id,)).fetchone()
        return self._row_to_session(row) if row else None

    def list_sessions(self, user_id: int) -> List[UserSession]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM user_sessions
                WHERE user_id = ? AND is_active = 1
                ORDER BY last_activity_at DESC, id DESC
                """,
                (user_id,),
            ).fetchall()
        return [self._row_to_session(row) for row in rows]

    def touch_session(self, session_id: int) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE user_sessions SET last_activity_at = ? WHERE id = ?",
                (self._now(), session_id),
            )
            conn.commit()

    def rotate_session_token(self, session_id: int, token_hash: str, expires_at: datetime) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE user_sessions
                SET token_hash = ?, expires_at = ?, last_activity_at = ?
                WHERE id = ?
                """,
                (token_hash, to_db(expires_at), self._now(), session_id),
            )
            conn.commit()

    def deactivate_session(self, session_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE user_sessions SET is_active = 0 WHERE id = ? AND is_active = 1",
                (session_id,),
            )
            conn.commit()
            return cursor.rowcount > 0

    def deactivate_sessions(self, user_id: int, except_session_id: Optional[int] = None) -> int:
        """Invalidate every active session of a user, optionally keeping one."""
        with self._connect() as conn:
            if except_session_id is None:
                cursor = conn.execute(
                    "UPDATE user_sessions SET is_active = 0 WHERE user_id = ? AND is_active = 1",
                    (user_id,),
                )
            else:
                cursor = conn.execute(
                    """
                    UPDATE user_sessions SET is_active = 0
                    WHERE user_id = ? AND is_active = 1 AND id != ?
                    """,
                    (user_id, except_session_id),
                )
            conn.commit()
            return cursor.rowcount

    # ----------------------------------------------------------- reset tokens

    def create_reset_token(
        self, user_id: int, email: str, token_hash: str, expires_at: datetime
    ) -> PasswordResetToken:
        now = self._now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO password_reset_tokens (user_id, email, token_hash, expires_at, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, email, token_hash, to_db(expires_at), now),
            )
            conn.commit()
            row = conn.execute(
                "SELECT * FROM password_reset_tokens WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        return self._row_to_reset_token(row)

    def get_reset_token(self, token_hash: str) -> Optional[PasswordResetToken]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM password_reset_tokens WHERE token_hash = ?", (token_hash,)
            ).fetchone()
        return self._row_to_reset_token(row) if row else None

    def mark_reset_token_used(self, token_id: int) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE password_reset_tokens SET used_at = ? WHERE id = ?",
                (self._now(), token_id),
            )
            conn.commit()

    @staticmethod
    def _row_to_reset_token(row: sqlite3.Row) -> PasswordResetToken:
        return PasswordResetToken(
            id=row["id"],
            user_id=row["user_id"],
            email=row["email"],
            expires_at=from_db(row["expires_at"]),
            used_at=from_db(row["used_at"]),
            created_at=row["created_at"],
        )


class PreferenceRepository(BaseRepository):
    """One JSON settings document per user, merged over PREFERENCE_DEFAULTS."""

    def get(self, user_id: int) -> UserPreference:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM user_preferences WHERE user_id = ?", (user_id,)
            ).fetchone()
        if row is None:
            return self.create_defaults(user_id)
        return UserPreference(
            user_id=row["user_id"],
            settings=json.loads(row["settings_json"]),
            updated_at=row["updated_at"],
        )

    def create_defaults(self, user_id: int) -> UserPreference:
        now = self._now()
        settings = dict(PREFERENCE_DEFAULTS)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO user_preferences (user_id, settings_json, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, json.dumps(settings), now, now),
            )
            conn.commit()
        return UserPreference(user_id=user_id, settings=settings, updated_at=now)

    def update(self, user_id: int, changes: Dict[str, Any]) -> UserPreference:
        current = self.get(user_id)
        settings = current.to_dict()
        for key, value in changes.items():
            if key in PREFERENCE_DEFAULTS:
                settings[key] = value
        now = self._now()
        with self._connect() as conn:
            conn.execute(
                "UPDATE user_preferences SET settings_json = ?, updated_at = ? WHERE user_id = ?",
                (json.dumps(settings), now, user_id),
            )
            conn.commit()
        return UserPreference(user_id=user_id, settings=settings, updated_at=now)

    def reset(self, user_id: int, keys: Optional[List[str]] = None) -> UserPreference:
        """Restore defaults for the given keys (all keys when omitted)."""
        keys = list(PREFERENCE_DEFAULTS) if keys is None else keys
        return self.update(user_id, {key: PREFERENCE_DEFAULTS[key] for key in keys})
