from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(slots=True)
class User:
    """Registered account."""

    id: int
    name: str
    email: str
    password_hash: str
    timezone: str
    locale: str
    is_active: bool
    created_at: str
    updated_at: str


@dataclass(slots=True)
class UserSession:
    """A login. The bearer token itself is never stored, only its hash."""

    id: int
    user_id: int
    ip_address: Optional[str]
    user_agent: Optional[str]
    device_type: Optional[str]
    browser: Optional[str]
    platform: Optional[str]
    is_active: bool
    last_activity_at: datetime
    expires_at: datetime
    created_at: str

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(slots=True)
class PasswordResetToken:
    id: int
    user_id: int
    email: str
    expires_at: datetime
    used_at: Optional[datetime]
    created_at: str


# Preference values accepted by the API; DEFAULTS fills anything unset.
THEMES = ("light", "dark", "system")
THEME_MODES = ("light", "dark", "system")
CALENDAR_TYPES = ("gregorian", "jalali")
LANGUAGES = ("en", "fa")
DATE_FORMATS = ("Y-m-d", "m/d/Y", "d/m/Y", "d.m.Y")
TIME_FORMATS = ("H:i", "h:i A")
TASK_VIEWS = ("list", "calendar", "board")

PREFERENCE_DEFAULTS: Dict[str, Any] = {
    "theme": "light",
    "theme_mode": "system",
    "language": "en",
    "app_locale": "en",
    "calendar_type": "gregorian",
    "email_notifications": True,
    "push_notifications": True,
    "task_reminders": True,
    "daily_digest": False,
    "weekly_digest": False,
    "marketing_emails": False,
    "session_timeout": 60,
    "items_per_page": 20,
    "date_format": "Y-m-d",
    "time_format": "H:i",
    "start_of_week": 1,
    "default_task_view": "list",
    "show_week_numbers": False,
    "reduced_motion": False,
    "high_contrast": False,
    "font_scale": 1.0,
    "primary_color": None,
    "accent_color": None,
}

THEME_FIELDS = (
    "theme_mode",
    "app_locale",
    "reduced_motion",
    "high_contrast",
    "font_scale",
    "primary_color",
    "accent_color",
)


@dataclass(slots=True)
class UserPreference:
    user_id: int
    settings: Dict[str, Any]
    updated_at: str

    def get(self, key: str) -> Any:
        return self.settings.get(key, PREFERENCE_DEFAULTS.get(key))

    def effective_theme_mode(self, system_preference: str = "light") -> str:
        mode = self.get("theme_mode")
        if mode == "system":
            return system_preference
        return mode or "light"

    def effective_locale(self) -> str:
        return self.get("app_locale") or self.get("language") or "en"

    def font_scale_percentage(self) -> int:
        return int(round(float(self.get("font_scale") or 1.0) * 100))

    def to_dict(self) -> Dict[str, Any]:
        merged = dict(PREFERENCE_DEFAULTS)
        merged.update(self.settings)
        return merged
