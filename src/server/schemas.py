"""Pydantic schemas for the FastAPI server."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.notifications import Channel, LogStatus, ReminderUnit
from src.tasks import TaskPriority

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"
_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DisplayMode = Literal["list", "calendar", "board"]
ThemeMode = Literal["light", "dark", "system"]
Locale = Literal["en", "fa"]


def _parse_due_date(value: Any) -> Any:
    """Accept a bare ``YYYY-MM-DD`` as midnight UTC."""
    if isinstance(value, str) and _DATE_ONLY.match(value.strip()):
        return datetime.combine(date.fromisoformat(value.strip()), time.min, tzinfo=timezone.utc)
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return value


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str


class MessageResponse(BaseModel):
    message: str


# ----------------------------------------------------------------------------
# accounts
# ----------------------------------------------------------------------------
class RegisterRequest(BaseModel):
    """Request body for registration."""

    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., description="At least 8 characters")
    password_confirmation: Optional[str] = Field(default=None)
    timezone: str = Field(default="UTC", max_length=64)
    locale: Locale = Field(default="en")


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    timezone: Optional[str] = Field(default=None, max_length=64)
    locale: Optional[Locale] = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    password: str
    password_confirmation: Optional[str] = None


class DeleteAccountRequest(BaseModel):
    password: str


class ForgotPasswordRequest(BaseModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str
    password_confirmation: Optional[str] = None


class UserResponse(BaseModel):
    """Serialized account."""

    id: int
    name: str
    email: str
    timezone: str
    locale: str
    is_active: bool
    created_at: str
    updated_at: str


class SessionResponse(BaseModel):
    id: int
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    device_type: Optional[str] = None
    browser: Optional[str] = None
    platform: Optional[str] = None
    is_active: bool
    is_current: bool = False
    last_activity_at: datetime
    expires_at: datetime
    created_at: str


class AuthResponse(BaseModel):
    """Token issued by register / login."""

    user: UserResponse
    token: str
    token_type: str = "Bearer"
    expires_at: datetime
    session: SessionResponse


class UserEnvelope(BaseModel):
    user: UserResponse
    message: Optional[str] = None


class SessionListResponse(BaseModel):
    sessions: List[SessionResponse]


class RefreshResponse(BaseModel):
    token: str
    token_type: str = "Bearer"
    expires_at: datetime


class PreferencesUpdateRequest(BaseModel):
    """Partial update of the user preference document."""

    model_config = ConfigDict(extra="forbid")

    theme: Optional[Literal["light", "dark", "system"]] = None
    theme_mode: Optional[ThemeMode] = None
    language: Optional[Locale] = None
    app_locale: Optional[Locale] = None
    calendar_type: Optional[Literal["gregorian", "jalali"]] = None
    email_notifications: Optional[bool] = None
    push_notifications: Optional[bool] = None
    task_reminders: Optional[bool] = None
    daily_digest: Optional[bool] = None
    weekly_digest: Optional[bool] = None
    marketing_emails: Optional[bool] = None
    session_timeout: Optional[int] = Field(default=None, ge=5, le=1440)
    items_per_page: Optional[int] = Field(default=None, ge=5, le=100)
    date_format: Optional[Literal["Y-m-d", "m/d/Y", "d/m/Y", "d.m.Y"]] = None
    time_format: Optional[Literal["H:i", "h:i A"]] = None
    start_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    default_task_view: Optional[DisplayMode] = None
    show_week_numbers: Optional[bool] = None
    reduced_motion: Optional[bool] = None
    high_contrast: Optional[bool] = None
    font_scale: Optional[float] = Field(default=None, ge=0.8, le=1.5)
    primary_color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    accent_color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)


class PreferencesResponse(BaseModel):
    data: Dict[str, Any]
    message: Optional[str] = None


class AccessibilityPreferences(BaseModel):
    reduced_motion: Optional[bool] = None
    high_contrast: Optional[bool] = None
    font_scale: Optional[float] = Field(default=None, ge=0.8, le=1.5)


class ThemeUpdateRequest(BaseModel):
    theme_mode: Optional[ThemeMode] = None
    locale: Optional[Locale] = None
    preferences: Optional[AccessibilityPreferences] = None
    primary_color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    accent_color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)


class ThemeModeRequest(BaseModel):
    theme_mode: ThemeMode


class ThemeLocaleRequest(BaseModel):
    locale: Locale


class ThemeResponse(BaseModel):
    """Theme and accessibility settings."""

    theme_mode: str
    effective_theme_mode: str
    locale: str
    preferences: Dict[str, Any]
    primary_color: Optional[str] = None
    accent_color: Optional[str] = None
    updated_at: Optional[str] = None


class ThemeEnvelope(BaseModel):
    data: ThemeResponse
    message: Optional[str] = None


# ----------------------------------------------------------------------------
# tags / projects
# ----------------------------------------------------------------------------
class TagCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)


class TagUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)


class TagBrief(BaseModel):
    id: int
    name: str
    color: Optional[str] = None


class TagResponse(TagBrief):
    task_count: int = 0
    created_at: str
    updated_at: str


class TagListResponse(BaseModel):
    tags: List[TagResponse]


class TagEnvelope(BaseModel):
    tag: TagResponse
    message: Optional[str] = None


class ProjectCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    color: Optional[str] = Field(default=None, max_length=20)
    icon: Optional[str] = Field(default=None, max_length=50)
    parent_id: Optional[int] = None
    is_favorite: bool = False


class ProjectUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    color: Optional[str] = Field(default=None, max_length=20)
    icon: Optional[str] = Field(default=None, max_length=50)
    parent_id: Optional[int] = None
    is_favorite: Optional[bool] = None


class ProjectFavoriteRequest(BaseModel):
    is_favorite: bool


class ProjectResponse(BaseModel):
    """Serialized project with its open task count."""

    id: int
    name: str
    color: str
    icon: str
    is_favorite: bool
    parent_id: Optional[int] = None
    task_count: int = 0
    created_at: str
    updated_at: str


class ProjectListResponse(BaseModel):
    favorites: List[ProjectResponse]
    other: List[ProjectResponse]


class ProjectEnvelope(BaseModel):
    project: ProjectResponse
    message: Optional[str] = None


# ----------------------------------------------------------------------------
# tasks
# ----------------------------------------------------------------------------
class TaskCreateRequest(BaseModel):
    """Request body for task creation."""

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=10000)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    due_date: Optional[datetime] = Field(default=None, description="ISO datetime or YYYY-MM-DD")
    project_id: Optional[int] = None
    tags: List[int] = Field(default_factory=list, description="IDs of the caller's tags")
    is_completed: bool = False

    _due = field_validator("due_date", mode="before")(_parse_due_date)


class TaskUpdateRequest(BaseModel):
    """Partial task update; ``tags`` replaces the tag set when present."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=10000)
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    project_id: Optional[int] = None
    tags: Optional[List[int]] = None
    is_completed: Optional[bool] = None

    _due = field_validator("due_date", mode="before")(_parse_due_date)


class TaskDateRequest(BaseModel):
    due_date: datetime

    _due = field_validator("due_date", mode="before")(_parse_due_date)


class TaskResponse(BaseModel):
    """Serialized task."""

    id: int
    title: str
    description: str
    priority: TaskPriority
    due_date: Optional[datetime] = None
    is_completed: bool
    completed_at: Optional[datetime] = None
    project_id: Optional[int] = None
    tags: List[TagBrief] = Field(default_factory=list)
    subtasks_total: int = 0
    subtasks_completed: int = 0
    subtask_progress: int = 0
    created_at: str
    updated_at: str


class PageMeta(BaseModel):
    current_page: int
    last_page: int
    per_page: int
    total: int
    query: Optional[str] = None
    filters_applied: Optional[List[str]] = None


class TaskListResponse(BaseModel):
    data: List[TaskResponse]
    meta: PageMeta


class TaskEnvelope(BaseModel):
    data: TaskResponse
    message: Optional[str] = None


class CalendarMeta(BaseModel):
    start_date: date
    end_date: date
    total: int


class CalendarResponse(BaseModel):
    data: List[TaskResponse]
    meta: CalendarMeta


class QuickSearchMeta(BaseModel):
    query: str
    limit: int
    count: int


class QuickSearchResponse(BaseModel):
    data: List[TaskResponse]
    meta: QuickSearchMeta


class SuggestionsResponse(BaseModel):
    suggestions: List[str]


class SearchStatsResponse(BaseModel):
    query: str
    total_matches: int


class SubtaskCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    order: Optional[int] = Field(default=None, ge=0)


class SubtaskUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_completed: Optional[bool] = None
    order: Optional[int] = Field(default=None, ge=0)


class SubtaskResponse(BaseModel):
    id: int
    task_id: int
    title: str
    description: Optional[str] = None
    is_completed: bool
    order: int
    created_at: str
    updated_at: str


class SubtaskListMeta(BaseModel):
    total: int
    completed: int
    progress: int


class SubtaskListResponse(BaseModel):
    data: List[SubtaskResponse]
    meta: SubtaskListMeta


class SubtaskEnvelope(BaseModel):
    data: SubtaskResponse
    message: Optional[str] = None


# ----------------------------------------------------------------------------
# saved views
# ----------------------------------------------------------------------------
class SavedViewCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    filter_conditions: Optional[Dict[str, Any]] = None
    sort_order: Optional[Dict[str, Any]] = None
    display_mode: Optional[DisplayMode] = None
    icon: Optional[str] = Field(default=None, max_length=50)
    is_default: bool = False


class SavedViewUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    filter_conditions: Optional[Dict[str, Any]] = None
    sort_order: Optional[Dict[str, Any]] = None
    display_mode: Optional[DisplayMode] = None
    icon: Optional[str] = Field(default=None, max_length=50)
    is_default: Optional[bool] = None


class SavedViewResponse(BaseModel):
    id: int
    name: str
    filters: Dict[str, Any]
    sort_order: Dict[str, Any]
    display_mode: str
    icon: Optional[str] = None
    is_default: bool
    created_at: str
    updated_at: str


class SavedViewListResponse(BaseModel):
    saved_views: List[SavedViewResponse]


class SavedViewEnvelope(BaseModel):
    saved_view: SavedViewResponse
    message: Optional[str] = None


# ----------------------------------------------------------------------------
# notifications
# ----------------------------------------------------------------------------
# per-unit limits are checked by the notification service
MAX_REMINDER_OFFSET = ReminderUnit.MINUTES.max_offset


class NotificationRuleCreateRequest(BaseModel):
    """Offset and unit default to the user's notification settings."""

    channel: Channel = Field(default=Channel.EMAIL)
    reminder_offset: Optional[int] = Field(default=None, ge=1, le=MAX_REMINDER_OFFSET)
    reminder_unit: Optional[ReminderUnit] = None
    is_enabled: bool = True


class NotificationRuleUpdateRequest(BaseModel):
    channel: Optional[Channel] = None
    reminder_offset: Optional[int] = Field(default=None, ge=1, le=MAX_REMINDER_OFFSET)
    reminder_unit: Optional[ReminderUnit] = None
    is_enabled: Optional[bool] = None


class NotificationRuleResponse(BaseModel):
    id: int
    user_id: int
    task_id: int
    channel: Channel
    channel_label: str
    reminder_offset: int
    reminder_unit: ReminderUnit
    reminder_text: str
    reminder_time: Optional[datetime] = None
    is_enabled: bool
    last_sent_at: Optional[datetime] = None
    created_at: str
    updated_at: str


class NotificationRuleListResponse(BaseModel):
    success: bool = True
    data: List[NotificationRuleResponse]


class NotificationRuleEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: NotificationRuleResponse


class NotificationLogResponse(BaseModel):
    id: int
    notification_rule_id: int
    task_id: int
    channel: Channel
    channel_label: str
    status: LogStatus
    status_label: str
    sent_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    is_read: bool
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: str


class NotificationHistoryResponse(BaseModel):
    success: bool = True
    data: List[NotificationLogResponse]


class NotificationSettingsUpdateRequest(BaseModel):
    email_notifications_enabled: Optional[bool] = None
    in_app_notifications_enabled: Optional[bool] = None
    timezone: Optional[str] = Field(default=None, max_length=64)
    default_reminder_offset: Optional[int] = Field(default=None, ge=1, le=MAX_REMINDER_OFFSET)
    default_reminder_unit: Optional[ReminderUnit] = None


class NotificationSettingsResponse(BaseModel):
    id: int
    user_id: int
    email_notifications_enabled: bool
    in_app_notifications_enabled: bool
    timezone: str
    default_reminder_offset: int
    default_reminder_unit: ReminderUnit
    default_reminder_text: str
    created_at: str
    updated_at: str


class NotificationSettingsEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: NotificationSettingsResponse


class SuccessResponse(BaseModel):
    success: bool = True
    message: str


class UnreadCountResponse(BaseModel):
    success: bool = True
    count: int


class SchedulerStatusResponse(BaseModel):
    """Response for reminder scheduler status endpoint."""

    running: bool
    interval_seconds: int
    runs: int
    last_run_at: Optional[float] = None
    last_result: Optional[Dict[str, Any]] = None
    last_error: Optional[str] = None
