"""Dependency helpers shared across FastAPI routes."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.accounts import AuthService, PreferenceRepository, User, UserPreference, UserRepository, UserSession
from src.i18n import DEFAULT_LOCALE, Translator
from src.notifications import (
    NotificationLog,
    NotificationRepository,
    NotificationRule,
    NotificationService,
    NotificationSettings,
    build_channels,
    reminder_time,
)
from src.projects import Project, ProjectRepository
from src.saved_views import SavedView, SavedViewRepository
from src.tags import Tag, TagRepository
from src.taskflow.config import Config
from src.taskflow.exceptions import AuthenticationError, NotFoundError, PermissionDeniedError
from src.taskflow.logger import setup_logger
from src.taskflow.mailer import Mailer, create_mailer
from src.taskflow.scheduler import ReminderScheduler
from src.tasks import Subtask, SubtaskRepository, Task, TaskRepository, TaskSearchService

from .schemas import (
    AuthResponse,
    NotificationLogResponse,
    NotificationRuleResponse,
    NotificationSettingsResponse,
    ProjectResponse,
    SavedViewResponse,
    SessionResponse,
    SubtaskResponse,
    TagBrief,
    TagResponse,
    TaskResponse,
    ThemeResponse,
    UserResponse,
)

PROJECT_ROOT = Path(__file__).parent.parent.parent

config = Config.from_yaml()
setup_logger(log_level=config.log_level, log_file=config.log_file)

bearer_scheme = HTTPBearer(auto_error=False)


def _db_path() -> Optional[Path]:
    """Configured database file; None lets TASKFLOW_DB_PATH win."""
    if os.getenv("TASKFLOW_DB_PATH"):
        return None
    path = Path(config.database.path)
    return path if path.is_absolute() else PROJECT_ROOT / path


@lru_cache(maxsize=1)
def get_user_repository() -> UserRepository:
    """Singleton UserRepository."""
    return UserRepository(_db_path())


@lru_cache(maxsize=1)
def get_preference_repository() -> PreferenceRepository:
    return PreferenceRepository(_db_path())


@lru_cache(maxsize=1)
def get_task_repository() -> TaskRepository:
    """Singleton TaskRepository."""
    return TaskRepository(_db_path())


@lru_cache(maxsize=1)
def get_subtask_repository() -> SubtaskRepository:
    return SubtaskRepository(_db_path())


@lru_cache(maxsize=1)
def get_project_repository() -> ProjectRepository:
    """Singleton ProjectRepository."""
    return ProjectRepository(_db_path())


@lru_cache(maxsize=1)
def get_tag_repository() -> TagRepository:
    """Singleton TagRepository."""
    return TagRepository(_db_path())


@lru_cache(maxsize=1)
def get_saved_view_repository() -> SavedViewRepository:
    return SavedViewRepository(_db_path())


@lru_cache(maxsize=1)
def get_notification_repository() -> NotificationRepository:
    return NotificationRepository(_db_path())


@lru_cache(maxsize=1)
def get_mailer() -> Mailer:
    """Singleton mailer for the configured driver."""
    return create_mailer(config.mail)


@lru_cache(maxsize=1)
def get_auth_service() -> AuthService:
    """Singleton AuthService; throttle counters live on this instance."""
    return AuthService(
        get_user_repository(),
        get_preference_repository(),
        get_mailer(),
        config.auth,
    )


@lru_cache(maxsize=1)
def get_search_service() -> TaskSearchService:
    return TaskSearchService(get_task_repository())


@lru_cache(maxsize=1)
def get_notification_service() -> NotificationService:
    """Singleton NotificationService wired to the configured channels."""
    return NotificationService(
        get_notification_repository(),
        build_channels(get_mailer(), config.notifications),
        config.notifications,
    )


@lru_cache(maxsize=1)
def get_scheduler() -> ReminderScheduler:
    """Singleton ReminderScheduler. The app lifespan starts and stops it."""
    return ReminderScheduler(
        get_notification_service(),
        interval_seconds=config.notifications.interval_seconds,
    )


def clear_caches() -> None:
    """Drop every cached singleton (tests switch databases between cases)."""
    for getter in (
        get_user_repository,
        get_preference_repository,
        get_task_repository,
        get_subtask_repository,
        get_project_repository,
        get_tag_repository,
        get_saved_view_repository,
        get_notification_repository,
        get_mailer,
        get_auth_service,
        get_search_service,
        get_notification_service,
        get_scheduler,
        get_translator,
    ):
        getter.cache_clear()


MAX_PAGE = 1_000_000


def per_page_or_default(per_page: Optional[int]) -> int:
    if per_page is None:
        return config.pagination.default_per_page
    return max(1, min(per_page, config.pagination.max_per_page))


@lru_cache(maxsize=1)
def get_translator() -> Translator:
    """Singleton Translator over the bundled message catalogues."""
    return Translator()


def request_locale(request: Request) -> str:
    """Locale chosen for this request (Accept-Language, then the user's preference)."""
    return getattr(request.state, "locale", None) or DEFAULT_LOCALE


def translate(request: Request, key: str, **params: Any) -> str:
    return get_translator().get(key, request_locale(request), **params)


# ----------------------------------------------------------------------------
# authentication / ownership
# ----------------------------------------------------------------------------
@dataclass
class AuthContext:
    """The caller behind a bearer token."""

    user: User
    session: UserSession
    token: str
    locale: str = DEFAULT_LOCALE

    def t(self, key: str, **params: Any) -> str:
        """Message ``key`` in the caller's locale."""
        return get_translator().get(key, self.locale, **params)


def _preferred_locale(user_id: int) -> Optional[str]:
    locale = get_preference_repository().get(user_id).effective_locale()
    return locale if get_translator().is_supported(locale) else None


async def get_current_auth(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthContext:
    """Resolve the bearer token or raise 401.

    Without a usable Accept-Language header the request locale falls back to
    the user's saved language.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()
    service = get_auth_service()
    user, session = await asyncio.to_thread(service.authenticate, credentials.credentials)
    if getattr(request.state, "locale", None) is None:
        request.state.locale = await asyncio.to_thread(_preferred_locale, user.id)
    return AuthContext(
        user=user, session=session, token=credentials.credentials, locale=request_locale(request)
    )


def client_details(request: Request) -> tuple[Optional[str], Optional[str]]:
    """Client IP and User-Agent of a request."""
    ip_address = request.client.host if request.client else None
    return ip_address, request.headers.get("user-agent")


def ensure_owner(item: Any, user_id: int, resource: str, item_id: Any = None) -> Any:
    """404 when the row is missing, 403 when another user owns it."""
    if item is None:
        raise NotFoundError(resource, item_id)
    if item.user_id != user_id:
        raise PermissionDeniedError()
    return item


def load_owned(repo: Any, item_id: int, user_id: int, resource: str) -> Any:
    """Fetch a row through ``repo.get`` and check its owner."""
    return ensure_owner(repo.get(item_id), user_id, resource, item_id)


def load_owned_subtask(task_id: int, subtask_id: int, user_id: int) -> tuple[Subtask, Task]:
    """A subtask and its parent task, owned through the task.

    A subtask that exists under a different task is reported as missing.
    """
    task = load_owned(get_task_repository(), task_id, user_id, "Task")
    subtask = get_subtask_repository().get(subtask_id)
    if subtask is None or subtask.task_id != task.id:
        raise NotFoundError("Subtask", subtask_id)
    return subtask, task


# ----------------------------------------------------------------------------
# serializers
# ----------------------------------------------------------------------------
def serialize_user(user: User) -> UserResponse:
    """Convert domain User to API response (never exposes the password hash)."""
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        timezone=user.timezone,
        locale=user.locale,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def serialize_session(session: UserSession, current_session_id: Optional[int] = None) -> SessionResponse:
    return SessionResponse(
        id=session.id,
        ip_address=session.ip_address,
        user_agent=session.user_agent,
        device_type=session.device_type,
        browser=session.browser,
        platform=session.platform,
        is_active=session.is_active,
        is_current=session.id == current_session_id,
        last_activity_at=session.last_activity_at,
        expires_at=session.expires_at,
        created_at=session.created_at,
    )


def serialize_auth(user: User, token: str, session: UserSession) -> AuthResponse:
    return AuthResponse(
        user=serialize_user(user),
        token=token,
        expires_at=session.expires_at,
        session=serialize_session(session, session.id),
    )


def serialize_tag(tag: Tag) -> TagResponse:
    return TagResponse(
        id=tag.id,
        name=tag.name,
        color=tag.color,
        task_count=tag.task_count,
        created_at=tag.created_at,
        updated_at=tag.updated_at,
    )


def serialize_task(task: Task) -> TaskResponse:
    """Convert domain Task to API response."""
    return TaskResponse(
        id=task.id,
        title=task.title,
        description=task.description,
        priority=task.priority,
        due_date=task.due_date,
        is_completed=task.is_completed,
        completed_at=task.completed_at,
        project_id=task.project_id,
        tags=[TagBrief(id=tag.id, name=tag.name, color=tag.color) for tag in task.tags],
        subtasks_total=task.subtasks_total,
        subtasks_completed=task.subtasks_completed,
        subtask_progress=task.subtask_progress,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def serialize_subtask(subtask: Subtask) -> SubtaskResponse:
    return SubtaskResponse(
        id=subtask.id,
        task_id=subtask.task_id,
        title=subtask.title,
        description=subtask.description,
        is_completed=subtask.is_completed,
        order=subtask.order,
        created_at=subtask.created_at,
        updated_at=subtask.updated_at,
    )


def serialize_project(project: Project) -> ProjectResponse:
    return ProjectResponse(
        id=project.id,
        name=project.name,
        color=project.color,
        icon=project.icon,
        is_favorite=project.is_favorite,
        parent_id=project.parent_id,
        task_count=project.task_count,
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


def serialize_saved_view(view: SavedView) -> SavedViewResponse:
    return SavedViewResponse(
        id=view.id,
        name=view.name,
        filters=view.filters,
        sort_order=view.sort_order,
        display_mode=view.display_mode,
        icon=view.icon,
        is_default=view.is_default,
        created_at=view.created_at,
        updated_at=view.updated_at,
    )


def serialize_rule(rule: NotificationRule, task: Optional[Task] = None) -> NotificationRuleResponse:
    """Convert a rule; ``reminder_time`` needs the task's due date."""
    return NotificationRuleResponse(
        id=rule.id,
        user_id=rule.user_id,
        task_id=rule.task_id,
        channel=rule.channel,
        channel_label=rule.channel.label,
        reminder_offset=rule.reminder_offset,
        reminder_unit=rule.reminder_unit,
        reminder_text=rule.reminder_text,
        reminder_time=reminder_time(rule, task.due_date) if task else None,
        is_enabled=rule.is_enabled,
        last_sent_at=rule.last_sent_at,
        created_at=rule.created_at,
        updated_at=rule.updated_at,
    )


def serialize_log(log: NotificationLog) -> NotificationLogResponse:
    return NotificationLogResponse(
        id=log.id,
        notification_rule_id=log.notification_rule_id,
        task_id=log.task_id,
        channel=log.channel,
        channel_label=log.channel.label,
        status=log.status,
        status_label=log.status.label,
        sent_at=log.sent_at,
        read_at=log.read_at,
        is_read=log.is_read,
        error_message=log.error_message,
        metadata=log.metadata,
        created_at=log.created_at,
    )


def serialize_notification_settings(settings: NotificationSettings) -> NotificationSettingsResponse:
    return NotificationSettingsResponse(
        id=settings.id,
        user_id=settings.user_id,
        email_notifications_enabled=settings.email_notifications_enabled,
        in_app_notifications_enabled=settings.in_app_notifications_enabled,
        timezone=settings.timezone,
        default_reminder_offset=settings.default_reminder_offset,
        default_reminder_unit=settings.default_reminder_unit,
        default_reminder_text=settings.default_reminder_text,
        created_at=settings.created_at,
        updated_at=settings.updated_at,
    )


def serialize_theme(preference: UserPreference) -> ThemeResponse:
    """Theme slice of the preference document."""
    return ThemeResponse(
        theme_mode=preference.get("theme_mode"),
        effective_theme_mode=preference.effective_theme_mode(),
        locale=preference.effective_locale(),
        preferences={
            "reduced_motion": bool(preference.get("reduced_motion")),
            "high_contrast": bool(preference.get("high_contrast")),
            "font_scale": float(preference.get("font_scale")),
            "font_scale_percentage": preference.font_scale_percentage(),
        },
        primary_color=preference.get("primary_color"),
        accent_color=preference.get("accent_color"),
        updated_at=preference.updated_at,
    )
