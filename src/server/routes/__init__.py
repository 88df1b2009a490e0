"""Route registration helpers."""

from .auth import register_auth_routes
from .calendar import register_calendar_routes
from .navigation import register_navigation_routes
from .notifications import register_notification_routes
from .projects import register_project_routes
from .saved_views import register_saved_view_routes
from .subtasks import register_subtask_routes
from .tags import register_tag_routes
from .tasks import register_task_routes
from .theme import register_theme_routes

__all__ = [
    "register_auth_routes",
    "register_calendar_routes",
    "register_navigation_routes",
    "register_notification_routes",
    "register_project_routes",
    "register_saved_view_routes",
    "register_subtask_routes",
    "register_tag_routes",
    "register_task_routes",
    "register_theme_routes",
]
