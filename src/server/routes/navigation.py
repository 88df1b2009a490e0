"""Sidebar navigation endpoints."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, HTTPException

from src.storage import utc_now
from src.tasks import TaskFilter

from ..dependencies import (
    AuthContext,
    get_current_auth,
    get_project_repository,
    get_saved_view_repository,
    get_tag_repository,
    get_task_repository,
    serialize_project,
    serialize_saved_view,
    serialize_tag,
)

logger = logging.getLogger(__name__)


def system_filters(today: date) -> List[Dict[str, Any]]:
    """Built-in task lists; ``filter`` uses the saved-view filter format."""
    yesterday = (today - timedelta(days=1)).isoformat()
    tomorrow = (today + timedelta(days=1)).isoformat()
    return [
        {"id": "inbox", "name": "Inbox", "icon": "inbox", "filter": {"project_id": None, "is_completed": False}},
        {"id": "all_tasks", "name": "All Tasks", "icon": "list", "filter": {}},
        {"id": "completed", "name": "Completed", "icon": "check", "filter": {"is_completed": True}},
        {"id": "today", "name": "Today", "icon": "sun", "filter": {"due_date": today.isoformat(), "is_completed": False}},
        {
            "id": "overdue",
            "name": "Overdue",
            "icon": "alert",
            "filter": {"due_date": {"to": yesterday}, "is_completed": False},
        },
        {
            "id": "upcoming",
            "name": "Upcoming",
            "icon": "calendar",
            "filter": {"due_date": {"from": tomorrow}, "is_completed": False},
        },
    ]


def build_counts(user_id: int, today: date) -> Dict[str, int]:
    tasks = get_task_repository()
    counts = {
        item["id"]: tasks.count(user_id, TaskFilter.from_mapping(item["filter"]))
        for item in system_filters(today)
    }
    counts["projects"] = len(get_project_repository().list(user_id))
    counts["tags"] = len(get_tag_repository().list(user_id))
    counts["saved_views"] = get_saved_view_repository().count(user_id)
    return counts


def build_navigation(user_id: int, today: date) -> Dict[str, Any]:
    tasks = get_task_repository()
    filters = system_filters(today)
    for item in filters:
        item["type"] = "system"
        item["count"] = tasks.count(user_id, TaskFilter.from_mapping(item["filter"]))

    projects = get_project_repository().list(user_id)
    tags = get_tag_repository().list(user_id)
    views = get_saved_view_repository().list(user_id)
    counts = {item["id"]: item["count"] for item in filters}
    counts.update(projects=len(projects), tags=len(tags), saved_views=len(views))

    return {
        "system_filters": filters,
        "projects": [serialize_project(p).model_dump() for p in projects if not p.is_favorite],
        "favorites": [serialize_project(p).model_dump() for p in projects if p.is_favorite],
        "tags": [serialize_tag(tag).model_dump() for tag in tags],
        "saved_views": [serialize_saved_view(view).model_dump() for view in views],
        "counts": counts,
    }


def register_navigation_routes(app: FastAPI) -> None:
    """Register sidebar endpoints."""

    @app.get("/api/navigation")
    async def navigation(auth: AuthContext = Depends(get_current_auth)) -> Dict[str, Any]:
        """Everything the sidebar shows, in one call."""
        try:
            return await asyncio.to_thread(build_navigation, auth.user.id, utc_now().date())
        except Exception as exc:
            logger.exception("Failed to build navigation: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to build navigation") from exc

    @app.get("/api/navigation/counts")
    async def navigation_counts(auth: AuthContext = Depends(get_current_auth)) -> Dict[str, Any]:
        try:
            counts = await asyncio.to_thread(build_counts, auth.user.id, utc_now().date())
            return {"counts": counts}
        except Exception as exc:
            logger.exception("Failed to count tasks: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to count tasks") from exc
