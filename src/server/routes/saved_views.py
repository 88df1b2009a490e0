"""Saved view endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query

from src.saved_views import SavedView
from src.storage import UNSET
from src.taskflow.exceptions import TaskflowError, ValidationError
from src.tasks import Page, Task, TaskFilter, TaskSort

from ..dependencies import (
    MAX_PAGE,
    AuthContext,
    get_current_auth,
    get_saved_view_repository,
    get_task_repository,
    load_owned,
    per_page_or_default,
    serialize_saved_view,
    serialize_task,
)
from ..schemas import (
    MessageResponse,
    PageMeta,
    SavedViewCreateRequest,
    SavedViewEnvelope,
    SavedViewListResponse,
    SavedViewUpdateRequest,
    TaskListResponse,
)

logger = logging.getLogger(__name__)


def _normalize_filters(filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate a filter document and store it in canonical form."""
    try:
        return TaskFilter.from_mapping(filters or {}).to_mapping()
    except (ValueError, TypeError) as exc:
        raise ValidationError.single("filter_conditions", f"Invalid filter value: {exc}") from exc


def _normalize_sort(sort_order: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not sort_order:
        return {}
    try:
        return TaskSort.from_mapping(sort_order).to_mapping()
    except ValueError as exc:
        raise ValidationError.single("sort_order", str(exc)) from exc


def _create_view(user_id: int, request: SavedViewCreateRequest) -> SavedView:
    return get_saved_view_repository().create(
        user_id,
        request.name.strip(),
        filters=_normalize_filters(request.filter_conditions),
        sort_order=_normalize_sort(request.sort_order),
        display_mode=request.display_mode or "list",
        icon=request.icon,
        is_default=request.is_default,
    )


def _update_view(user_id: int, view_id: int, request: SavedViewUpdateRequest) -> SavedView:
    repo = get_saved_view_repository()
    load_owned(repo, view_id, user_id, "Saved view")
    payload = request.model_dump(exclude_unset=True)
    return repo.update(
        view_id,
        name=payload["name"].strip() if payload.get("name") else None,
        filters=_normalize_filters(payload["filter_conditions"]) if "filter_conditions" in payload else None,
        sort_order=_normalize_sort(payload["sort_order"]) if "sort_order" in payload else None,
        display_mode=payload.get("display_mode"),
        icon=payload["icon"] if "icon" in payload else UNSET,
        is_default=payload.get("is_default"),
    )


def _delete_view(user_id: int, view_id: int) -> bool:
    repo = get_saved_view_repository()
    load_owned(repo, view_id, user_id, "Saved view")
    return repo.delete(view_id)


def _view_tasks(user_id: int, view_id: int, page: int, per_page: int) -> Page[Task]:
    view = load_owned(get_saved_view_repository(), view_id, user_id, "Saved view")
    return get_task_repository().list(user_id, view.task_filter(), view.task_sort(), page, per_page)


def register_saved_view_routes(app: FastAPI) -> None:
    """Register saved view CRUD endpoints."""

    @app.get("/api/saved-views", response_model=SavedViewListResponse)
    async def list_saved_views(auth: AuthContext = Depends(get_current_auth)) -> SavedViewListResponse:
        repo = get_saved_view_repository()
        try:
            views = await asyncio.to_thread(repo.list, auth.user.id)
            return SavedViewListResponse(saved_views=[serialize_saved_view(view) for view in views])
        except Exception as exc:
            logger.exception("Failed to list saved views: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to list saved views") from exc

    @app.post("/api/saved-views", response_model=SavedViewEnvelope, status_code=201)
    async def create_saved_view(
        request: SavedViewCreateRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> SavedViewEnvelope:
        try:
            view = await asyncio.to_thread(_create_view, auth.user.id, request)
            return SavedViewEnvelope(saved_view=serialize_saved_view(view), message=auth.t("saved_views.create.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to create saved view: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to create saved view") from exc

    @app.get("/api/saved-views/{view_id}", response_model=SavedViewEnvelope)
    async def show_saved_view(view_id: int, auth: AuthContext = Depends(get_current_auth)) -> SavedViewEnvelope:
        repo = get_saved_view_repository()
        try:
            view = await asyncio.to_thread(load_owned, repo, view_id, auth.user.id, "Saved view")
            return SavedViewEnvelope(saved_view=serialize_saved_view(view))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to load saved view: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to load saved view") from exc

    @app.patch("/api/saved-views/{view_id}", response_model=SavedViewEnvelope)
    async def update_saved_view(
        view_id: int, request: SavedViewUpdateRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> SavedViewEnvelope:
        try:
            view = await asyncio.to_thread(_update_view, auth.user.id, view_id, request)
            return SavedViewEnvelope(saved_view=serialize_saved_view(view), message=auth.t("saved_views.update.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to update saved view: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to update saved view") from exc

    @app.delete("/api/saved-views/{view_id}", response_model=MessageResponse)
    async def delete_saved_view(view_id: int, auth: AuthContext = Depends(get_current_auth)) -> MessageResponse:
        try:
            await asyncio.to_thread(_delete_view, auth.user.id, view_id)
            return MessageResponse(message=auth.t("saved_views.delete.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to delete saved view: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to delete saved view") from exc

    @app.get("/api/saved-views/{view_id}/tasks", response_model=TaskListResponse)
    async def saved_view_tasks(
        view_id: int,
        page: int = Query(1, ge=1, le=MAX_PAGE),
        per_page: Optional[int] = Query(None, ge=1),
        auth: AuthContext = Depends(get_current_auth),
    ) -> TaskListResponse:
        """The caller's tasks through the view's stored filter and sort."""
        try:
            result = await asyncio.to_thread(
                _view_tasks, auth.user.id, view_id, page, per_page_or_default(per_page)
            )
            return TaskListResponse(
                data=[serialize_task(task) for task in result.items],
                meta=PageMeta(
                    current_page=result.page,
                    last_page=result.last_page,
                    per_page=result.per_page,
                    total=result.total,
                ),
            )
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to load saved view tasks: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to load saved view tasks") from exc
