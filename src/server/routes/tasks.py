"""Task endpoints."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, Dict, List, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Query

from src.storage import UNSET
from src.taskflow.exceptions import TaskflowError, ValidationError
from src.tasks import Task, TaskFilter, TaskPriority, TaskSort, TaskStatus

from ..dependencies import (
    MAX_PAGE,
    AuthContext,
    config,
    get_current_auth,
    get_notification_service,
    get_project_repository,
    get_search_service,
    get_tag_repository,
    get_task_repository,
    load_owned,
    per_page_or_default,
    serialize_task,
)
from ..schemas import (
    CalendarMeta,
    CalendarResponse,
    MessageResponse,
    PageMeta,
    QuickSearchMeta,
    QuickSearchResponse,
    SearchStatsResponse,
    SuggestionsResponse,
    TaskCreateRequest,
    TaskDateRequest,
    TaskEnvelope,
    TaskListResponse,
    TaskUpdateRequest,
)

logger = logging.getLogger(__name__)

SortField = Literal["due_date", "priority", "created_at", "title"]
SearchSortField = Literal["relevance", "due_date", "priority", "created_at", "title"]
SortDirection = Literal["asc", "desc"]


def build_filter(params: Dict[str, Any]) -> TaskFilter:
    """TaskFilter from query parameters; bad values become a 422."""
    try:
        return TaskFilter.from_mapping({key: value for key, value in params.items() if value is not None})
    except ValueError as exc:
        raise ValidationError.single("filter", f"Invalid filter value: {exc}") from exc


def build_page_meta(page, task_filter: Optional[TaskFilter] = None, query: Optional[str] = None) -> PageMeta:
    filters_applied = None
    if task_filter is not None and query is not None:
        # the query itself is reported separately
        filters_applied = [name for name in task_filter.applied() if name != "search"]
    return PageMeta(
        current_page=page.page,
        last_page=page.last_page,
        per_page=page.per_page,
        total=page.total,
        query=query,
        filters_applied=filters_applied,
    )


def _check_project(user_id: int, project_id: Optional[int]) -> None:
    if project_id is None:
        return
    project = get_project_repository().get(project_id)
    if project is None or project.user_id != user_id:
        raise ValidationError.single("project_id", "The selected project id is invalid.")


def _check_tags(user_id: int, tag_ids: List[int]) -> None:
    if not tag_ids:
        return
    owned = get_tag_repository().owned_ids(user_id, tag_ids)
    if owned != set(tag_ids):
        raise ValidationError.single("tags", "The selected tags are invalid.")


def _create_task(user_id: int, request: TaskCreateRequest) -> Task:
    _check_project(user_id, request.project_id)
    _check_tags(user_id, request.tags)
    task = get_task_repository().create(
        user_id,
        request.title.strip(),
        description=request.description or "",
        priority=request.priority,
        due_date=request.due_date,
        project_id=request.project_id,
        tag_ids=request.tags,
        is_completed=request.is_completed,
    )
    if task.due_date is not None and config.notifications.create_default_rules:
        get_notification_service().create_default_rules_for_task(user_id, task.id)
    return task


def _update_task(user_id: int, task_id: int, request: TaskUpdateRequest) -> Task:
    repo = get_task_repository()
    current = load_owned(repo, task_id, user_id, "Task")
    payload = request.model_dump(exclude_unset=True)

    if payload.get("title") is None and "title" in payload:
        raise ValidationError.single("title", "The title field is required.")
    if "project_id" in payload:
        _check_project(user_id, payload["project_id"])
    if payload.get("tags") is not None:
        _check_tags(user_id, payload["tags"])

    task = repo.update(
        task_id,
        title=payload["title"].strip() if payload.get("title") else None,
        description=payload.get("description"),
        priority=payload.get("priority"),
        due_date=payload["due_date"] if "due_date" in payload else UNSET,
        project_id=payload["project_id"] if "project_id" in payload else UNSET,
        is_completed=payload.get("is_completed"),
        tag_ids=payload.get("tags"),
    )
    if "due_date" in payload and task.due_date != current.due_date:
        get_notification_service().rearm_task(task_id)
    return task


def _update_due_date(user_id: int, task_id: int, due_date) -> Task:
    repo = get_task_repository()
    current = load_owned(repo, task_id, user_id, "Task")
    task = repo.update_date(task_id, due_date)
    if task.due_date != current.due_date:
        get_notification_service().rearm_task(task_id)
    return task


def _set_completed(user_id: int, task_id: int, completed: bool) -> Task:
    repo = get_task_repository()
    load_owned(repo, task_id, user_id, "Task")
    return repo.complete(task_id) if completed else repo.incomplete(task_id)


def _delete_task(user_id: int, task_id: int) -> bool:
    repo = get_task_repository()
    load_owned(repo, task_id, user_id, "Task")
    return repo.delete(task_id)


def register_task_routes(app: FastAPI) -> None:
    """Register task CRUD, calendar and search endpoints."""

    @app.get("/api/tasks", response_model=TaskListResponse)
    async def list_tasks(
        page: int = Query(1, ge=1, le=MAX_PAGE),
        per_page: Optional[int] = Query(None, ge=1),
        sort_by: SortField = Query("created_at"),
        sort_order: SortDirection = Query("desc"),
        search: Optional[str] = Query(None, max_length=255),
        status: Optional[TaskStatus] = Query(None),
        priority: Optional[TaskPriority] = Query(None),
        project_id: Optional[str] = Query(None, description="Project id, or 'null' for the inbox"),
        tag_id: Optional[int] = Query(None),
        due_date: Optional[date] = Query(None),
        due_from: Optional[date] = Query(None),
        due_to: Optional[date] = Query(None),
        auth: AuthContext = Depends(get_current_auth),
    ) -> TaskListResponse:
        """List the caller's tasks with filters, sorting and pagination."""
        task_filter = build_filter(
            {
                "search": search,
                "status": status.value if status else None,
                "priority": priority.value if priority else None,
                "project_id": project_id,
                "tag_id": tag_id,
                "due_date": due_date,
            }
        )
        task_filter.due_from = due_from
        task_filter.due_to = due_to
        repo = get_task_repository()
        try:
            result = await asyncio.to_thread(
                repo.list,
                auth.user.id,
                task_filter,
                TaskSort(sort_by, sort_order),
                page,
                per_page_or_default(per_page),
            )
            return TaskListResponse(
                data=[serialize_task(task) for task in result.items],
                meta=build_page_meta(result),
            )
        except Exception as exc:
            logger.exception("Failed to list tasks: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to list tasks") from exc

    @app.get("/api/tasks/options")
    async def task_options(auth: AuthContext = Depends(get_current_auth)) -> Dict[str, Any]:
        """Choices for the status and priority dropdowns."""
        statuses = [{"value": "pending", "label": "Pending"}, {"value": "completed", "label": "Completed"}]
        priorities = [{"value": p.value, "label": p.value.capitalize()} for p in TaskPriority]
        return {
            "data": {
                "statuses": statuses,
                "priorities": priorities,
                "statusFilterOptions": [{"value": "all", "label": "All"}, *statuses],
                "priorityFilterOptions": [{"value": "all", "label": "All"}, *priorities],
            }
        }

    @app.get("/api/tasks/calendar", response_model=CalendarResponse)
    async def calendar_tasks(
        start_date: date = Query(...),
        end_date: date = Query(...),
        priorities: Optional[List[TaskPriority]] = Query(None),
        include_completed: bool = Query(False),
        auth: AuthContext = Depends(get_current_auth),
    ) -> CalendarResponse:
        """Tasks due inside an inclusive date range."""
        if end_date < start_date:
            raise ValidationError.single(
                "end_date", "The end date must be a date after or equal to start date."
            )
        repo = get_task_repository()
        try:
            tasks = await asyncio.to_thread(
                repo.calendar, auth.user.id, start_date, end_date, priorities, include_completed
            )
            return CalendarResponse(
                data=[serialize_task(task) for task in tasks],
                meta=CalendarMeta(start_date=start_date, end_date=end_date, total=len(tasks)),
            )
        except Exception as exc:
            logger.exception("Failed to load calendar tasks: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to load calendar tasks") from exc

    @app.get("/api/tasks/search", response_model=TaskListResponse)
    async def search_tasks(
        q: str = Query(..., min_length=1, max_length=255),
        page: int = Query(1, ge=1, le=MAX_PAGE),
        per_page: Optional[int] = Query(None, ge=1),
        sort_by: SearchSortField = Query("relevance"),
        sort_order: SortDirection = Query("desc"),
        status: Optional[TaskStatus] = Query(None),
        priority: Optional[TaskPriority] = Query(None),
        project_id: Optional[str] = Query(None),
        tag_id: Optional[int] = Query(None),
        due_date: Optional[date] = Query(None),
        auth: AuthContext = Depends(get_current_auth),
    ) -> TaskListResponse:
        """Ranked text search over title and description."""
        task_filter = build_filter(
            {
                "status": status.value if status else None,
                "priority": priority.value if priority else None,
                "project_id": project_id,
                "tag_id": tag_id,
                "due_date": due_date,
            }
        )
        service = get_search_service()
        try:
            result = await asyncio.to_thread(
                service.search,
                auth.user.id,
                q,
                task_filter,
                TaskSort(sort_by, sort_order),
                page,
                per_page_or_default(per_page),
            )
            return TaskListResponse(
                data=[serialize_task(task) for task in result.items],
                meta=build_page_meta(result, task_filter, q),
            )
        except Exception as exc:
            logger.exception("Failed to search tasks: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to search tasks") from exc

    @app.get("/api/tasks/search/quick", response_model=QuickSearchResponse)
    async def quick_search(
        q: str = Query(..., min_length=1, max_length=255),
        limit: int = Query(10, ge=1, le=20),
        status: Optional[TaskStatus] = Query(None),
        auth: AuthContext = Depends(get_current_auth),
    ) -> QuickSearchResponse:
        task_filter = build_filter({"status": status.value if status else None})
        service = get_search_service()
        try:
            tasks = await asyncio.to_thread(service.quick_search, auth.user.id, q, task_filter, limit)
            return QuickSearchResponse(
                data=[serialize_task(task) for task in tasks],
                meta=QuickSearchMeta(query=q, limit=limit, count=len(tasks)),
            )
        except Exception as exc:
            logger.exception("Failed to run quick search: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to run quick search") from exc

    @app.get("/api/tasks/search/suggestions", response_model=SuggestionsResponse)
    async def search_suggestions(
        q: str = Query(..., min_length=1, max_length=255),
        auth: AuthContext = Depends(get_current_auth),
    ) -> SuggestionsResponse:
        service = get_search_service()
        try:
            titles = await asyncio.to_thread(service.suggestions, auth.user.id, q)
            return SuggestionsResponse(suggestions=titles)
        except Exception as exc:
            logger.exception("Failed to load suggestions: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to load suggestions") from exc

    @app.get("/api/tasks/search/stats", response_model=SearchStatsResponse)
    async def search_stats(
        q: str = Query(..., min_length=1, max_length=255),
        auth: AuthContext = Depends(get_current_auth),
    ) -> SearchStatsResponse:
        service = get_search_service()
        try:
            stats = await asyncio.to_thread(service.stats, auth.user.id, q)
            return SearchStatsResponse(**stats)
        except Exception as exc:
            logger.exception("Failed to compute search stats: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to compute search stats") from exc

    @app.post("/api/tasks", response_model=TaskEnvelope, status_code=201)
    async def create_task(
        request: TaskCreateRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> TaskEnvelope:
        """Create a task for the caller."""
        try:
            task = await asyncio.to_thread(_create_task, auth.user.id, request)
            return TaskEnvelope(data=serialize_task(task), message=auth.t("tasks.create.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to create task: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to create task") from exc

    @app.get("/api/tasks/{task_id}", response_model=TaskEnvelope)
    async def show_task(task_id: int, auth: AuthContext = Depends(get_current_auth)) -> TaskEnvelope:
        repo = get_task_repository()
        try:
            task = await asyncio.to_thread(load_owned, repo, task_id, auth.user.id, "Task")
            return TaskEnvelope(data=serialize_task(task))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to load task: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to load task") from exc

    @app.put("/api/tasks/{task_id}", response_model=TaskEnvelope)
    async def update_task(
        task_id: int, request: TaskUpdateRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> TaskEnvelope:
        """Partially update a task; ``tags`` replaces the tag set."""
        try:
            task = await asyncio.to_thread(_update_task, auth.user.id, task_id, request)
            return TaskEnvelope(data=serialize_task(task), message=auth.t("tasks.update.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to update task: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to update task") from exc

    @app.delete("/api/tasks/{task_id}", response_model=MessageResponse)
    async def delete_task(task_id: int, auth: AuthContext = Depends(get_current_auth)) -> MessageResponse:
        try:
            await asyncio.to_thread(_delete_task, auth.user.id, task_id)
            return MessageResponse(message=auth.t("tasks.delete.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to delete task: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to delete task") from exc

    @app.patch("/api/tasks/{task_id}/complete", response_model=TaskEnvelope)
    async def complete_task(task_id: int, auth: AuthContext = Depends(get_current_auth)) -> TaskEnvelope:
        try:
            task = await asyncio.to_thread(_set_completed, auth.user.id, task_id, True)
            return TaskEnvelope(data=serialize_task(task), message=auth.t("tasks.complete.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to complete task: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to complete task") from exc

    @app.patch("/api/tasks/{task_id}/incomplete", response_model=TaskEnvelope)
    async def incomplete_task(task_id: int, auth: AuthContext = Depends(get_current_auth)) -> TaskEnvelope:
        try:
            task = await asyncio.to_thread(_set_completed, auth.user.id, task_id, False)
            return TaskEnvelope(data=serialize_task(task), message=auth.t("tasks.complete.undone"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to reopen task: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to reopen task") from exc

    @app.patch("/api/tasks/{task_id}/date", response_model=TaskEnvelope)
    async def update_task_date(
        task_id: int, request: TaskDateRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> TaskEnvelope:
        """Move a task to another day (calendar drag and drop)."""
        try:
            task = await asyncio.to_thread(_update_due_date, auth.user.id, task_id, request.due_date)
            return TaskEnvelope(data=serialize_task(task), message=auth.t("tasks.date.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to update task date: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to update task date") from exc
