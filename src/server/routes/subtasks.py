"""Subtask (checklist) endpoints."""

from __future__ import annotations

import asyncio
import logging

from fastapi import Depends, FastAPI, HTTPException

from src.taskflow.exceptions import TaskflowError

from ..dependencies import (
    AuthContext,
    get_current_auth,
    get_subtask_repository,
    get_task_repository,
    load_owned,
    load_owned_subtask,
    serialize_subtask,
)
from ..schemas import (
    MessageResponse,
    SubtaskCreateRequest,
    SubtaskEnvelope,
    SubtaskListMeta,
    SubtaskListResponse,
    SubtaskUpdateRequest,
)

logger = logging.getLogger(__name__)


def _list_subtasks(user_id: int, task_id: int):
    task = load_owned(get_task_repository(), task_id, user_id, "Task")
    return task, get_subtask_repository().list(task_id)


def _create_subtask(user_id: int, task_id: int, request: SubtaskCreateRequest):
    load_owned(get_task_repository(), task_id, user_id, "Task")
    return get_subtask_repository().create(
        task_id, request.title.strip(), description=request.description, order=request.order
    )


def _update_subtask(user_id: int, task_id: int, subtask_id: int, request: SubtaskUpdateRequest):
    load_owned_subtask(task_id, subtask_id, user_id)
    payload = request.model_dump(exclude_unset=True, exclude_none=True)
    if "title" in payload:
        payload["title"] = payload["title"].strip()
    return get_subtask_repository().update(subtask_id, **payload)


def _toggle_subtask(user_id: int, task_id: int, subtask_id: int):
    load_owned_subtask(task_id, subtask_id, user_id)
    return get_subtask_repository().toggle(subtask_id)


def _delete_subtask(user_id: int, task_id: int, subtask_id: int) -> bool:
    load_owned_subtask(task_id, subtask_id, user_id)
    return get_subtask_repository().delete(subtask_id)


def register_subtask_routes(app: FastAPI) -> None:
    """Register subtask endpoints nested under tasks."""

    @app.get("/api/tasks/{task_id}/subtasks", response_model=SubtaskListResponse)
    async def list_subtasks(task_id: int, auth: AuthContext = Depends(get_current_auth)) -> SubtaskListResponse:
        try:
            task, subtasks = await asyncio.to_thread(_list_subtasks, auth.user.id, task_id)
            completed = sum(1 for subtask in subtasks if subtask.is_completed)
            progress = round(completed / len(subtasks) * 100) if subtasks else 0
            return SubtaskListResponse(
                data=[serialize_subtask(subtask) for subtask in subtasks],
                meta=SubtaskListMeta(total=len(subtasks), completed=completed, progress=progress),
            )
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to list subtasks: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to list subtasks") from exc

    @app.post("/api/tasks/{task_id}/subtasks", response_model=SubtaskEnvelope, status_code=201)
    async def create_subtask(
        task_id: int, request: SubtaskCreateRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> SubtaskEnvelope:
        try:
            subtask = await asyncio.to_thread(_create_subtask, auth.user.id, task_id, request)
            return SubtaskEnvelope(data=serialize_subtask(subtask), message=auth.t("subtasks.create.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to create subtask: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to create subtask") from exc

    @app.put("/api/tasks/{task_id}/subtasks/{subtask_id}", response_model=SubtaskEnvelope)
    async def update_subtask(
        task_id: int,
        subtask_id: int,
        request: SubtaskUpdateRequest,
        auth: AuthContext = Depends(get_current_auth),
    ) -> SubtaskEnvelope:
        try:
            subtask = await asyncio.to_thread(_update_subtask, auth.user.id, task_id, subtask_id, request)
            return SubtaskEnvelope(data=serialize_subtask(subtask), message=auth.t("subtasks.update.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to update subtask: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to update subtask") from exc

    @app.patch("/api/tasks/{task_id}/subtasks/{subtask_id}/toggle", response_model=SubtaskEnvelope)
    async def toggle_subtask(
        task_id: int, subtask_id: int, auth: AuthContext = Depends(get_current_auth)
    ) -> SubtaskEnvelope:
        try:
            subtask = await asyncio.to_thread(_toggle_subtask, auth.user.id, task_id, subtask_id)
            return SubtaskEnvelope(data=serialize_subtask(subtask))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to toggle subtask: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to toggle subtask") from exc

    @app.delete("/api/tasks/{task_id}/subtasks/{subtask_id}", response_model=MessageResponse)
    async def delete_subtask(
        task_id: int, subtask_id: int, auth: AuthContext = Depends(get_current_auth)
    ) -> MessageResponse:
        try:
            await asyncio.to_thread(_delete_subtask, auth.user.id, task_id, subtask_id)
            return MessageResponse(message=auth.t("subtasks.delete.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to delete subtask: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to delete subtask") from exc
