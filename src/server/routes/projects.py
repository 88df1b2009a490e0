"""Project endpoints."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException

from src.projects import Project
from src.storage import UNSET
from src.taskflow.exceptions import TaskflowError, ValidationError

from ..dependencies import AuthContext, get_current_auth, get_project_repository, load_owned, serialize_project
from ..schemas import (
    MessageResponse,
    ProjectCreateRequest,
    ProjectEnvelope,
    ProjectFavoriteRequest,
    ProjectListResponse,
    ProjectUpdateRequest,
)

logger = logging.getLogger(__name__)

NAME_TAKEN = "The name has already been taken."


def _check_parent(user_id: int, parent_id: Optional[int], project_id: Optional[int] = None) -> None:
    """The parent must be the caller's and must not sit below the project."""
    if parent_id is None:
        return
    repo = get_project_repository()
    parent = repo.get(parent_id)
    if parent is None or parent.user_id != user_id:
        raise ValidationError.single("parent_id", "The selected parent id is invalid.")
    if project_id is not None and (parent_id == project_id or parent_id in repo.descendant_ids(project_id)):
        raise ValidationError.single("parent_id", "A project cannot be moved below itself.")


def _create_project(user_id: int, request: ProjectCreateRequest) -> Project:
    repo = get_project_repository()
    name = request.name.strip()
    if repo.get_by_name(user_id, name):
        raise ValidationError.single("name", NAME_TAKEN)
    _check_parent(user_id, request.parent_id)
    try:
        return repo.create(
            user_id,
            name,
            color=request.color,
            icon=request.icon,
            parent_id=request.parent_id,
            is_favorite=request.is_favorite,
        )
    except sqlite3.IntegrityError as exc:
        raise ValidationError.single("name", NAME_TAKEN) from exc


def _update_project(user_id: int, project_id: int, request: ProjectUpdateRequest) -> Project:
    repo = get_project_repository()
    project = load_owned(repo, project_id, user_id, "Project")
    payload = request.model_dump(exclude_unset=True)

    name = payload.get("name")
    if name is not None:
        name = name.strip()
        existing = repo.get_by_name(user_id, name)
        if existing is not None and existing.id != project.id:
            raise ValidationError.single("name", NAME_TAKEN)
    if "parent_id" in payload:
        _check_parent(user_id, payload["parent_id"], project.id)

    try:
        return repo.update(
            project_id,
            name=name,
            color=payload.get("color"),
            icon=payload.get("icon"),
            is_favorite=payload.get("is_favorite"),
            parent_id=payload["parent_id"] if "parent_id" in payload else UNSET,
        )
    except sqlite3.IntegrityError as exc:
        raise ValidationError.single("name", NAME_TAKEN) from exc


def _set_favorite(user_id: int, project_id: int, is_favorite: bool) -> Project:
    repo = get_project_repository()
    load_owned(repo, project_id, user_id, "Project")
    return repo.update(project_id, is_favorite=is_favorite)


def _delete_project(user_id: int, project_id: int) -> bool:
    repo = get_project_repository()
    load_owned(repo, project_id, user_id, "Project")
    return repo.delete(project_id)


def register_project_routes(app: FastAPI) -> None:
    """Register project CRUD endpoints."""

    @app.get("/api/projects", response_model=ProjectListResponse)
    async def list_projects(auth: AuthContext = Depends(get_current_auth)) -> ProjectListResponse:
        """Projects grouped into favorites and the rest."""
        repo = get_project_repository()
        try:
            projects = await asyncio.to_thread(repo.list, auth.user.id)
            return ProjectListResponse(
                favorites=[serialize_project(p) for p in projects if p.is_favorite],
                other=[serialize_project(p) for p in projects if not p.is_favorite],
            )
        except Exception as exc:
            logger.exception("Failed to list projects: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to list projects") from exc

    @app.post("/api/projects", response_model=ProjectEnvelope, status_code=201)
    async def create_project(
        request: ProjectCreateRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> ProjectEnvelope:
        try:
            project = await asyncio.to_thread(_create_project, auth.user.id, request)
            return ProjectEnvelope(project=serialize_project(project), message=auth.t("projects.create.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to create project: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to create project") from exc

    @app.get("/api/projects/{project_id}", response_model=ProjectEnvelope)
    async def show_project(project_id: int, auth: AuthContext = Depends(get_current_auth)) -> ProjectEnvelope:
        repo = get_project_repository()
        try:
            project = await asyncio.to_thread(load_owned, repo, project_id, auth.user.id, "Project")
            return ProjectEnvelope(project=serialize_project(project))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to load project: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to load project") from exc

    @app.put("/api/projects/{project_id}", response_model=ProjectEnvelope)
    async def update_project(
        project_id: int, request: ProjectUpdateRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> ProjectEnvelope:
        try:
            project = await asyncio.to_thread(_update_project, auth.user.id, project_id, request)
            return ProjectEnvelope(project=serialize_project(project), message=auth.t("projects.update.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to update project: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to update project") from exc

    @app.patch("/api/projects/{project_id}/favorite", response_model=ProjectEnvelope)
    async def favorite_project(
        project_id: int, request: ProjectFavoriteRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> ProjectEnvelope:
        try:
            project = await asyncio.to_thread(_set_favorite, auth.user.id, project_id, request.is_favorite)
            message = auth.t("projects.favorite.added" if request.is_favorite else "projects.favorite.removed")
            return ProjectEnvelope(project=serialize_project(project), message=message)
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to update favorite: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to update favorite") from exc

    @app.delete("/api/projects/{project_id}", response_model=MessageResponse)
    async def delete_project(project_id: int, auth: AuthContext = Depends(get_current_auth)) -> MessageResponse:
        """Delete a project; its tasks move to the inbox."""
        try:
            await asyncio.to_thread(_delete_project, auth.user.id, project_id)
            return MessageResponse(message=auth.t("projects.delete.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to delete project: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to delete project") from exc
