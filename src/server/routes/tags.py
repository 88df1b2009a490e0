"""Tag endpoints."""

from __future__ import annotations

import asyncio
import logging
import sqlite3

from fastapi import Depends, FastAPI, HTTPException

from src.storage import UNSET
from src.tags import Tag
from src.taskflow.exceptions import TaskflowError, ValidationError

from ..dependencies import AuthContext, get_current_auth, get_tag_repository, load_owned, serialize_tag
from ..schemas import MessageResponse, TagCreateRequest, TagEnvelope, TagListResponse, TagUpdateRequest

logger = logging.getLogger(__name__)

NAME_TAKEN = "The name has already been taken."


def _create_tag(user_id: int, request: TagCreateRequest) -> Tag:
    repo = get_tag_repository()
    name = request.name.strip()
    if repo.get_by_name(user_id, name):
        raise ValidationError.single("name", NAME_TAKEN)
    try:
        return repo.create(user_id, name, request.color)
    except sqlite3.IntegrityError as exc:
        raise ValidationError.single("name", NAME_TAKEN) from exc


def _update_tag(user_id: int, tag_id: int, request: TagUpdateRequest) -> Tag:
    repo = get_tag_repository()
    tag = load_owned(repo, tag_id, user_id, "Tag")
    payload = request.model_dump(exclude_unset=True)
    name = payload.get("name")
    if name is not None:
        name = name.strip()
        existing = repo.get_by_name(user_id, name)
        if existing is not None and existing.id != tag.id:
            raise ValidationError.single("name", NAME_TAKEN)
    try:
        return repo.update(tag_id, name=name, color=payload["color"] if "color" in payload else UNSET)
    except sqlite3.IntegrityError as exc:
        raise ValidationError.single("name", NAME_TAKEN) from exc


def _delete_tag(user_id: int, tag_id: int) -> bool:
    repo = get_tag_repository()
    load_owned(repo, tag_id, user_id, "Tag")
    return repo.delete(tag_id)


def register_tag_routes(app: FastAPI) -> None:
    """Register tag CRUD endpoints."""

    @app.get("/api/tags", response_model=TagListResponse)
    async def list_tags(auth: AuthContext = Depends(get_current_auth)) -> TagListResponse:
        """Tags with task counts, ordered by name."""
        repo = get_tag_repository()
        try:
            tags = await asyncio.to_thread(repo.list, auth.user.id)
            return TagListResponse(tags=[serialize_tag(tag) for tag in tags])
        except Exception as exc:
            logger.exception("Failed to list tags: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to list tags") from exc

    @app.post("/api/tags", response_model=TagEnvelope, status_code=201)
    async def create_tag(request: TagCreateRequest, auth: AuthContext = Depends(get_current_auth)) -> TagEnvelope:
        try:
            tag = await asyncio.to_thread(_create_tag, auth.user.id, request)
            return TagEnvelope(tag=serialize_tag(tag), message=auth.t("tags.create.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to create tag: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to create tag") from exc

    @app.put("/api/tags/{tag_id}", response_model=TagEnvelope)
    async def update_tag(
        tag_id: int, request: TagUpdateRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> TagEnvelope:
        try:
            tag = await asyncio.to_thread(_update_tag, auth.user.id, tag_id, request)
            return TagEnvelope(tag=serialize_tag(tag), message=auth.t("tags.update.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to update tag: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to update tag") from exc

    @app.delete("/api/tags/{tag_id}", response_model=MessageResponse)
    async def delete_tag(tag_id: int, auth: AuthContext = Depends(get_current_auth)) -> MessageResponse:
        """Delete a tag and detach it from every task."""
        try:
            await asyncio.to_thread(_delete_tag, auth.user.id, tag_id)
            return MessageResponse(message=auth.t("tags.delete.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to delete tag: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to delete tag") from exc
