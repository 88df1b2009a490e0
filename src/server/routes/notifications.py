"""Notification rule, history and settings endpoints."""

from __future__ import annotations

import asyncio
import logging

from fastapi import Depends, FastAPI, HTTPException, Query

from src.taskflow.exceptions import NotFoundError, TaskflowError

from ..dependencies import (
    AuthContext,
    ensure_owner,
    get_current_auth,
    get_notification_repository,
    get_notification_service,
    get_scheduler,
    get_task_repository,
    load_owned,
    serialize_log,
    serialize_notification_settings,
    serialize_rule,
)
from ..schemas import (
    NotificationHistoryResponse,
    NotificationRuleCreateRequest,
    NotificationRuleEnvelope,
    NotificationRuleListResponse,
    NotificationRuleUpdateRequest,
    NotificationSettingsEnvelope,
    NotificationSettingsUpdateRequest,
    SchedulerStatusResponse,
    SuccessResponse,
    UnreadCountResponse,
)

logger = logging.getLogger(__name__)


def _list_rules(user_id: int, task_id: int):
    task = load_owned(get_task_repository(), task_id, user_id, "Task")
    return task, get_notification_service().list_rules(task_id, user_id)


def _create_rule(user_id: int, task_id: int, request: NotificationRuleCreateRequest):
    task = load_owned(get_task_repository(), task_id, user_id, "Task")
    rule = get_notification_service().create_rule(
        user_id,
        task_id,
        channel=request.channel,
        reminder_offset=request.reminder_offset,
        reminder_unit=request.reminder_unit,
        is_enabled=request.is_enabled,
    )
    return task, rule


def _owned_rule(user_id: int, rule_id: int):
    rule = ensure_owner(
        get_notification_repository().get_rule(rule_id), user_id, "Notification rule", rule_id
    )
    return rule, get_task_repository().get(rule.task_id)


def _update_rule(user_id: int, rule_id: int, request: NotificationRuleUpdateRequest):
    _, task = _owned_rule(user_id, rule_id)
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    return task, get_notification_service().update_rule(rule_id, **changes)


def _toggle_rule(user_id: int, rule_id: int):
    _, task = _owned_rule(user_id, rule_id)
    return task, get_notification_service().toggle_rule(rule_id)


def _delete_rule(user_id: int, rule_id: int) -> bool:
    _owned_rule(user_id, rule_id)
    return get_notification_service().delete_rule(rule_id)


def register_notification_routes(app: FastAPI) -> None:
    """Register reminder rule, history and settings endpoints."""

    @app.get("/api/tasks/{task_id}/notifications", response_model=NotificationRuleListResponse)
    async def list_task_rules(
        task_id: int, auth: AuthContext = Depends(get_current_auth)
    ) -> NotificationRuleListResponse:
        try:
            task, rules = await asyncio.to_thread(_list_rules, auth.user.id, task_id)
            return NotificationRuleListResponse(data=[serialize_rule(rule, task) for rule in rules])
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to list notification rules: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to list notification rules") from exc

    @app.post(
        "/api/tasks/{task_id}/notifications",
        response_model=NotificationRuleEnvelope,
        status_code=201,
    )
    async def create_task_rule(
        task_id: int,
        request: NotificationRuleCreateRequest,
        auth: AuthContext = Depends(get_current_auth),
    ) -> NotificationRuleEnvelope:
        """Add a reminder; offset and unit default to the user's settings."""
        try:
            task, rule = await asyncio.to_thread(_create_rule, auth.user.id, task_id, request)
            return NotificationRuleEnvelope(
                message=auth.t("notifications.rules.created"),
                data=serialize_rule(rule, task),
            )
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to create notification rule: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to create notification rule") from exc

    @app.put("/api/notifications/rules/{rule_id}", response_model=NotificationRuleEnvelope)
    async def update_rule(
        rule_id: int,
        request: NotificationRuleUpdateRequest,
        auth: AuthContext = Depends(get_current_auth),
    ) -> NotificationRuleEnvelope:
        try:
            task, rule = await asyncio.to_thread(_update_rule, auth.user.id, rule_id, request)
            return NotificationRuleEnvelope(
                message=auth.t("notifications.rules.updated"),
                data=serialize_rule(rule, task),
            )
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to update notification rule: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to update notification rule") from exc

    @app.post("/api/notifications/rules/{rule_id}/toggle", response_model=NotificationRuleEnvelope)
    async def toggle_rule(rule_id: int, auth: AuthContext = Depends(get_current_auth)) -> NotificationRuleEnvelope:
        try:
            task, rule = await asyncio.to_thread(_toggle_rule, auth.user.id, rule_id)
            state = "enabled" if rule.is_enabled else "disabled"
            return NotificationRuleEnvelope(
                message=auth.t(f"notifications.rules.{state}"),
                data=serialize_rule(rule, task),
            )
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to toggle notification rule: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to toggle notification rule") from exc

    @app.delete("/api/notifications/rules/{rule_id}", response_model=SuccessResponse)
    async def delete_rule(rule_id: int, auth: AuthContext = Depends(get_current_auth)) -> SuccessResponse:
        try:
            await asyncio.to_thread(_delete_rule, auth.user.id, rule_id)
            return SuccessResponse(message=auth.t("notifications.rules.deleted"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to delete notification rule: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to delete notification rule") from exc

    @app.get("/api/notifications/history", response_model=NotificationHistoryResponse)
    async def notification_history(
        limit: int = Query(50, ge=1, le=200),
        auth: AuthContext = Depends(get_current_auth),
    ) -> NotificationHistoryResponse:
        """Delivery logs, newest first."""
        service = get_notification_service()
        try:
            logs = await asyncio.to_thread(service.history, auth.user.id, limit)
            return NotificationHistoryResponse(data=[serialize_log(log) for log in logs])
        except Exception as exc:
            logger.exception("Failed to load notification history: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to load notification history") from exc

    @app.get("/api/notifications/unread-count", response_model=UnreadCountResponse)
    async def unread_count(auth: AuthContext = Depends(get_current_auth)) -> UnreadCountResponse:
        service = get_notification_service()
        try:
            count = await asyncio.to_thread(service.unread_count, auth.user.id)
            return UnreadCountResponse(count=count)
        except Exception as exc:
            logger.exception("Failed to count unread notifications: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to count unread notifications") from exc

    @app.post("/api/notifications/read-all", response_model=UnreadCountResponse)
    async def mark_all_read(auth: AuthContext = Depends(get_current_auth)) -> UnreadCountResponse:
        """Mark every unread log as read; ``count`` is the number changed."""
        service = get_notification_service()
        try:
            count = await asyncio.to_thread(service.mark_all_read, auth.user.id)
            return UnreadCountResponse(count=count)
        except Exception as exc:
            logger.exception("Failed to mark notifications as read: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to mark notifications as read") from exc

    @app.get("/api/notifications/settings", response_model=NotificationSettingsEnvelope)
    async def get_settings(auth: AuthContext = Depends(get_current_auth)) -> NotificationSettingsEnvelope:
        service = get_notification_service()
        try:
            settings = await asyncio.to_thread(service.get_settings, auth.user.id)
            return NotificationSettingsEnvelope(data=serialize_notification_settings(settings))
        except Exception as exc:
            logger.exception("Failed to load notification settings: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to load notification settings") from exc

    @app.put("/api/notifications/settings", response_model=NotificationSettingsEnvelope)
    async def update_settings(
        request: NotificationSettingsUpdateRequest,
        auth: AuthContext = Depends(get_current_auth),
    ) -> NotificationSettingsEnvelope:
        service = get_notification_service()
        try:
            changes = request.model_dump(exclude_unset=True, exclude_none=True)
            settings = await asyncio.to_thread(service.update_settings, auth.user.id, **changes)
            return NotificationSettingsEnvelope(
                message=auth.t("notifications.settings.updated"),
                data=serialize_notification_settings(settings),
            )
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to update notification settings: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to update notification settings") from exc

    @app.get("/api/notifications/scheduler/status", response_model=SchedulerStatusResponse)
    async def scheduler_status(auth: AuthContext = Depends(get_current_auth)) -> SchedulerStatusResponse:
        """Status of the background reminder job."""
        try:
            return SchedulerStatusResponse(**get_scheduler().get_status())
        except Exception as exc:
            logger.exception("Failed to get scheduler status: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to get scheduler status") from exc

    @app.post("/api/notifications/{log_id}/read", response_model=SuccessResponse)
    async def mark_read(log_id: int, auth: AuthContext = Depends(get_current_auth)) -> SuccessResponse:
        service = get_notification_service()
        try:
            log = await asyncio.to_thread(service.mark_read, log_id, auth.user.id)
            if log is None:
                raise NotFoundError("Notification", log_id)
            return SuccessResponse(message=auth.t("notifications.read"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to mark notification as read: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to mark notification as read") from exc

    @app.delete("/api/notifications/{log_id}", response_model=SuccessResponse)
    async def delete_log(log_id: int, auth: AuthContext = Depends(get_current_auth)) -> SuccessResponse:
        service = get_notification_service()
        try:
            deleted = await asyncio.to_thread(service.delete_log, log_id, auth.user.id)
            if not deleted:
                raise NotFoundError("Notification", log_id)
            return SuccessResponse(message=auth.t("notifications.deleted"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to delete notification: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to delete notification") from exc
