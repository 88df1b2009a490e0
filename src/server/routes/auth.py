"""Authentication, account and preference endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from fastapi import Depends, FastAPI, HTTPException, Request

from src.accounts import User
from src.storage import utc_now
from src.taskflow.exceptions import TaskflowError

from ..dependencies import (
    AuthContext,
    client_details,
    get_auth_service,
    get_current_auth,
    get_notification_service,
    get_preference_repository,
    get_project_repository,
    get_saved_view_repository,
    get_tag_repository,
    get_task_repository,
    serialize_auth,
    serialize_project,
    serialize_saved_view,
    serialize_session,
    serialize_tag,
    serialize_user,
    translate,
)
from ..schemas import (
    AuthResponse,
    ChangePasswordRequest,
    DeleteAccountRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    PreferencesResponse,
    PreferencesUpdateRequest,
    ProfileUpdateRequest,
    RefreshResponse,
    RegisterRequest,
    ResetPasswordRequest,
    SessionListResponse,
    UserEnvelope,
)

logger = logging.getLogger(__name__)


def _register(request: RegisterRequest, ip_address, user_agent):
    user, token, session = get_auth_service().register(
        request.name,
        request.email,
        request.password,
        request.password_confirmation,
        timezone=request.timezone,
        locale=request.locale,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    get_notification_service().get_settings(user.id)
    return user, token, session


def _export_data(user: User) -> Dict[str, Any]:
    """Everything stored for one user, as plain JSON."""
    tasks = get_task_repository().find(user.id)
    return {
        "user": serialize_user(user).model_dump(),
        "preferences": get_preference_repository().get(user.id).to_dict(),
        "tasks": [
            {
                "id": task.id,
                "title": task.title,
                "description": task.description,
                "priority": task.priority.value,
                "due_date": task.due_date.isoformat() if task.due_date else None,
                "is_completed": task.is_completed,
                "completed_at": task.completed_at.isoformat() if task.completed_at else None,
                "project_id": task.project_id,
                "tags": [tag.name for tag in task.tags],
                "created_at": task.created_at,
                "updated_at": task.updated_at,
            }
            for task in tasks
        ],
        "projects": [serialize_project(p).model_dump() for p in get_project_repository().list(user.id)],
        "tags": [serialize_tag(tag).model_dump() for tag in get_tag_repository().list(user.id)],
        "saved_views": [serialize_saved_view(v).model_dump() for v in get_saved_view_repository().list(user.id)],
        "exported_at": utc_now().isoformat(),
    }


def register_auth_routes(app: FastAPI) -> None:
    """Register registration, login, session and account endpoints."""

    @app.post("/api/auth/register", response_model=AuthResponse, status_code=201)
    async def register(request: RegisterRequest, http_request: Request) -> AuthResponse:
        """Create an account and log it in."""
        ip_address, user_agent = client_details(http_request)
        try:
            user, token, session = await asyncio.to_thread(_register, request, ip_address, user_agent)
            return serialize_auth(user, token, session)
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to register user: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to register user") from exc

    @app.post("/api/auth/login", response_model=AuthResponse)
    async def login(request: LoginRequest, http_request: Request) -> AuthResponse:
        ip_address, user_agent = client_details(http_request)
        service = get_auth_service()
        try:
            user, token, session = await asyncio.to_thread(
                service.login, request.email, request.password, ip_address, user_agent
            )
            return serialize_auth(user, token, session)
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to log in: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to log in") from exc

    @app.post("/api/auth/forgot-password", response_model=MessageResponse)
    async def forgot_password(request: ForgotPasswordRequest, http_request: Request) -> MessageResponse:
        """Mail a reset token; the answer does not reveal whether the email exists."""
        service = get_auth_service()
        try:
            await asyncio.to_thread(service.send_password_reset, request.email)
            return MessageResponse(message=translate(http_request, "auth.forgot_password.sent"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to send password reset: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to send password reset") from exc

    @app.post("/api/auth/reset-password", response_model=MessageResponse)
    async def reset_password(request: ResetPasswordRequest, http_request: Request) -> MessageResponse:
        service = get_auth_service()
        try:
            await asyncio.to_thread(
                service.reset_password,
                request.token,
                request.email,
                request.password,
                request.password_confirmation,
            )
            return MessageResponse(message=translate(http_request, "auth.reset_password.success"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to reset password: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to reset password") from exc

    @app.get("/api/auth/me", response_model=UserEnvelope)
    async def me(auth: AuthContext = Depends(get_current_auth)) -> UserEnvelope:
        return UserEnvelope(user=serialize_user(auth.user))

    @app.put("/api/auth/profile", response_model=UserEnvelope)
    async def update_profile(
        request: ProfileUpdateRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> UserEnvelope:
        service = get_auth_service()
        try:
            user = await asyncio.to_thread(
                service.update_profile,
                auth.user,
                name=request.name.strip() if request.name else None,
                timezone=request.timezone,
                locale=request.locale,
            )
            return UserEnvelope(user=serialize_user(user), message=auth.t("auth.profile.updated"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to update profile: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to update profile") from exc

    @app.get("/api/auth/preferences", response_model=PreferencesResponse)
    async def get_preferences(auth: AuthContext = Depends(get_current_auth)) -> PreferencesResponse:
        repo = get_preference_repository()
        try:
            preference = await asyncio.to_thread(repo.get, auth.user.id)
            return PreferencesResponse(data=preference.to_dict())
        except Exception as exc:
            logger.exception("Failed to load preferences: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to load preferences") from exc

    @app.put("/api/auth/preferences", response_model=PreferencesResponse)
    async def update_preferences(
        request: PreferencesUpdateRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> PreferencesResponse:
        """Update only the preference keys present in the body."""
        repo = get_preference_repository()
        try:
            changes = request.model_dump(exclude_unset=True)
            preference = await asyncio.to_thread(repo.update, auth.user.id, changes)
            return PreferencesResponse(data=preference.to_dict(), message=auth.t("preferences.updated"))
        except Exception as exc:
            logger.exception("Failed to update preferences: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to update preferences") from exc

    @app.put("/api/auth/change-password", response_model=MessageResponse)
    async def change_password(
        request: ChangePasswordRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> MessageResponse:
        """Change the password and log out every other session."""
        service = get_auth_service()
        try:
            await asyncio.to_thread(
                service.change_password,
                auth.user,
                auth.session,
                request.current_password,
                request.password,
                request.password_confirmation,
            )
            return MessageResponse(message=auth.t("auth.password.changed"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to change password: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to change password") from exc

    @app.get("/api/auth/sessions", response_model=SessionListResponse)
    async def list_sessions(auth: AuthContext = Depends(get_current_auth)) -> SessionListResponse:
        service = get_auth_service()
        try:
            sessions = await asyncio.to_thread(service.list_sessions, auth.user)
            return SessionListResponse(
                sessions=[serialize_session(session, auth.session.id) for session in sessions]
            )
        except Exception as exc:
            logger.exception("Failed to list sessions: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to list sessions") from exc

    @app.delete("/api/auth/sessions/{session_id}", response_model=MessageResponse)
    async def revoke_session(session_id: int, auth: AuthContext = Depends(get_current_auth)) -> MessageResponse:
        service = get_auth_service()
        try:
            await asyncio.to_thread(service.revoke_session, auth.user, session_id)
            return MessageResponse(message=auth.t("auth.sessions.revoked"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to revoke session: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to revoke session") from exc

    @app.post("/api/auth/refresh", response_model=RefreshResponse)
    async def refresh(auth: AuthContext = Depends(get_current_auth)) -> RefreshResponse:
        """Replace the current token; the old one stops working."""
        service = get_auth_service()
        try:
            token = await asyncio.to_thread(service.refresh, auth.session)
            session = await asyncio.to_thread(service.users.get_session, auth.session.id)
            return RefreshResponse(token=token, expires_at=session.expires_at)
        except Exception as exc:
            logger.exception("Failed to refresh token: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to refresh token") from exc

    @app.post("/api/auth/logout", response_model=MessageResponse)
    async def logout(auth: AuthContext = Depends(get_current_auth)) -> MessageResponse:
        service = get_auth_service()
        try:
            await asyncio.to_thread(service.logout, auth.session)
            return MessageResponse(message=auth.t("auth.logout.success"))
        except Exception as exc:
            logger.exception("Failed to log out: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to log out") from exc

    @app.post("/api/auth/logout-all", response_model=MessageResponse)
    async def logout_all(auth: AuthContext = Depends(get_current_auth)) -> MessageResponse:
        service = get_auth_service()
        try:
            count = await asyncio.to_thread(service.logout_all, auth.user)
            return MessageResponse(message=auth.t("auth.logout.all", count=count))
        except Exception as exc:
            logger.exception("Failed to log out sessions: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to log out sessions") from exc

    @app.get("/api/auth/export-data")
    async def export_data(auth: AuthContext = Depends(get_current_auth)) -> Dict[str, Any]:
        try:
            return {"data": await asyncio.to_thread(_export_data, auth.user)}
        except Exception as exc:
            logger.exception("Failed to export data: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to export data") from exc

    @app.delete("/api/auth/account", response_model=MessageResponse)
    async def delete_account(
        request: DeleteAccountRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> MessageResponse:
        """Delete the account and everything it owns."""
        service = get_auth_service()
        try:
            await asyncio.to_thread(service.delete_account, auth.user, request.password)
            return MessageResponse(message=auth.t("auth.account.deleted"))
        except TaskflowError:
            raise
        except Exception as exc:
            logger.exception("Failed to delete account: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to delete account") from exc
