"""Theme and accessibility endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from fastapi import Depends, FastAPI, HTTPException

from src.accounts.models import THEME_FIELDS

from ..dependencies import AuthContext, get_current_auth, get_preference_repository, serialize_theme
from ..schemas import (
    AccessibilityPreferences,
    ThemeEnvelope,
    ThemeLocaleRequest,
    ThemeModeRequest,
    ThemeUpdateRequest,
)

logger = logging.getLogger(__name__)


async def _apply(user_id: int, changes: Dict[str, Any], message: str, action: str) -> ThemeEnvelope:
    repo = get_preference_repository()
    try:
        preference = await asyncio.to_thread(repo.update, user_id, changes)
        return ThemeEnvelope(data=serialize_theme(preference), message=message)
    except Exception as exc:
        logger.exception("Failed to %s: %s", action, exc)
        raise HTTPException(status_code=500, detail=f"Failed to {action}") from exc


def register_theme_routes(app: FastAPI) -> None:
    """Register theme endpoints under /api/user/theme."""

    @app.get("/api/user/theme", response_model=ThemeEnvelope)
    async def get_theme(auth: AuthContext = Depends(get_current_auth)) -> ThemeEnvelope:
        repo = get_preference_repository()
        try:
            preference = await asyncio.to_thread(repo.get, auth.user.id)
            return ThemeEnvelope(data=serialize_theme(preference))
        except Exception as exc:
            logger.exception("Failed to load theme: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to load theme") from exc

    @app.put("/api/user/theme", response_model=ThemeEnvelope)
    async def update_theme(
        request: ThemeUpdateRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> ThemeEnvelope:
        payload = request.model_dump(exclude_unset=True)
        changes: Dict[str, Any] = {}
        if payload.get("theme_mode") is not None:
            changes["theme_mode"] = payload["theme_mode"]
        if payload.get("locale") is not None:
            changes["app_locale"] = payload["locale"]
        for key, value in (payload.get("preferences") or {}).items():
            if value is not None:
                changes[key] = value
        for key in ("primary_color", "accent_color"):
            if key in payload:
                changes[key] = payload[key]
        return await _apply(auth.user.id, changes, auth.t("theme.updated"), "update theme")

    @app.put("/api/user/theme/mode", response_model=ThemeEnvelope)
    async def update_theme_mode(
        request: ThemeModeRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> ThemeEnvelope:
        return await _apply(
            auth.user.id, {"theme_mode": request.theme_mode}, auth.t("theme.mode_updated"), "update theme mode"
        )

    @app.put("/api/user/theme/locale", response_model=ThemeEnvelope)
    async def update_locale(
        request: ThemeLocaleRequest, auth: AuthContext = Depends(get_current_auth)
    ) -> ThemeEnvelope:
        return await _apply(
            auth.user.id, {"app_locale": request.locale}, auth.t("theme.locale_updated"), "update locale"
        )

    @app.put("/api/user/theme/preferences", response_model=ThemeEnvelope)
    async def update_accessibility(
        request: AccessibilityPreferences, auth: AuthContext = Depends(get_current_auth)
    ) -> ThemeEnvelope:
        """Reduced motion, high contrast and font scale (0.8 - 1.5)."""
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        return await _apply(
            auth.user.id, changes, auth.t("theme.accessibility_updated"), "update accessibility preferences"
        )

    @app.put("/api/user/theme/reset", response_model=ThemeEnvelope)
    async def reset_theme(auth: AuthContext = Depends(get_current_auth)) -> ThemeEnvelope:
        repo = get_preference_repository()
        try:
            preference = await asyncio.to_thread(repo.reset, auth.user.id, list(THEME_FIELDS))
            return ThemeEnvelope(data=serialize_theme(preference), message=auth.t("theme.reset"))
        except Exception as exc:
            logger.exception("Failed to reset theme: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to reset theme") from exc
