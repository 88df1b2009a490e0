"""Calendar conversion endpoints (Gregorian / Jalali)."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, Dict, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Query

from src.calendars import convert, format_date, month_info
from src.taskflow.exceptions import ValidationError

from ..dependencies import AuthContext, get_current_auth, get_preference_repository

logger = logging.getLogger(__name__)

CalendarType = Literal["gregorian", "jalali"]
Locale = Literal["en", "fa"]


async def _preferred_calendar(user_id: int) -> str:
    preference = await asyncio.to_thread(get_preference_repository().get, user_id)
    return preference.get("calendar_type") or "gregorian"


def register_calendar_routes(app: FastAPI) -> None:
    """Register calendar conversion endpoints."""

    @app.get("/api/calendar/convert")
    async def convert_date(
        value: str = Query(..., alias="date", description="YYYY-MM-DD in the source calendar"),
        source: CalendarType = Query("gregorian", alias="from"),
        target: CalendarType = Query("jalali", alias="to"),
        auth: AuthContext = Depends(get_current_auth),
    ) -> Dict[str, Any]:
        """Convert a date between the Gregorian and Jalali calendars."""
        try:
            return {"data": convert(value, source, target)}
        except ValueError as exc:
            raise ValidationError.single("date", str(exc)) from exc

    @app.get("/api/calendar/month")
    async def describe_month(
        year: int = Query(..., ge=1, le=9999),
        month: int = Query(..., ge=1, le=12),
        calendar: Optional[CalendarType] = Query(None),
        locale: Locale = Query("en"),
        auth: AuthContext = Depends(get_current_auth),
    ) -> Dict[str, Any]:
        """Name, length and Gregorian span of a month; the calendar defaults to the user's preference."""
        try:
            calendar_type = calendar or await _preferred_calendar(auth.user.id)
        except Exception as exc:
            logger.exception("Failed to load preferences: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to load preferences") from exc
        try:
            return {"data": month_info(year, month, calendar_type, locale)}
        except ValueError as exc:
            raise ValidationError.single("month", str(exc)) from exc

    @app.get("/api/calendar/format")
    async def format_day(
        value: date = Query(..., alias="date"),
        fmt: str = Query("YYYY/MM/DD", alias="format", max_length=64),
        calendar: Optional[CalendarType] = Query(None),
        locale: Locale = Query("en"),
        auth: AuthContext = Depends(get_current_auth),
    ) -> Dict[str, Any]:
        try:
            calendar_type = calendar or await _preferred_calendar(auth.user.id)
        except Exception as exc:
            logger.exception("Failed to load preferences: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to load preferences") from exc
        formatted = format_date(value, fmt, calendar_type, locale)
        return {"data": {"date": value.isoformat(), "calendar": calendar_type, "formatted": formatted}}
