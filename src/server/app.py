"""FastAPI application bootstrap."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from src.i18n import parse_accept_language

from .dependencies import config, get_scheduler, get_translator, request_locale
from .errors import register_exception_handlers
from .routes import (
    register_auth_routes,
    register_calendar_routes,
    register_navigation_routes,
    register_notification_routes,
    register_project_routes,
    register_saved_view_routes,
    register_subtask_routes,
    register_tag_routes,
    register_task_routes,
    register_theme_routes,
)
from .schemas import HealthResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the reminder scheduler for the lifetime of the server when enabled."""
    scheduler = None
    if config.notifications.scheduler_enabled:
        scheduler = get_scheduler()
        scheduler.start()
    yield
    if scheduler is not None:
        scheduler.stop()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(title="Taskflow API", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.middleware("http")
    async def detect_locale(request: Request, call_next):
        """Pick the response language from Accept-Language; auth may fall back to the user's preference."""
        request.state.locale = parse_accept_language(
            request.headers.get("accept-language"), get_translator().supported_locales
        )
        response = await call_next(request)
        response.headers["X-Locale"] = request_locale(request)
        return response

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    register_auth_routes(app)
    register_theme_routes(app)
    register_task_routes(app)
    register_subtask_routes(app)
    register_notification_routes(app)
    register_project_routes(app)
    register_tag_routes(app)
    register_saved_view_routes(app)
    register_navigation_routes(app)
    register_calendar_routes(app)

    return app


app = create_app()
