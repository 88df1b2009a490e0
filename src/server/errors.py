"""Exception handlers mapping domain errors to JSON responses."""

from __future__ import annotations

import logging
from typing import Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.i18n import DEFAULT_LOCALE
from src.taskflow.exceptions import (
    AuthenticationError,
    NotFoundError,
    PermissionDeniedError,
    ThrottledError,
    ValidationError,
)

from .dependencies import request_locale, translate

logger = logging.getLogger(__name__)


def _field_name(loc) -> str:
    parts = [str(part) for part in loc]
    if len(parts) > 1 and parts[0] in ("body", "query", "path", "header"):
        parts = parts[1:]
    return ".".join(parts)


def _validation_body(request: Request, errors: Dict[str, List[str]]) -> dict:
    """English answers lead with the first field error, other locales with a translated summary."""
    first = next(iter(errors.values()), None)
    if first and request_locale(request) == DEFAULT_LOCALE:
        message = first[0]
    else:
        message = translate(request, "errors.validation_failed")
    return {"message": message, "errors": errors}


def _resource_name(request: Request, resource: str) -> str:
    key = "resources." + resource.lower().replace(" ", "_")
    name = translate(request, key)
    return resource if name == key else name


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers for domain and request-validation errors."""

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors: Dict[str, List[str]] = {}
        for error in exc.errors():
            errors.setdefault(_field_name(error.get("loc", ())), []).append(error.get("msg", "Invalid value"))
        return JSONResponse(status_code=422, content=_validation_body(request, errors))

    @app.exception_handler(ThrottledError)
    async def throttled_handler(request: Request, exc: ThrottledError) -> JSONResponse:
        logger.warning("Throttled %s %s", request.method, request.url.path)
        errors = exc.errors
        if exc.message_key:
            errors = {exc.field: [translate(request, exc.message_key, seconds=exc.retry_after)]}
        return JSONResponse(
            status_code=429,
            content={"message": errors[exc.field][0], "errors": errors},
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content=_validation_body(request, exc.errors))

    @app.exception_handler(AuthenticationError)
    async def authentication_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"message": translate(request, "errors.unauthenticated")},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(PermissionDeniedError)
    async def permission_handler(request: Request, exc: PermissionDeniedError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"message": translate(request, "errors.forbidden")})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        resource = _resource_name(request, exc.resource)
        return JSONResponse(
            status_code=404, content={"message": translate(request, "errors.not_found", resource=resource)}
        )
