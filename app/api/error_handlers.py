from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.logging import get_logger
from app.services.exceptions import (
    AuthorizationError,
    ConflictError,
    DomainValidationError,
    ResourceNotFoundError,
    ServiceError,
)

logger = get_logger("app.errors")


def _error(status_code: int, detail: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "detail": detail, **extra})


def _describe(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    return f"{location}: {error.get('msg')}" if location else str(error.get("msg"))


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ResourceNotFoundError)
    async def handle_not_found(_: Request, exc: ResourceNotFoundError) -> JSONResponse:
        return _error(404, exc.detail)

    @app.exception_handler(DomainValidationError)
    async def handle_validation(_: Request, exc: DomainValidationError) -> JSONResponse:
        return _error(400, exc.detail)

    @app.exception_handler(ConflictError)
    async def handle_conflict(_: Request, exc: ConflictError) -> JSONResponse:
        return _error(409, exc.detail)

    @app.exception_handler(AuthorizationError)
    async def handle_forbidden(_: Request, exc: AuthorizationError) -> JSONResponse:
        return _error(403, exc.detail)

    @app.exception_handler(ServiceError)
    async def handle_service_error(_: Request, exc: ServiceError) -> JSONResponse:
        return _error(400, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(_: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, "Validation error", errors=[_describe(error) for error in exc.errors()])

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        response = _error(exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", extra={"path": request.url.path, "method": request.method})
        detail = str(exc) if settings.EXPOSE_ERROR_DETAILS else "Internal server error"
        return _error(500, detail)
