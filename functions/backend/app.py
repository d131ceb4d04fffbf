"""
FastAPI application entry point for running the service outside Firebase.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.config import get_settings
from backend.errors import ErrorCode, ServiceError
from backend.routes import router

logger = logging.getLogger(__name__)

HTTP_STATUS_BY_CODE = {
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.PERMISSION_DENIED: 403,
    ErrorCode.INVALID_ARGUMENT: 400,
    ErrorCode.INTERNAL: 500,
}


def _error_response(error: ServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=HTTP_STATUS_BY_CODE[error.code],
        content={"error": {"status": error.code.name, "message": error.message}},
    )


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.code is ErrorCode.INTERNAL:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies are reported like any other invalid argument."""
    fields = sorted(
        {
            ".".join(str(part) for part in error.get("loc", ())[1:]) or "body"
            for error in exc.errors()
        }
    )
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.errors())
    return _error_response(
        ServiceError(
            ErrorCode.INVALID_ARGUMENT, f"Invalid request fields: {', '.join(fields)}."
        )
    )


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Kitchen Backend (FastAPI)", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    return app


app = create_app()
