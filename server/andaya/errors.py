"""
Error types and FastAPI exception handlers.

Business operations raise ``AndaYaError`` subclasses; the handlers registered
here turn them into ``{"error": "<message>"}`` JSON bodies with the matching
status code. Anything else is logged and answered with a 500.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AndaYaError(Exception):
    """Base error carrying the HTTP status to answer with."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, **extra):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra


class BadRequestError(AndaYaError):
    status_code = 400


class UnauthorizedError(AndaYaError):
    status_code = 401


class ForbiddenError(AndaYaError):
    status_code = 403


class NotFoundError(AndaYaError):
    status_code = 404


class ConflictError(AndaYaError):
    status_code = 409


class UpstreamError(AndaYaError):
    """A hosted dependency (auth, email, FX provider) failed."""

    status_code = 502


async def andaya_error_handler(request: Request, exc: AndaYaError) -> JSONResponse:
    """Render a business error as ``{"error": message}``."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(
            f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}"
        )

    content = {"error": exc.message}
    content.update(exc.extra)
    return JSONResponse(status_code=exc.status_code, content=content)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies and query parameters answer 400 like other bad input."""
    logger.info(f"{request.method} {request.url.path} invalid request: {exc.errors()}")
    details = [{"loc": err.get("loc"), "msg": err.get("msg")} for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={"error": "Parámetros inválidos", "details": jsonable_encoder(details)},
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all for unhandled exceptions.

    Logs the full traceback with request context and returns a generic 500 so
    internal details never reach the client.
    """
    error_id = id(exc)

    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {str(exc)}",
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "error_id": error_id},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with the FastAPI application."""
    app.add_exception_handler(AndaYaError, andaya_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered")
