"""
Exception handlers mapping rebate errors to JSON responses.

- RebateError subclasses answer with their own status code (400/404/409)
- Request validation errors answer 400
- Anything else answers 500, with the traceback outside production
"""

import logging
import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agentworks.config import settings
from agentworks.errors import RebateError
from agentworks.utils.responses import error_payload

logger = logging.getLogger(__name__)


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query"))
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def install_exception_handlers(app: FastAPI) -> None:
    """Register the rebate API exception handlers on the app."""

    @app.exception_handler(RebateError)
    async def rebate_error_handler(request: Request, exc: RebateError):
        logger.info(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}"
        )
        return JSONResponse(
            error_payload(exc.message, error=type(exc).__name__),
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = _format_validation_errors(exc)
        logger.info(f"Invalid request on {request.method} {request.url.path}: {message}")
        return JSONResponse(
            error_payload(message, error="InvalidFormat"),
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            error_payload(str(exc.detail)),
            status_code=exc.status_code,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        logger.error(f"Unhandled error on {request.method} {request.url.path}\n{tb}")
        return JSONResponse(
            error_payload(str(exc), stack=None if settings.is_production else tb),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
