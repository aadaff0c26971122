"""Exception handlers rendering every failure as the error envelope."""

from typing import Any, List, Optional
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from account_service.errors import ApiError
from account_service.models.response import ErrorResponse

logger = structlog.get_logger(__name__)


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid4())


def error_response(
    request: Request,
    status_code: int,
    message: str,
    errors: Optional[List[Any]] = None,
) -> JSONResponse:
    correlation_id = _correlation_id(request)
    body = ErrorResponse(statusCode=status_code, message=message, errors=errors or [])
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json"),
        headers={"X-Correlation-Id": correlation_id},
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Render a service-raised ApiError with its own status and message."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "api_error",
        status_code=exc.status_code,
        error_message=exc.message,
        path=request.url.path,
    )
    return error_response(request, exc.status_code, exc.message, exc.errors)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Turn Pydantic request validation failures into a 400 envelope."""
    details = [
        {
            "field": ".".join(str(loc) for loc in error.get("loc", ["unknown"])),
            "message": error.get("msg", "Validation failed"),
        }
        for error in exc.errors()
    ]
    if details:
        message = f"Field '{details[0]['field']}': {details[0]['message']}"
    else:
        message = "Request validation failed"

    logger.warning("validation_error", detail=message, path=request.url.path)
    return error_response(request, 400, message, details)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return error_response(request, exc.status_code, str(exc.detail))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the traceback, answer 500 without leaking it."""
    logger.error("unhandled_exception", path=request.url.path, exc_info=exc)
    return error_response(request, 500, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
