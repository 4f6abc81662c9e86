"""HTTP translation of domain errors.

Every error response has the body {"message": <short text>}. Domain
exceptions carry their own status code; request validation failures are
400; anything unexpected is logged and reported as a generic 500.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.errors import TaskHubError
from core.logging_setup import get_logger

logger = get_logger(__name__)


async def handle_domain_error(request: Request, exc: TaskHubError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            extra={"extra_data": {"path": request.url.path, "error": type(exc).__name__}},
        )
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"message": message})


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error",
        extra={"extra_data": {"method": request.method, "path": request.url.path}},
    )
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TaskHubError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)
