"""
Residential Admin - Exception Handlers

Maps domain exceptions, request validation failures and HTTPExceptions
to the response envelope. Anything else is logged with its traceback and
answered with a generic 500.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from residential_admin.exceptions import AppError
from residential_admin.gateway.responses import error_response
from residential_admin.logger import get_logger


logger = get_logger("gateway.errors")


def _field_path(loc) -> str:
    # Drop the "body"/"query"/"path" prefix FastAPI puts first
    parts = [str(p) for p in loc]
    if parts and parts[0] in ("body", "query", "path", "header", "cookie"):
        parts = parts[1:]
    return ".".join(parts) or "request"


def request_violations(exc):
    """
    Convert pydantic validation errors to {field, message, code, value} violations.

    Accepts a RequestValidationError or a pydantic ValidationError raised
    while validating a single item.
    """
    violations = []
    for err in exc.errors():
        field = _field_path(err.get("loc", ()))
        value = err.get("input")
        if "password" in field or isinstance(value, bytes):
            value = None
        elif isinstance(value, dict):
            value = {k: v for k, v in value.items() if "password" not in str(k)}
        violations.append({
            "field": field,
            "message": err.get("msg", "Invalid value"),
            "code": str(err.get("type", "invalid")).upper(),
            "value": value,
        })
    return violations


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)

    return error_response(request, exc.status_code, exc.message, exc.error_list())


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "Validation failed",
        request_violations(exc),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(
        request,
        exc.status_code,
        message,
        [{"code": f"HTTP_{exc.status_code}", "message": message}],
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all envelope-producing handlers to the app."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
