"""Uniform JSON envelopes and the exception handlers that produce them."""

import traceback
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from logger import get_logger

logger = get_logger(__name__)


def success(resource: str, payload: Any, status_code: int = status.HTTP_200_OK, **extra):
    """Wrap payload as {"status": "success", **extra, "data": {resource: payload}}."""
    body = {"status": "success", **extra, "data": {resource: payload}}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def fail(message: str, status_code: int):
    return JSONResponse(
        status_code=status_code, content={"status": "fail", "message": message}
    )


def requested_url(request: Request) -> str:
    query = request.url.query
    return request.url.path + (f"?{query}" if query else "")


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # No route matched the path, or none matched the method: both are unknown routes.
    unmatched = exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED or (
        exc.status_code == status.HTTP_404_NOT_FOUND and "endpoint" not in request.scope
    )
    if unmatched:
        return fail(f"Route {requested_url(request)} not found", status.HTTP_404_NOT_FOUND)

    response = fail(str(exc.detail), exc.status_code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder(
            {"status": "error", "message": "Validation failed", "errors": errors}
        ),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    status_code = getattr(exc, "status_code", None)
    if not isinstance(status_code, int):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = str(exc) or HTTPStatus(status_code).phrase

    logger.error(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        exc_info=exc,
    )

    body = {"status": "error", "statusCode": status_code, "message": message}
    if not request.app.state.settings.is_production:
        body["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return JSONResponse(status_code=status_code, content=body)


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


async def catch_unhandled(request: Request, call_next):
    """Innermost middleware: turn uncaught errors into the error envelope
    before the CORS and security-header layers see the response."""
    try:
        return await call_next(request)
    except Exception as exc:
        return await unhandled_exception_handler(request, exc)
