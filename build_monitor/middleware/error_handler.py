"""Global exception handlers that map exceptions to structured JSON responses."""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from build_monitor.errors import CredentialError, MonitorError, RecordValidationError, RemoteAPIError, UnknownMessageError

logger = logging.getLogger(__name__)

# Most specific first
MONITOR_ERRORS: list[tuple[type[MonitorError], int, str]] = [
    (CredentialError, 401, "authentication_error"),
    (RecordValidationError, 422, "validation_error"),
    (UnknownMessageError, 400, "unknown_message"),
    (RemoteAPIError, 502, "remote_api_error"),
]


def _error_response(status: int, error_type: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={
            "status": "error",
            "error": {
                "type": error_type,
                "message": message,
            },
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        messages = "; ".join(
            f"{'.'.join(str(part) for part in e['loc'])}: {e['msg']}" for e in exc.errors()
        )
        return _error_response(422, "validation_error", messages)

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        type_map = {
            401: "authentication_error",
            404: "not_found",
            409: "conflict",
        }
        error_type = type_map.get(exc.status_code, "http_error")
        return _error_response(exc.status_code, error_type, exc.detail)

    @app.exception_handler(MonitorError)
    async def monitor_error(request: Request, exc: MonitorError):
        for error_class, status, error_type in MONITOR_ERRORS:
            if isinstance(exc, error_class):
                logger.info("%s on %s %s: %s", error_type, request.method, request.url.path, exc)
                return _error_response(status, error_type, str(exc))
        logger.exception("Unhandled monitor error on %s %s", request.method, request.url.path)
        return _error_response(500, "internal_error", "An unexpected error occurred")

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error_response(500, "internal_error", "An unexpected error occurred")
