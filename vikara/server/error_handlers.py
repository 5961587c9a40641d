"""Exception handlers: typed Vikara exceptions to JSON ``{"error": message}``.

Status codes:
    400  InvalidRequestError, request validation, OAuthExchangeError
    401  CalendarNotConnectedError
    502  CalendarServiceError from Google (4xx from Google pass through)
    503  ConfigError, ServiceNotConfiguredError
    500  anything else
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from vikara.exceptions import (
    CalendarNotConnectedError,
    CalendarServiceError,
    ConfigError,
    InvalidRequestError,
    OAuthExchangeError,
    ServiceNotConfiguredError,
    VikaraError,
)
from vikara.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fastapi import FastAPI, Request

logger = get_logger("server.errors")

NOT_CONNECTED_MESSAGE = "Calendar not connected. Authorize via /api/auth/url."


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


async def _handle_not_connected(request: Request, exc: CalendarNotConnectedError) -> JSONResponse:
    logger.info("calendar_not_connected", request_id=_request_id(request))
    return _error_response(401, NOT_CONNECTED_MESSAGE)


async def _handle_invalid_request(request: Request, exc: InvalidRequestError) -> JSONResponse:
    logger.warning("invalid_request", detail=exc.detail, request_id=_request_id(request))
    return _error_response(400, exc.detail)


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        detail = f"{location}: {message}" if location else str(message)
    else:
        detail = "Invalid request"
    logger.warning("request_validation_failed", detail=detail, request_id=_request_id(request))
    return _error_response(400, detail)


async def _handle_oauth_exchange(request: Request, exc: OAuthExchangeError) -> JSONResponse:
    logger.warning("oauth_exchange_failed", reason=exc.reason, request_id=_request_id(request))
    return _error_response(400, str(exc))


async def _handle_calendar_service(request: Request, exc: CalendarServiceError) -> JSONResponse:
    status = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else 502
    logger.error(
        "calendar_service_error",
        error=str(exc),
        upstream_status=exc.status_code,
        request_id=_request_id(request),
    )
    return _error_response(status, str(exc))


async def _handle_not_configured(request: Request, exc: VikaraError) -> JSONResponse:
    logger.error("service_not_configured", error=str(exc), request_id=_request_id(request))
    return _error_response(503, str(exc))


async def _handle_vikara_error(request: Request, exc: VikaraError) -> JSONResponse:
    logger.error(
        "vikara_error",
        error=str(exc),
        error_type=type(exc).__name__,
        request_id=_request_id(request),
    )
    return _error_response(500, str(exc))


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unexpected_error", request_id=_request_id(request))
    return _error_response(500, "Internal server error")


_HANDLERS: tuple[tuple[type[Exception], Callable[..., Awaitable[JSONResponse]]], ...] = (
    (CalendarNotConnectedError, _handle_not_connected),
    (InvalidRequestError, _handle_invalid_request),
    (RequestValidationError, _handle_validation_error),
    (OAuthExchangeError, _handle_oauth_exchange),
    (CalendarServiceError, _handle_calendar_service),
    (ConfigError, _handle_not_configured),
    (ServiceNotConfiguredError, _handle_not_configured),
    (VikaraError, _handle_vikara_error),
    (Exception, _handle_unexpected_error),
)


def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the app."""
    for exc_class, handler in _HANDLERS:
        app.add_exception_handler(exc_class, handler)
