"""Tests for the calendar server exception handlers.

Each handler maps a typed exception to a status code and an
``{"error": message}`` body.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from vikara.exceptions import (
    CalendarNotConnectedError,
    CalendarServiceError,
    ConfigError,
    InvalidRequestError,
    OAuthExchangeError,
    ServiceNotConfiguredError,
    VikaraError,
)
from vikara.server.error_handlers import (
    NOT_CONNECTED_MESSAGE,
    _handle_calendar_service,
    _handle_invalid_request,
    _handle_not_configured,
    _handle_not_connected,
    _handle_oauth_exchange,
    _handle_unexpected_error,
    _handle_validation_error,
    _handle_vikara_error,
    register_error_handlers,
)


def _make_request(*, request_id: str | None = None) -> MagicMock:
    request = MagicMock()
    if request_id is not None:
        request.state.request_id = request_id
    else:
        del request.state.request_id
    return request


def _body(response: object) -> dict[str, str]:
    return json.loads(response.body)  # type: ignore[attr-defined]


class TestNotConnected:
    async def test_returns_401(self) -> None:
        response = await _handle_not_connected(_make_request(), CalendarNotConnectedError())
        assert response.status_code == 401
        assert _body(response) == {"error": NOT_CONNECTED_MESSAGE}


class TestInvalidRequest:
    async def test_returns_400_with_detail(self) -> None:
        response = await _handle_invalid_request(
            _make_request(request_id="req-1"), InvalidRequestError("Missing authorization code")
        )
        assert response.status_code == 400
        assert _body(response) == {"error": "Missing authorization code"}


class TestValidationError:
    async def test_first_error_with_location(self) -> None:
        exc = RequestValidationError(
            [{"loc": ("body", "attendeeEmail"), "msg": "Field required", "type": "missing"}]
        )
        response = await _handle_validation_error(_make_request(), exc)
        assert response.status_code == 400
        assert _body(response) == {"error": "attendeeEmail: Field required"}

    async def test_model_level_error_has_no_location(self) -> None:
        exc = RequestValidationError(
            [{"loc": ("body",), "msg": "Value error, endIso must be after startIso"}]
        )
        response = await _handle_validation_error(_make_request(), exc)
        assert _body(response) == {"error": "Value error, endIso must be after startIso"}

    async def test_empty_errors(self) -> None:
        response = await _handle_validation_error(_make_request(), RequestValidationError([]))
        assert _body(response) == {"error": "Invalid request"}


class TestOAuthExchange:
    async def test_returns_400(self) -> None:
        response = await _handle_oauth_exchange(
            _make_request(), OAuthExchangeError("invalid_grant")
        )
        assert response.status_code == 400
        assert "invalid_grant" in _body(response)["error"]


class TestCalendarService:
    async def test_upstream_4xx_passes_through(self) -> None:
        response = await _handle_calendar_service(
            _make_request(), CalendarServiceError("Not Found", status_code=404)
        )
        assert response.status_code == 404

    async def test_upstream_5xx_is_bad_gateway(self) -> None:
        response = await _handle_calendar_service(
            _make_request(), CalendarServiceError("Backend Error", status_code=503)
        )
        assert response.status_code == 502
        assert _body(response) == {"error": "Backend Error"}

    async def test_no_status_is_bad_gateway(self) -> None:
        response = await _handle_calendar_service(_make_request(), CalendarServiceError("boom"))
        assert response.status_code == 502


class TestNotConfigured:
    async def test_service_not_configured(self) -> None:
        response = await _handle_not_configured(
            _make_request(), ServiceNotConfiguredError("Calendar")
        )
        assert response.status_code == 503
        assert "Calendar not configured" in _body(response)["error"]

    async def test_config_error(self) -> None:
        response = await _handle_not_configured(_make_request(), ConfigError("no client id"))
        assert response.status_code == 503


class TestFallbacks:
    async def test_vikara_error_is_500(self) -> None:
        response = await _handle_vikara_error(_make_request(), VikaraError("odd"))
        assert response.status_code == 500
        assert _body(response) == {"error": "odd"}

    async def test_unexpected_error_hides_details(self) -> None:
        response = await _handle_unexpected_error(_make_request(), RuntimeError("secret"))
        assert response.status_code == 500
        assert _body(response) == {"error": "Internal server error"}


class TestRegister:
    def test_registers_every_handler(self) -> None:
        app = FastAPI()
        register_error_handlers(app)
        for exc_class in (
            CalendarNotConnectedError,
            InvalidRequestError,
            RequestValidationError,
            OAuthExchangeError,
            CalendarServiceError,
            ConfigError,
            ServiceNotConfiguredError,
            VikaraError,
            Exception,
        ):
            assert exc_class in app.exception_handlers
