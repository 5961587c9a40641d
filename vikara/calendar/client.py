"""Async HTTP client for the calendar server.

Wraps the server routes in typed methods. Non-2xx responses raise
CalendarServiceError carrying the server's ``error`` message; a booking
conflict is a normal ScheduleResult, not an error.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

import httpx

from vikara.calendar.models import (
    AuthStatus,
    CalendarEvent,
    FreeBusyResult,
    ScheduleRequest,
    ScheduleResult,
)
from vikara.exceptions import CalendarServiceError, OAuthTimeoutError
from vikara.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = get_logger("calendar.client")


class CalendarClient:
    """Client for ``/api/auth/*`` and ``/api/calendar/*``.

    Args:
        base_url: Calendar server URL.
        timeout_s: Per-request timeout.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_s,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> CalendarClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise CalendarServiceError(f"Calendar server unreachable: {exc}") from exc

        if response.is_error:
            message = f"HTTP {response.status_code}"
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("error"):
                message = str(body["error"])
            logger.warning(
                "calendar_request_failed",
                method=method,
                path=path,
                status=response.status_code,
                error=message,
            )
            raise CalendarServiceError(message, status_code=response.status_code)

        return response.json()

    async def health(self) -> bool:
        data = await self._request("GET", "/health")
        return bool(data.get("ok"))

    async def auth_status(self) -> AuthStatus:
        return AuthStatus.model_validate(await self._request("GET", "/api/auth/status"))

    async def auth_url(self) -> str:
        data = await self._request("GET", "/api/auth/url")
        return str(data["url"])

    async def logout(self) -> None:
        await self._request("POST", "/api/auth/logout")

    async def free_busy(self, time_min: str, time_max: str) -> FreeBusyResult:
        data = await self._request(
            "POST", "/api/calendar/freebusy", json={"timeMin": time_min, "timeMax": time_max}
        )
        return FreeBusyResult.model_validate(data)

    async def schedule(self, request: ScheduleRequest) -> ScheduleResult:
        """Book a meeting. The server checks availability before inserting."""
        data = await self._request("POST", "/api/calendar/schedule", json=request.to_wire())
        return ScheduleResult.model_validate(data)

    async def list_events(self, time_min: str, time_max: str) -> list[CalendarEvent]:
        data = await self._request(
            "GET", "/api/calendar/events", params={"timeMin": time_min, "timeMax": time_max}
        )
        return [CalendarEvent.from_google(item) for item in data]

    async def wait_for_connection(
        self,
        timeout_s: float = 60.0,
        interval_s: float = 1.5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> AuthStatus:
        """Poll ``auth_status`` until the user finishes OAuth consent.

        Transient server errors during the poll are logged and retried.

        Raises:
            OAuthTimeoutError: If not connected within ``timeout_s``.
        """
        deadline = clock() + timeout_s
        while True:
            try:
                status = await self.auth_status()
            except CalendarServiceError as exc:
                logger.debug("oauth_poll_error", error=str(exc))
            else:
                if status.connected:
                    logger.info("oauth_connected")
                    return status

            if clock() + interval_s > deadline:
                logger.warning("oauth_poll_timeout", timeout_s=timeout_s)
                raise OAuthTimeoutError(timeout_s)
            await sleep(interval_s)
