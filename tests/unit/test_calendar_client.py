"""Tests for CalendarClient against httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from vikara.calendar.client import CalendarClient
from vikara.calendar.models import ScheduleRequest
from vikara.exceptions import CalendarServiceError, OAuthTimeoutError


def _client(handler: httpx.MockTransport) -> CalendarClient:
    return CalendarClient("http://calendar.test/", transport=handler)


class TestRequests:
    async def test_free_busy_posts_window(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"isFree": False, "busy": [{"start": "s", "end": "e"}]})

        async with _client(httpx.MockTransport(handler)) as client:
            result = await client.free_busy("2026-11-26T00:00:00Z", "2026-11-27T00:00:00Z")

        assert seen[0].url.path == "/api/calendar/freebusy"
        assert json.loads(seen[0].content) == {
            "timeMin": "2026-11-26T00:00:00Z",
            "timeMax": "2026-11-27T00:00:00Z",
        }
        assert result.is_free is False
        assert result.busy[0].start == "s"

    async def test_schedule_sends_camel_case(self, schedule_args: dict[str, str]) -> None:
        bodies: list[dict[str, object]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(
                200, json={"ok": True, "eventId": "e1", "htmlLink": "h", "meetLink": "m"}
            )

        async with _client(httpx.MockTransport(handler)) as client:
            result = await client.schedule(ScheduleRequest.model_validate(schedule_args))

        assert bodies[0]["attendeeEmail"] == "a@b.co"
        assert result.meet_link == "m"

    async def test_conflict_is_not_an_error(self, schedule_args: dict[str, str]) -> None:
        transport = httpx.MockTransport(
            lambda request: httpx.Response(
                200, json={"ok": False, "reason": "conflict", "busy": [{"start": "s", "end": "e"}]}
            )
        )
        async with _client(transport) as client:
            result = await client.schedule(ScheduleRequest.model_validate(schedule_args))
        assert result.is_conflict

    async def test_list_events_parses_google_items(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json=[{"id": "e1", "summary": "Lunch", "start": {"dateTime": "t0"}, "end": {}}],
            )

        async with _client(httpx.MockTransport(handler)) as client:
            events = await client.list_events("a", "b")

        assert seen[0].url.params["timeMin"] == "a"
        assert [e.title for e in events] == ["Lunch"]

    async def test_health(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"ok": True}))
        async with _client(transport) as client:
            assert await client.health() is True


class TestErrors:
    async def test_server_error_message_is_surfaced(self) -> None:
        transport = httpx.MockTransport(
            lambda request: httpx.Response(401, json={"error": "Calendar not connected."})
        )
        async with _client(transport) as client:
            with pytest.raises(CalendarServiceError, match="Calendar not connected") as exc_info:
                await client.auth_url()
        assert exc_info.value.status_code == 401

    async def test_non_json_error_body(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(502, text="Bad Gateway"))
        async with _client(transport) as client:
            with pytest.raises(CalendarServiceError, match="HTTP 502"):
                await client.health()

    async def test_unreachable_server(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(httpx.MockTransport(handler)) as client:
            with pytest.raises(CalendarServiceError, match="unreachable"):
                await client.auth_status()


class _FakeTime:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestWaitForConnection:
    async def test_returns_once_connected(self) -> None:
        answers = iter([False, False, True])
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"connected": next(answers)})
        )
        fake = _FakeTime()

        async with _client(transport) as client:
            status = await client.wait_for_connection(
                timeout_s=10.0, interval_s=1.0, clock=fake.clock, sleep=fake.sleep
            )

        assert status.connected is True
        assert fake.sleeps == [1.0, 1.0]

    async def test_transient_errors_are_retried(self) -> None:
        responses = iter(
            [
                httpx.Response(503, json={"error": "starting"}),
                httpx.Response(200, json={"connected": True}),
            ]
        )
        transport = httpx.MockTransport(lambda request: next(responses))
        fake = _FakeTime()

        async with _client(transport) as client:
            status = await client.wait_for_connection(
                timeout_s=10.0, interval_s=1.0, clock=fake.clock, sleep=fake.sleep
            )

        assert status.connected is True

    async def test_times_out(self) -> None:
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"connected": False})
        )
        fake = _FakeTime()

        async with _client(transport) as client:
            with pytest.raises(OAuthTimeoutError):
                await client.wait_for_connection(
                    timeout_s=3.0, interval_s=1.0, clock=fake.clock, sleep=fake.sleep
                )

        assert fake.now <= 3.0
        assert len(fake.sleeps) == 3
