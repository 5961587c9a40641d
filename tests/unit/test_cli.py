"""Tests for the vikara CLI commands."""

from __future__ import annotations

import importlib
from typing import Any

import httpx
import pytest
from click.testing import CliRunner

import vikara
from vikara.calendar.client import CalendarClient
from vikara.cli import cli


class _FakeServer:
    """Calendar server answering the routes the CLI uses."""

    def __init__(self, connected: bool = True, events: list[dict[str, Any]] | None = None) -> None:
        self.connected = connected
        self.events = events or []
        self.paths: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.paths.append(request.url.path)
        if request.url.path == "/api/auth/status":
            return httpx.Response(200, json={"connected": self.connected})
        if request.url.path == "/api/auth/url":
            return httpx.Response(200, json={"url": "https://accounts.google.com/consent"})
        if request.url.path == "/api/auth/logout":
            self.connected = False
            return httpx.Response(200, json={"ok": True})
        if request.url.path == "/api/calendar/events":
            return httpx.Response(200, json=self.events)
        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def server(monkeypatch: pytest.MonkeyPatch) -> _FakeServer:
    fake = _FakeServer()

    def _client(settings: Any) -> CalendarClient:
        return CalendarClient("http://calendar.test", transport=httpx.MockTransport(fake))

    # The command functions shadow their module names on the vikara.cli package.
    for name in ("vikara.cli.auth", "vikara.cli.events"):
        monkeypatch.setattr(importlib.import_module(name), "calendar_client", _client)
    return fake


class TestRoot:
    def test_version(self) -> None:
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert vikara.__version__ in result.output

    def test_help_lists_commands(self) -> None:
        result = CliRunner().invoke(cli, ["--help"])
        for command in ("chat", "connect", "events", "logout", "serve", "status", "talk"):
            assert command in result.output


class TestAuthCommands:
    def test_status_connected(self, server: _FakeServer) -> None:
        result = CliRunner().invoke(cli, ["status"])
        assert result.exit_code == 0
        assert "Calendar: connected" in result.output

    def test_status_not_connected(self, server: _FakeServer) -> None:
        server.connected = False
        result = CliRunner().invoke(cli, ["status"])
        assert "Calendar: not connected" in result.output

    def test_connect_without_browser(self, server: _FakeServer) -> None:
        result = CliRunner().invoke(cli, ["connect", "--no-browser"])

        assert result.exit_code == 0
        assert "https://accounts.google.com/consent" in result.output
        assert "Calendar connected." in result.output
        assert server.paths == ["/api/auth/url", "/api/auth/status"]

    def test_logout(self, server: _FakeServer) -> None:
        result = CliRunner().invoke(cli, ["logout"])
        assert result.exit_code == 0
        assert "Calendar disconnected." in result.output
        assert server.connected is False

    def test_server_unreachable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        monkeypatch.setattr(
            "vikara.cli.auth.calendar_client",
            lambda settings: CalendarClient(
                "http://calendar.test", transport=httpx.MockTransport(refuse)
            ),
        )
        result = CliRunner().invoke(cli, ["status"])

        assert result.exit_code == 1
        assert "Calendar server unreachable" in result.output


class TestEventsCommand:
    def test_no_events(self, server: _FakeServer) -> None:
        result = CliRunner().invoke(cli, ["events"])
        assert result.exit_code == 0
        assert "No upcoming events." in result.output

    def test_lists_events(self, server: _FakeServer) -> None:
        server.events = [
            {
                "id": "e1",
                "summary": "Standup",
                "start": {"dateTime": "2026-11-26T09:00:00+05:30"},
                "end": {"dateTime": "2026-11-26T09:15:00+05:30"},
                "hangoutLink": "https://meet.google.com/abc",
            }
        ]
        result = CliRunner().invoke(cli, ["events", "--days", "3"])

        assert result.exit_code == 0
        assert "Standup" in result.output
        assert "https://meet.google.com/abc" in result.output

    def test_days_out_of_range(self, server: _FakeServer) -> None:
        result = CliRunner().invoke(cli, ["events", "--days", "0"])
        assert result.exit_code == 2


class TestModelCommands:
    @pytest.mark.parametrize("command", ["talk", "chat"])
    def test_requires_api_key(self, command: str) -> None:
        result = CliRunner().invoke(cli, [command])
        assert result.exit_code == 1
        assert "GEMINI_API_KEY" in result.output

    def test_talk_rejects_unknown_mode(self) -> None:
        result = CliRunner().invoke(cli, ["talk", "--mode", "live"])
        assert result.exit_code == 2
