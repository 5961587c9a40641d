"""FastAPI dependencies for the OAuth and calendar services on app state."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Request  # noqa: TC002

from vikara.exceptions import ServiceNotConfiguredError

if TYPE_CHECKING:
    from vikara.config.settings import ServerSettings
    from vikara.server.google_auth import GoogleOAuth
    from vikara.server.google_calendar import GoogleCalendarService


def get_server_settings(request: Request) -> ServerSettings:
    return request.app.state.settings  # type: ignore[no-any-return]


def get_oauth(request: Request) -> GoogleOAuth:
    """Return the GoogleOAuth from app state.

    Raises:
        ServiceNotConfiguredError: If OAuth was not configured in create_app().
    """
    oauth = request.app.state.oauth
    if oauth is None:
        raise ServiceNotConfiguredError("OAuth")
    return oauth  # type: ignore[no-any-return]


def get_calendar(request: Request) -> GoogleCalendarService:
    """Return the GoogleCalendarService from app state.

    Raises:
        ServiceNotConfiguredError: If the calendar was not configured in create_app().
    """
    calendar = request.app.state.calendar
    if calendar is None:
        raise ServiceNotConfiguredError("Calendar")
    return calendar  # type: ignore[no-any-return]
