"""FastAPI application factory for the Vikara calendar server."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

import vikara
from vikara.config.settings import ServerSettings
from vikara.server.error_handlers import register_error_handlers
from vikara.server.google_auth import GoogleOAuth, TokenStore
from vikara.server.google_calendar import GoogleCalendarService
from vikara.server.routes import auth, calendar, health


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assign a unique request_id to each HTTP request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.request_id = str(uuid.uuid4())
        return await call_next(request)


if TYPE_CHECKING:
    from collections.abc import AsyncIterator


def create_app(
    settings: ServerSettings | None = None,
    oauth: GoogleOAuth | None = None,
    calendar_service: GoogleCalendarService | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Services not passed in are built from ``settings``; an httpx client
    created here is closed on shutdown.

    Args:
        settings: Server settings (read from the environment when omitted).
        oauth: Google OAuth service (tests pass a fake).
        calendar_service: Google Calendar service (tests pass a fake).
        http_client: Shared client for the Google Calendar API.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or ServerSettings()
    owns_http = http_client is None and calendar_service is None
    http = http_client
    if owns_http:
        http = httpx.AsyncClient(timeout=settings.google_timeout_s)

    if oauth is None:
        oauth = GoogleOAuth(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_uri=settings.google_redirect_uri,
            store=TokenStore(settings.token_path_resolved, settings.token_json),
        )
    if calendar_service is None:
        assert http is not None
        calendar_service = GoogleCalendarService(
            oauth,
            http,
            calendar_id=settings.calendar_id,
            default_timezone=settings.default_timezone,
            meet_poll_attempts=settings.meet_link_poll_attempts,
            meet_poll_interval_s=settings.meet_link_poll_interval_s,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_http and http is not None:
            await http.aclose()

    app = FastAPI(
        title="Vikara Calendar Server",
        version=vikara.__version__,
        description="OAuth-authenticated Google Calendar access for the Vikara scheduler",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.oauth = oauth
    app.state.calendar = calendar_service

    cors_origins = settings.cors_origins_list
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_middleware(RequestIDMiddleware)

    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(calendar.router)

    return app
