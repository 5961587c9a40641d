"""`vikara talk` command: a live voice session from the terminal."""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

import click

from vikara._types import SessionMode
from vikara.cli._common import calendar_client, fail, format_event, upcoming_window
from vikara.cli.main import cli
from vikara.config.settings import get_settings
from vikara.exceptions import CalendarError, CalendarNotConnectedError, DevicePermissionError
from vikara.logging import get_logger
from vikara.session.lifecycle import SessionController
from vikara.tools.backends import create_backend

if TYPE_CHECKING:
    from vikara.config.settings import VikaraSettings

logger = get_logger("cli.talk")


@cli.command()
@click.option(
    "--mode",
    type=click.Choice([m.value for m in SessionMode]),
    default=None,
    help="sandbox simulates bookings; real uses the connected calendar (default: VIKARA_MODE).",
)
@click.option("--vision", is_flag=True, help="Also stream webcam frames (1 per second).")
def talk(mode: str | None, vision: bool) -> None:
    """Start a voice session. Press Ctrl+C to end it."""
    settings = get_settings()
    if not settings.realtime.api_key:
        fail("Set GEMINI_API_KEY (or VIKARA_API_KEY) to start a voice session.")
    session_mode = SessionMode(mode) if mode else settings.calendar.default_mode

    try:
        error = asyncio.run(_talk(settings, session_mode, vision))
    except (CalendarError, DevicePermissionError, ImportError) as exc:
        fail(str(exc))
    if error:
        fail(error)


async def _talk(settings: VikaraSettings, mode: SessionMode, vision: bool) -> str | None:
    from vikara.audio.devices import LocalMediaDevices
    from vikara.live.gemini import GeminiLiveConnector

    async with calendar_client(settings.calendar) as client:
        if mode is SessionMode.REAL and not (await client.auth_status()).connected:
            raise CalendarNotConnectedError

        refreshes = 0

        def on_calendar_refresh() -> None:
            nonlocal refreshes
            refreshes += 1

        controller = SessionController(
            GeminiLiveConnector(api_key=settings.realtime.api_key),
            LocalMediaDevices(
                camera_index=settings.audio.camera_index,
                jpeg_quality=settings.audio.jpeg_quality,
            ),
            lambda session_mode: create_backend(session_mode, client),
            realtime=settings.realtime,
            audio=settings.audio,
            on_status=lambda text: click.echo(f"[{text}]"),
            on_calendar_refresh=on_calendar_refresh,
        )

        loop = asyncio.get_running_loop()
        stop_tasks: set[asyncio.Task[None]] = set()

        def _handle_signal(sig: signal.Signals) -> None:
            logger.info("shutdown_signal", signal=sig.name)
            task = loop.create_task(controller.stop())
            stop_tasks.add(task)
            task.add_done_callback(stop_tasks.discard)

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _handle_signal, sig)
        try:
            await controller.start(mode, vision=vision)
            if controller.is_active:
                click.echo(f"Speak now ({mode.value} mode). Press Ctrl+C to end the session.")
            await controller.wait_until_ready()
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)

        if refreshes and mode is SessionMode.REAL:
            time_min, time_max = upcoming_window(1)
            todays = await client.list_events(time_min, time_max)
            click.echo("Next 24 hours:" if todays else "Nothing scheduled in the next 24 hours.")
            for event in todays:
                click.echo(f"  {format_event(event)}")

        return controller.error_message
