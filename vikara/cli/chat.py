"""`vikara chat` command: text chat with the scheduling assistant."""

from __future__ import annotations

import asyncio

import click
import httpx
from google.genai import errors as genai_errors

from vikara._types import SessionMode
from vikara.chat import ChatSession
from vikara.cli._common import calendar_client, fail
from vikara.cli.main import cli
from vikara.config.settings import get_settings
from vikara.exceptions import CalendarError
from vikara.logging import get_logger
from vikara.tools.backends import create_backend
from vikara.tools.dispatcher import ToolCallDispatcher

logger = get_logger("cli.chat")

_EXIT_WORDS = frozenset({"exit", "quit", "bye"})


@cli.command()
@click.option(
    "--mode",
    type=click.Choice([m.value for m in SessionMode]),
    default=None,
    help="sandbox simulates bookings; real uses the connected calendar (default: VIKARA_MODE).",
)
def chat(mode: str | None) -> None:
    """Chat with the assistant. Type 'exit' to quit."""
    settings = get_settings()
    if not settings.realtime.api_key:
        fail("Set GEMINI_API_KEY (or VIKARA_API_KEY) to start a chat.")
    session_mode = SessionMode(mode) if mode else settings.calendar.default_mode

    with asyncio.Runner() as runner:
        client = calendar_client(settings.calendar)
        try:
            if session_mode is SessionMode.REAL:
                try:
                    connected = runner.run(client.auth_status()).connected
                except CalendarError as exc:
                    fail(str(exc))
                if not connected:
                    fail("Calendar not connected. Run 'vikara connect' first.")

            session = ChatSession(
                ToolCallDispatcher(create_backend(session_mode, client)),
                model=settings.chat.model,
                api_key=settings.realtime.api_key,
                max_tool_rounds=settings.chat.max_tool_rounds,
                timezone=settings.realtime.timezone,
                enable_search=settings.realtime.enable_search,
            )
            click.echo("Hi! I'm Vikara. Ask about your schedule or book a meeting.")
            while True:
                try:
                    text = click.prompt("you", prompt_suffix="> ")
                except (EOFError, click.Abort):
                    break
                if text.strip().lower() in _EXIT_WORDS:
                    break
                try:
                    reply = runner.run(session.send(text))
                except (genai_errors.APIError, httpx.HTTPError) as exc:
                    logger.warning("chat_request_failed", error=str(exc))
                    click.echo("vikara> Sorry, I encountered an error.")
                    continue
                click.echo(f"vikara> {reply.text}")
                for link in reply.links:
                    click.echo(f"  - {link.title}: {link.uri}")
        finally:
            runner.run(client.aclose())
