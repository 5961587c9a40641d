"""RealtimeSession: single owner of the bidirectional model stream.

The session is the only component allowed to close the underlying
connection. It is driven from the event loop:

- ``open()`` performs the handshake and never raises once the connect is
  issued; failures invoke ``on_error`` then ``on_close`` and leave the
  session CLOSED.
- ``send()`` and ``send_tool_result()`` are synchronous enqueues. One sender
  task drains the queue, so frames reach the wire in call order.
- ``close()`` is idempotent.

States:
    IDLE -> OPENING -> OPEN -> CLOSING -> CLOSED
    OPENING | OPEN -> CLOSED (error or remote close)
    IDLE -> CLOSED (closed before open)
"""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from vikara._types import MediaBlob, ToolPayload, TransportState
from vikara.exceptions import SessionClosedError, TransportConnectError
from vikara.logging import get_logger
from vikara.session.state_machine import StateMachine, transport_state_machine

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from vikara.tools.declarations import ToolSpec

logger = get_logger("session.transport")

# Invocation ids remembered for duplicate-reply detection.
ANSWERED_ID_WINDOW = 256


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """Everything the model needs at connect time."""

    model: str
    system_instruction: str
    tools: tuple[ToolSpec, ...] = ()
    voice: str = "Fenrir"
    response_modality: str = "AUDIO"
    enable_search: bool = False


def _ignore(*_args: Any) -> None:
    return None


@dataclass(frozen=True, slots=True)
class TransportCallbacks:
    """Hooks invoked from the event loop. Exceptions they raise are logged."""

    on_open: Callable[[], None] = _ignore
    on_message: Callable[[Any], None] = _ignore
    on_error: Callable[[BaseException], None] = _ignore
    on_close: Callable[[str], None] = _ignore


class LiveConnection(Protocol):
    """An established model stream."""

    async def send_media(self, blob: MediaBlob) -> None: ...

    async def send_tool_response(
        self, invocation_id: str, name: str, response: ToolPayload
    ) -> None: ...

    def receive(self) -> AsyncIterator[Any]:
        """Yield server messages across turns; end when the peer closes."""
        ...

    async def close(self) -> None: ...


class LiveConnector(Protocol):
    """Factory for model streams (one per session)."""

    async def connect(self, config: SessionConfig) -> LiveConnection: ...


@dataclass(frozen=True, slots=True)
class _ToolResponse:
    invocation_id: str
    name: str
    response: ToolPayload


@dataclass
class _Counters:
    media_sent: int = 0
    media_dropped: int = 0
    tool_results_sent: int = 0
    messages_received: int = 0
    answered: deque[str] = field(default_factory=lambda: deque(maxlen=ANSWERED_ID_WINDOW))


class RealtimeSession:
    """One bidirectional connection to the realtime model.

    Args:
        connector: Creates the underlying stream.
        open_timeout_s: Handshake deadline.
        session_id: Log correlation id (generated when omitted).
    """

    def __init__(
        self,
        connector: LiveConnector,
        open_timeout_s: float = 15.0,
        session_id: str | None = None,
    ) -> None:
        self._connector = connector
        self._open_timeout_s = open_timeout_s
        self._session_id = session_id or f"sess_{uuid.uuid4().hex[:12]}"
        self._sm: StateMachine[TransportState] = transport_state_machine()
        self._callbacks = TransportCallbacks()
        self._connection: LiveConnection | None = None
        self._outbox: asyncio.Queue[MediaBlob | _ToolResponse] = asyncio.Queue()
        self._tasks: list[asyncio.Task[None]] = []
        self._counters = _Counters()

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def state(self) -> TransportState:
        return self._sm.state

    @property
    def is_open(self) -> bool:
        return self._sm.state is TransportState.OPEN

    async def open(self, config: SessionConfig, callbacks: TransportCallbacks) -> None:
        """Connect to the model and start the send/receive loops.

        Raises:
            SessionClosedError: If the session was already closed.
            InvalidTransitionError: If the session was already opened.
        """
        if self._sm.state is TransportState.CLOSED:
            raise SessionClosedError(self._session_id)
        self._sm.transition(TransportState.OPENING)
        self._callbacks = callbacks
        logger.info(
            "transport_opening",
            session_id=self._session_id,
            model=config.model,
            voice=config.voice,
            tools=[spec.name.value for spec in config.tools],
        )

        try:
            connection = await asyncio.wait_for(
                self._connector.connect(config), timeout=self._open_timeout_s
            )
        except asyncio.CancelledError:
            if self._sm.state is TransportState.OPENING:
                self._sm.transition(TransportState.CLOSED)
            raise
        except Exception as exc:
            reason = str(exc) or type(exc).__name__
            logger.error("transport_open_failed", session_id=self._session_id, error=reason)
            if self._sm.state is TransportState.OPENING:
                self._sm.transition(TransportState.CLOSED)
                self._notify(self._callbacks.on_error, TransportConnectError(config.model, reason))
                self._notify(self._callbacks.on_close, "error")
            return

        if self._sm.state is not TransportState.OPENING:
            # close() won the race with the handshake
            await self._release(connection)
            return

        self._connection = connection
        self._sm.transition(TransportState.OPEN)
        self._tasks = [
            asyncio.create_task(self._receive_loop(), name=f"{self._session_id}-recv"),
            asyncio.create_task(self._send_loop(), name=f"{self._session_id}-send"),
        ]
        logger.info("transport_open", session_id=self._session_id)
        self._notify(self._callbacks.on_open)

    def send(self, blob: MediaBlob) -> None:
        """Queue a media frame. Dropped silently unless OPEN."""
        if self._sm.state is not TransportState.OPEN:
            self._counters.media_dropped += 1
            return
        self._outbox.put_nowait(blob)

    def send_tool_result(self, invocation_id: str, name: str, result: ToolPayload) -> None:
        """Queue the reply for one tool invocation.

        No-op once the session is closing or closed. A second reply for one
        of the last ``ANSWERED_ID_WINDOW`` answered ids is ignored.
        """
        if self._sm.state is not TransportState.OPEN:
            logger.info(
                "tool_result_dropped",
                session_id=self._session_id,
                invocation_id=invocation_id,
                state=self._sm.state.value,
            )
            return
        if invocation_id in self._counters.answered:
            logger.warning(
                "duplicate_tool_result",
                session_id=self._session_id,
                invocation_id=invocation_id,
            )
            return
        self._counters.answered.append(invocation_id)
        self._outbox.put_nowait(_ToolResponse(invocation_id, name, {"result": result}))

    async def close(self) -> None:
        """Close the stream. Idempotent."""
        state = self._sm.state
        if state in (TransportState.CLOSING, TransportState.CLOSED):
            return
        if state in (TransportState.IDLE, TransportState.OPENING):
            self._sm.transition(TransportState.CLOSED)
            logger.info("transport_closed", session_id=self._session_id, reason="client")
            if state is TransportState.OPENING:
                self._notify(self._callbacks.on_close, "client")
            return

        self._sm.transition(TransportState.CLOSING)
        await self._stop_tasks()
        connection, self._connection = self._connection, None
        if connection is not None:
            await self._release(connection)
        self._sm.transition(TransportState.CLOSED)
        self._log_closed("client")
        self._notify(self._callbacks.on_close, "client")

    # ------------------------------------------------------------------
    # Background loops
    # ------------------------------------------------------------------

    async def _receive_loop(self) -> None:
        assert self._connection is not None
        try:
            async for message in self._connection.receive():
                self._counters.messages_received += 1
                self._notify(self._callbacks.on_message, message)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._terminate("error", exc)
            return
        await self._terminate("remote", None)

    async def _send_loop(self) -> None:
        assert self._connection is not None
        connection = self._connection
        try:
            while True:
                item = await self._outbox.get()
                if isinstance(item, MediaBlob):
                    await connection.send_media(item)
                    self._counters.media_sent += 1
                else:
                    await connection.send_tool_response(
                        item.invocation_id, item.name, item.response
                    )
                    self._counters.tool_results_sent += 1
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._terminate("error", exc)

    async def _terminate(self, reason: str, exc: BaseException | None) -> None:
        """Close from inside a background loop (remote close or stream error)."""
        if self._sm.state is not TransportState.OPEN:
            return
        self._sm.transition(TransportState.CLOSED)
        if exc is not None:
            logger.error(
                "transport_error",
                session_id=self._session_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
        await self._stop_tasks()
        connection, self._connection = self._connection, None
        if connection is not None:
            await self._release(connection)
        self._log_closed(reason)
        if exc is not None:
            self._notify(self._callbacks.on_error, exc)
        self._notify(self._callbacks.on_close, reason)

    async def _stop_tasks(self) -> None:
        current = asyncio.current_task()
        for task in self._tasks:
            if task is current:
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []

    async def _release(self, connection: LiveConnection) -> None:
        try:
            await connection.close()
        except Exception:
            logger.warning("connection_close_failed", session_id=self._session_id, exc_info=True)

    def _notify(self, callback: Callable[..., None], *args: Any) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception("transport_callback_error", session_id=self._session_id)

    def _log_closed(self, reason: str) -> None:
        logger.info(
            "transport_closed",
            session_id=self._session_id,
            reason=reason,
            media_sent=self._counters.media_sent,
            media_dropped=self._counters.media_dropped,
            tool_results_sent=self._counters.tool_results_sent,
            messages_received=self._counters.messages_received,
        )
