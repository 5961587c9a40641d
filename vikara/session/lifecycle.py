"""SessionController: start/stop coordination for one voice session.

Owns the devices, pipelines, dispatcher and transport of the active
session and guarantees they are released through a single teardown
routine, whatever ends the session (user stop, remote close, transport
error, failed handshake).

States:
    READY -> STARTING -> ACTIVE -> STOPPING -> READY
    STARTING | ACTIVE -> READY (error)

Only one session may exist per controller; start() while not READY raises
SessionAlreadyActiveError.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from vikara._types import LifecycleState, SessionMode
from vikara.audio.input import CameraSampler, InputPipeline
from vikara.audio.output import OutputPipeline
from vikara.config.settings import AudioSettings, RealtimeSettings
from vikara.exceptions import AudioFormatError, DevicePermissionError, SessionAlreadyActiveError
from vikara.logging import bind_session, get_logger, unbind_session
from vikara.prompts import timezone_info, voice_instructions
from vikara.session.protocol import (
    AudioOutputResult,
    InterruptedResult,
    ToolCallResult,
    TurnCompleteResult,
    dispatch_server_message,
)
from vikara.session.state_machine import StateMachine, lifecycle_state_machine
from vikara.session.transport import RealtimeSession, SessionConfig, TransportCallbacks
from vikara.tools.declarations import VOICE_TOOLS
from vikara.tools.dispatcher import ToolCallDispatcher

if TYPE_CHECKING:
    from collections.abc import Callable

    from vikara.audio.devices import CaptureDevice, MediaDevices
    from vikara.audio.input import FrameSource
    from vikara.audio.output import AudioSink
    from vikara.session.transport import LiveConnector
    from vikara.tools.backends import CalendarBackend

logger = get_logger("session.lifecycle")

STATUS_READY = "Ready"
STATUS_CONNECTING = "Connecting..."
STATUS_LISTENING = "Listening..."
STATUS_ENDED = "Session Ended"


@dataclass
class _ActiveSession:
    """Resources of the running session. Released only by _teardown()."""

    session_id: str
    mode: SessionMode
    microphone: CaptureDevice
    speaker: AudioSink
    transport: RealtimeSession
    dispatcher: ToolCallDispatcher
    input: InputPipeline
    output: OutputPipeline
    camera: FrameSource | None = None
    camera_sampler: CameraSampler | None = None
    torn_down: bool = False
    error: str | None = None


class SessionController:
    """Coordinates one voice session at a time.

    Args:
        connector: Opens the realtime model stream.
        devices: Acquires microphone, camera and speaker.
        backend_factory: Returns the calendar backend for a mode.
        realtime: Model settings (defaults read from the environment).
        audio: Device settings (defaults read from the environment).
        on_status: Receives user-facing status text.
        on_level: Receives the microphone level in [0, 1].
        on_calendar_refresh: Called once per teardown; a meeting may have been booked.
    """

    def __init__(
        self,
        connector: LiveConnector,
        devices: MediaDevices,
        backend_factory: Callable[[SessionMode], CalendarBackend],
        *,
        realtime: RealtimeSettings | None = None,
        audio: AudioSettings | None = None,
        on_status: Callable[[str], None] | None = None,
        on_level: Callable[[float], None] | None = None,
        on_calendar_refresh: Callable[[], None] | None = None,
    ) -> None:
        self._connector = connector
        self._devices = devices
        self._backend_factory = backend_factory
        self._realtime = realtime or RealtimeSettings()
        self._audio = audio or AudioSettings()
        self._on_status = on_status
        self._on_level = on_level
        self._on_calendar_refresh = on_calendar_refresh
        self._sm: StateMachine[LifecycleState] = lifecycle_state_machine()
        self._ctx: _ActiveSession | None = None
        self._status = STATUS_READY
        self._error_message: str | None = None
        self._teardown_tasks: set[asyncio.Task[None]] = set()
        self._ready = asyncio.Event()
        self._ready.set()

    @property
    def state(self) -> LifecycleState:
        return self._sm.state

    @property
    def status(self) -> str:
        return self._status

    @property
    def error_message(self) -> str | None:
        return self._error_message

    @property
    def is_active(self) -> bool:
        return self._sm.state is LifecycleState.ACTIVE

    @property
    def session_id(self) -> str | None:
        return self._ctx.session_id if self._ctx is not None else None

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    async def start(self, mode: SessionMode = SessionMode.SANDBOX, vision: bool = False) -> None:
        """Acquire devices, open the transport and begin streaming.

        Transport failures end in READY with ``error_message`` set; they do
        not raise. Any other failure releases what was acquired, returns to
        READY with ``error_message`` set and re-raises.

        Raises:
            SessionAlreadyActiveError: If a session is starting, active or stopping.
            DevicePermissionError: If the microphone, camera or speaker is unavailable.
        """
        if self._sm.state is not LifecycleState.READY:
            logger.warning("start_rejected", state=self._sm.state.value)
            raise SessionAlreadyActiveError(self._sm.state.value)

        self._sm.transition(LifecycleState.STARTING)
        self._ready.clear()
        self._error_message = None
        self._set_status(STATUS_CONNECTING)

        session_id = f"sess_{uuid.uuid4().hex[:12]}"
        bind_session(session_id)
        logger.info("session_starting", mode=mode.value, vision=vision)

        try:
            microphone, camera, speaker = self._acquire_devices(vision)
        except Exception as exc:
            self._abort_start(exc)
            raise

        try:
            ctx = self._build_session(session_id, mode, microphone, camera, speaker)
        except Exception as exc:
            _release("microphone", microphone.close)
            if camera is not None:
                _release("camera", camera.close)
            _release("speaker", speaker.close)
            self._abort_start(exc)
            raise
        self._ctx = ctx

        await ctx.transport.open(
            self._session_config(),
            TransportCallbacks(
                on_open=lambda: self._on_open(ctx),
                on_message=lambda message: self._on_message(ctx, message),
                on_error=lambda exc: self._on_error(ctx, exc),
                on_close=lambda reason: self._on_close(ctx, reason),
            ),
        )

        if not ctx.torn_down and self._sm.state is not LifecycleState.ACTIVE:
            await self._teardown(ctx, "open_failed", error=ctx.error or "Failed to start session")

    def _acquire_devices(
        self, vision: bool
    ) -> tuple[CaptureDevice, FrameSource | None, AudioSink]:
        microphone = self._devices.open_microphone(
            self._audio.input_sample_rate, self._audio.input_block_size
        )
        camera: FrameSource | None = None
        try:
            if vision:
                camera = self._devices.open_camera()
            speaker = self._devices.open_speaker(self._audio.output_sample_rate)
        except Exception:
            _release("microphone", microphone.close)
            if camera is not None:
                _release("camera", camera.close)
            raise
        return microphone, camera, speaker

    def _build_session(
        self,
        session_id: str,
        mode: SessionMode,
        microphone: CaptureDevice,
        camera: FrameSource | None,
        speaker: AudioSink,
    ) -> _ActiveSession:
        transport = RealtimeSession(
            self._connector, open_timeout_s=self._realtime.open_timeout_s, session_id=session_id
        )
        ctx = _ActiveSession(
            session_id=session_id,
            mode=mode,
            microphone=microphone,
            speaker=speaker,
            transport=transport,
            dispatcher=ToolCallDispatcher(self._backend_factory(mode)),
            input=InputPipeline(
                transport, source_rate=self._audio.input_sample_rate, on_level=self._on_level
            ),
            output=OutputPipeline(speaker),
            camera=camera,
        )
        if camera is not None:
            ctx.camera_sampler = CameraSampler(
                transport, camera, interval_s=self._audio.frame_interval_s
            )
        return ctx

    def _abort_start(self, exc: Exception) -> None:
        if isinstance(exc, DevicePermissionError):
            logger.warning("device_permission_denied", device=exc.device, reason=exc.reason)
        else:
            logger.exception("session_start_failed")
        message = str(exc) or type(exc).__name__
        self._error_message = message
        self._sm.transition(LifecycleState.READY)
        self._set_status(message)
        unbind_session()
        self._ready.set()

    def _session_config(self) -> SessionConfig:
        tz = timezone_info(self._realtime.timezone)
        return SessionConfig(
            model=self._realtime.model,
            system_instruction=voice_instructions(tz),
            tools=VOICE_TOOLS,
            voice=self._realtime.voice,
            enable_search=self._realtime.enable_search,
        )

    # ------------------------------------------------------------------
    # Transport callbacks (event loop)
    # ------------------------------------------------------------------

    def _on_open(self, ctx: _ActiveSession) -> None:
        if ctx is not self._ctx or ctx.torn_down:
            return
        ctx.microphone.start(ctx.input.push)
        if ctx.camera_sampler is not None:
            ctx.camera_sampler.start()
        self._sm.transition(LifecycleState.ACTIVE)
        self._set_status(STATUS_LISTENING)
        logger.info("session_active", mode=ctx.mode.value)

    def _on_message(self, ctx: _ActiveSession, message: Any) -> None:
        if ctx is not self._ctx or ctx.torn_down:
            return
        for result in dispatch_server_message(message):
            if isinstance(result, AudioOutputResult):
                try:
                    ctx.output.enqueue(result.blob)
                except AudioFormatError as exc:
                    logger.warning("audio_chunk_rejected", error=str(exc))
            elif isinstance(result, ToolCallResult):
                ctx.dispatcher.submit(result.invocations, ctx.transport.send_tool_result)
            elif isinstance(result, InterruptedResult):
                ctx.output.flush()
            elif isinstance(result, TurnCompleteResult):
                logger.debug("turn_complete")

    def _on_error(self, ctx: _ActiveSession, exc: BaseException) -> None:
        ctx.error = str(exc) or type(exc).__name__

    def _on_close(self, ctx: _ActiveSession, reason: str) -> None:
        if ctx.torn_down:
            return
        task = asyncio.get_running_loop().create_task(
            self._teardown(ctx, f"transport_{reason}", error=ctx.error)
        )
        self._teardown_tasks.add(task)
        task.add_done_callback(self._teardown_tasks.discard)

    # ------------------------------------------------------------------
    # Stop / teardown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Stop the active session. Safe to call repeatedly or when idle."""
        ctx = self._ctx
        if ctx is None or ctx.torn_down:
            await self.wait_until_ready()
            return
        await self._teardown(ctx, "user")

    async def wait_until_ready(self) -> None:
        """Block until no session is running."""
        await self._ready.wait()

    async def _teardown(self, ctx: _ActiveSession, reason: str, error: str | None = None) -> None:
        """The only place session resources are released."""
        if ctx.torn_down:
            return
        ctx.torn_down = True

        if error is None and self._sm.can_transition(LifecycleState.STOPPING):
            self._sm.transition(LifecycleState.STOPPING)
        logger.info("session_stopping", reason=reason, error=error)

        _release("microphone", ctx.microphone.close)
        if ctx.camera_sampler is not None:
            try:
                await ctx.camera_sampler.stop()
            except Exception:
                logger.exception("resource_release_failed", resource="camera_sampler")
        if ctx.camera is not None:
            _release("camera", ctx.camera.close)
        _release("output", ctx.output.stop)
        _release("speaker", ctx.speaker.close)
        try:
            await ctx.transport.close()
        except Exception:
            logger.exception("resource_release_failed", resource="transport")
        _release("input", ctx.input.reset)

        if self._ctx is ctx:
            self._ctx = None
        self._sm.transition(LifecycleState.READY)
        self._error_message = error
        self._set_status(error or STATUS_ENDED)
        logger.info(
            "session_stopped",
            reason=reason,
            pending_tool_calls=ctx.dispatcher.pending,
        )

        if self._on_calendar_refresh is not None:
            try:
                self._on_calendar_refresh()
            except Exception:
                logger.exception("calendar_refresh_callback_error")
        unbind_session()
        self._ready.set()

    def _set_status(self, status: str) -> None:
        self._status = status
        if self._on_status is not None:
            try:
                self._on_status(status)
            except Exception:
                logger.exception("status_callback_error")


def _release(resource: str, close: Callable[[], None]) -> None:
    """Run one release step; a failing step never blocks the others."""
    try:
        close()
    except Exception:
        logger.exception("resource_release_failed", resource=resource)
