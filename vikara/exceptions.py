"""Typed exceptions for Vikara.

Hierarchy:
    VikaraError (base)
    +-- ServiceNotConfiguredError
    +-- ConfigError
    +-- AudioError
    |   +-- AudioFormatError
    +-- DeviceError
    |   +-- DevicePermissionError
    +-- SessionError
    |   +-- SessionAlreadyActiveError
    |   +-- SessionClosedError
    |   +-- InvalidTransitionError
    +-- TransportError
    |   +-- TransportConnectError
    +-- CalendarError
    |   +-- CalendarServiceError
    |   +-- CalendarNotConnectedError
    |   +-- OAuthExchangeError
    |   +-- OAuthTimeoutError
    +-- InvalidRequestError
"""

from __future__ import annotations


class VikaraError(Exception):
    """Base for all Vikara exceptions."""


class ServiceNotConfiguredError(VikaraError):
    """A required service was not configured at startup.

    Raised by FastAPI dependencies when app.state is missing a required component.
    Maps to HTTP 503 (Service Unavailable) in error handlers.
    """

    def __init__(self, service_name: str) -> None:
        self.service_name = service_name
        super().__init__(
            f"{service_name} not configured. Pass {service_name.lower()}= in create_app()."
        )


# --- Configuration ---


class ConfigError(VikaraError):
    """Runtime configuration error."""


# --- Audio ---


class AudioError(VikaraError):
    """Audio processing error."""


class AudioFormatError(AudioError):
    """Unsupported or invalid audio format."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Invalid audio format: {detail}")


# --- Devices ---


class DeviceError(VikaraError):
    """Microphone, camera or speaker error."""


class DevicePermissionError(DeviceError):
    """A capture device could not be opened (denied, busy or missing)."""

    def __init__(self, device: str, reason: str) -> None:
        self.device = device
        self.reason = reason
        super().__init__(f"Could not access {device}: {reason}")


# --- Session ---


class SessionError(VikaraError):
    """Voice session error."""


class SessionAlreadyActiveError(SessionError):
    """start() was called while another session is running."""

    def __init__(self, state: str) -> None:
        self.state = state
        super().__init__(f"A session is already running (state: {state})")


class SessionClosedError(SessionError):
    """Operation attempted on a closed session."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' is already closed")


class InvalidTransitionError(SessionError):
    """Invalid state transition in a session state machine."""

    def __init__(self, from_state: str, to_state: str) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state} -> {to_state}")


# --- Transport ---


class TransportError(VikaraError):
    """Realtime model stream error."""


class TransportConnectError(TransportError):
    """The realtime stream could not be established."""

    def __init__(self, model: str, reason: str) -> None:
        self.model = model
        self.reason = reason
        super().__init__(f"Failed to connect to '{model}': {reason}")


# --- Calendar ---


class CalendarError(VikaraError):
    """Calendar access error."""


class CalendarServiceError(CalendarError):
    """The calendar service answered with an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class CalendarNotConnectedError(CalendarError):
    """No OAuth credentials are stored for the calendar."""

    def __init__(self) -> None:
        super().__init__("Calendar not connected. Connect Google Calendar first.")


class OAuthExchangeError(CalendarError):
    """Google rejected an authorization code or refresh token."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"OAuth token exchange failed: {reason}")


class OAuthTimeoutError(CalendarError):
    """Authorization did not complete within the polling window."""

    def __init__(self, timeout_s: float) -> None:
        self.timeout_s = timeout_s
        super().__init__(f"Calendar authorization did not complete within {timeout_s:.0f}s")


# --- Request ---


class InvalidRequestError(VikaraError):
    """Invalid request parameter."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)
