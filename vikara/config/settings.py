"""Centralized configuration via pydantic-settings.

All ``VIKARA_*`` environment variables are read, validated, and exposed here.
Logging env vars (``VIKARA_LOG_FORMAT``, ``VIKARA_LOG_LEVEL``) stay in
``vikara.logging`` so logging can start before settings are parsed.

Usage::

    from vikara.config.settings import get_settings

    settings = get_settings()
    print(settings.realtime.model)     # str
    print(settings.server.token_path)  # Path, expanded

``.env`` files in the working directory are loaded automatically.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from vikara._audio_constants import (
    DEFAULT_FRAME_INTERVAL_S,
    DEFAULT_JPEG_QUALITY,
    INPUT_BLOCK_SIZE,
    INPUT_SAMPLE_RATE,
    OUTPUT_SAMPLE_RATE,
)
from vikara._types import SessionMode

# Subsystem settings read .env themselves; the root only aggregates them.
_SUBSYSTEM_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
    populate_by_name=True,
)


class RealtimeSettings(BaseSettings):
    """Realtime model connection settings."""

    model_config = _SUBSYSTEM_CONFIG

    api_key: str = Field(
        default="",
        validation_alias=AliasChoices("VIKARA_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY"),
    )
    model: str = Field(default="gemini-2.0-flash-exp", validation_alias="VIKARA_LIVE_MODEL")
    voice: str = Field(default="Fenrir", validation_alias="VIKARA_VOICE")
    enable_search: bool = Field(default=False, validation_alias="VIKARA_ENABLE_SEARCH")
    open_timeout_s: float = Field(default=15.0, gt=0, validation_alias="VIKARA_OPEN_TIMEOUT_S")
    timezone: str = Field(default="", validation_alias="VIKARA_TIMEZONE")


class ChatSettings(BaseSettings):
    """Text chat settings."""

    model_config = _SUBSYSTEM_CONFIG

    model: str = Field(default="gemini-2.5-flash", validation_alias="VIKARA_CHAT_MODEL")
    max_tool_rounds: int = Field(default=4, ge=1, le=16, validation_alias="VIKARA_CHAT_TOOL_ROUNDS")


class AudioSettings(BaseSettings):
    """Microphone, speaker and camera settings."""

    model_config = _SUBSYSTEM_CONFIG

    input_sample_rate: int = Field(
        default=INPUT_SAMPLE_RATE, ge=8000, le=192000, validation_alias="VIKARA_INPUT_SAMPLE_RATE"
    )
    output_sample_rate: int = Field(
        default=OUTPUT_SAMPLE_RATE, ge=8000, le=192000, validation_alias="VIKARA_OUTPUT_SAMPLE_RATE"
    )
    input_block_size: int = Field(
        default=INPUT_BLOCK_SIZE, ge=256, le=65536, validation_alias="VIKARA_INPUT_BLOCK_SIZE"
    )
    frame_interval_s: float = Field(
        default=DEFAULT_FRAME_INTERVAL_S, gt=0, validation_alias="VIKARA_FRAME_INTERVAL_S"
    )
    jpeg_quality: int = Field(
        default=DEFAULT_JPEG_QUALITY, ge=1, le=100, validation_alias="VIKARA_JPEG_QUALITY"
    )
    camera_index: int = Field(default=0, ge=0, validation_alias="VIKARA_CAMERA_INDEX")


class CalendarSettings(BaseSettings):
    """Calendar service client settings."""

    model_config = _SUBSYSTEM_CONFIG

    backend_url: str = Field(
        default="http://localhost:8000",
        validation_alias=AliasChoices("VIKARA_BACKEND_URL", "VITE_BACKEND_URL"),
    )
    http_timeout_s: float = Field(default=20.0, gt=0, validation_alias="VIKARA_HTTP_TIMEOUT_S")
    oauth_poll_timeout_s: float = Field(
        default=60.0, gt=0, validation_alias="VIKARA_OAUTH_POLL_TIMEOUT_S"
    )
    oauth_poll_interval_s: float = Field(
        default=1.5, gt=0, validation_alias="VIKARA_OAUTH_POLL_INTERVAL_S"
    )
    default_mode: SessionMode = Field(default=SessionMode.SANDBOX, validation_alias="VIKARA_MODE")

    @model_validator(mode="after")
    def _interval_lt_timeout(self) -> CalendarSettings:
        if self.oauth_poll_interval_s >= self.oauth_poll_timeout_s:
            msg = "oauth_poll_interval_s must be < oauth_poll_timeout_s"
            raise ValueError(msg)
        return self


class ServerSettings(BaseSettings):
    """Calendar server (FastAPI) and Google OAuth settings."""

    model_config = _SUBSYSTEM_CONFIG

    host: str = Field(default="127.0.0.1", validation_alias="VIKARA_HOST")
    port: int = Field(
        default=8000, ge=1, le=65535, validation_alias=AliasChoices("VIKARA_PORT", "PORT")
    )
    frontend_origin: str = Field(
        default="http://localhost:5173",
        validation_alias=AliasChoices("VIKARA_FRONTEND_ORIGIN", "FRONTEND_ORIGIN"),
    )
    cors_origins: str = Field(default="", validation_alias="VIKARA_CORS_ORIGINS")
    google_client_id: str = Field(
        default="", validation_alias=AliasChoices("VIKARA_GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_ID")
    )
    google_client_secret: str = Field(
        default="",
        validation_alias=AliasChoices("VIKARA_GOOGLE_CLIENT_SECRET", "GOOGLE_CLIENT_SECRET"),
    )
    google_redirect_uri: str = Field(
        default="http://localhost:8000/api/auth/callback",
        validation_alias=AliasChoices("VIKARA_GOOGLE_REDIRECT_URI", "GOOGLE_REDIRECT_URI"),
    )
    token_path: str = Field(
        default="./token.json",
        validation_alias=AliasChoices("VIKARA_GOOGLE_TOKEN_PATH", "GOOGLE_TOKEN_PATH"),
    )
    token_json: str = Field(
        default="",
        validation_alias=AliasChoices("VIKARA_GOOGLE_TOKEN_JSON", "GOOGLE_TOKEN_JSON"),
    )
    calendar_id: str = Field(
        default="primary",
        validation_alias=AliasChoices("VIKARA_GOOGLE_CALENDAR_ID", "GOOGLE_CALENDAR_ID"),
    )
    default_timezone: str = Field(
        default="Asia/Kolkata",
        validation_alias=AliasChoices("VIKARA_DEFAULT_TIMEZONE", "DEFAULT_TIMEZONE"),
    )
    meet_link_poll_attempts: int = Field(
        default=10, ge=0, le=60, validation_alias="VIKARA_MEET_LINK_POLL_ATTEMPTS"
    )
    meet_link_poll_interval_s: float = Field(
        default=0.8, gt=0, validation_alias="VIKARA_MEET_LINK_POLL_INTERVAL_S"
    )
    google_timeout_s: float = Field(default=20.0, gt=0, validation_alias="VIKARA_GOOGLE_TIMEOUT_S")

    @property
    def cors_origins_list(self) -> list[str]:
        """CORS origins as a list; the frontend origin is always allowed."""
        origins = [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        if self.frontend_origin and self.frontend_origin not in origins:
            origins.append(self.frontend_origin)
        return origins

    @property
    def token_path_resolved(self) -> Path:
        """Token file path with ``~`` expanded."""
        return Path(self.token_path).expanduser()


class VikaraSettings(BaseSettings):
    """Root settings: aggregates all subsystem settings.

    Loads ``.env`` from the current directory when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    realtime: RealtimeSettings = Field(default_factory=RealtimeSettings)
    chat: ChatSettings = Field(default_factory=ChatSettings)
    audio: AudioSettings = Field(default_factory=AudioSettings)
    calendar: CalendarSettings = Field(default_factory=CalendarSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)


@lru_cache(maxsize=1)
def get_settings() -> VikaraSettings:
    """Return the singleton ``VikaraSettings`` instance.

    The result is cached. Call ``get_settings.cache_clear()`` in tests to reset.
    """
    return VikaraSettings()
