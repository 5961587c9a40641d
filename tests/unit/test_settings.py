"""Tests for vikara.config.settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from vikara._types import SessionMode
from vikara.config.settings import (
    AudioSettings,
    CalendarSettings,
    ChatSettings,
    RealtimeSettings,
    ServerSettings,
    VikaraSettings,
    get_settings,
)


class TestRealtimeSettings:
    def test_defaults(self) -> None:
        s = RealtimeSettings()
        assert s.api_key == ""
        assert s.voice == "Fenrir"
        assert s.open_timeout_s == 15.0
        assert s.enable_search is False

    @pytest.mark.parametrize("var", ["VIKARA_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY"])
    def test_api_key_aliases(self, monkeypatch: pytest.MonkeyPatch, var: str) -> None:
        monkeypatch.setenv(var, "k-123")
        assert RealtimeSettings().api_key == "k-123"

    def test_timeout_must_be_positive(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIKARA_OPEN_TIMEOUT_S", "0")
        with pytest.raises(ValidationError):
            RealtimeSettings()


class TestAudioSettings:
    def test_defaults(self) -> None:
        s = AudioSettings()
        assert s.input_sample_rate == 16000
        assert s.output_sample_rate == 24000
        assert s.frame_interval_s == 1.0

    def test_block_size_bounds(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIKARA_INPUT_BLOCK_SIZE", "16")
        with pytest.raises(ValidationError):
            AudioSettings()


class TestCalendarSettings:
    def test_defaults(self) -> None:
        s = CalendarSettings()
        assert s.backend_url == "http://localhost:8000"
        assert s.default_mode is SessionMode.SANDBOX

    def test_vite_alias(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VITE_BACKEND_URL", "https://cal.example.com")
        assert CalendarSettings().backend_url == "https://cal.example.com"

    def test_mode_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIKARA_MODE", "real")
        assert CalendarSettings().default_mode is SessionMode.REAL

    def test_poll_interval_below_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIKARA_OAUTH_POLL_TIMEOUT_S", "1")
        monkeypatch.setenv("VIKARA_OAUTH_POLL_INTERVAL_S", "2")
        with pytest.raises(ValidationError, match="oauth_poll_interval_s"):
            CalendarSettings()


class TestServerSettings:
    def test_frontend_origin_always_allowed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIKARA_CORS_ORIGINS", "https://a.example, https://b.example")
        assert ServerSettings().cors_origins_list == [
            "https://a.example",
            "https://b.example",
            "http://localhost:5173",
        ]

    def test_frontend_origin_not_duplicated(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FRONTEND_ORIGIN", "https://app.example")
        monkeypatch.setenv("VIKARA_CORS_ORIGINS", "https://app.example")
        assert ServerSettings().cors_origins_list == ["https://app.example"]

    def test_token_path_expands_home(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GOOGLE_TOKEN_PATH", "~/vikara/token.json")
        resolved = ServerSettings().token_path_resolved
        assert resolved == Path("~/vikara/token.json").expanduser()

    def test_google_client_plain_names(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GOOGLE_CLIENT_ID", "cid")
        monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "secret")
        s = ServerSettings()
        assert (s.google_client_id, s.google_client_secret) == ("cid", "secret")

    def test_port_alias(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORT", "9090")
        assert ServerSettings().port == 9090


class TestRootSettings:
    def test_aggregates_subsystems(self) -> None:
        s = VikaraSettings()
        assert isinstance(s.chat, ChatSettings)
        assert s.chat.max_tool_rounds == 4
        assert s.server.calendar_id == "primary"

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_dotenv_is_loaded(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("VIKARA_VOICE=Puck\n", encoding="utf-8")
        get_settings.cache_clear()
        assert VikaraSettings().realtime.voice == "Puck"
