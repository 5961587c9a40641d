"""Shared fixtures for all tests."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

# Ensure repo root is on sys.path so tests can import the `vikara` package
# when running pytest from the repository root without an editable install.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402

from vikara.config.settings import get_settings  # noqa: E402

_SETTINGS_ENV = (
    "VIKARA_API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "VIKARA_MODE",
    "VIKARA_BACKEND_URL",
    "VITE_BACKEND_URL",
    "VIKARA_TIMEZONE",
    "PORT",
    "VIKARA_PORT",
    "FRONTEND_ORIGIN",
    "VIKARA_FRONTEND_ORIGIN",
    "DEFAULT_TIMEZONE",
    "VIKARA_DEFAULT_TIMEZONE",
    "GOOGLE_CALENDAR_ID",
    "VIKARA_GOOGLE_CALENDAR_ID",
    "GOOGLE_CLIENT_ID",
    "VIKARA_GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "VIKARA_GOOGLE_CLIENT_SECRET",
    "GOOGLE_REDIRECT_URI",
    "VIKARA_GOOGLE_REDIRECT_URI",
    "GOOGLE_TOKEN_JSON",
    "VIKARA_GOOGLE_TOKEN_JSON",
    "GOOGLE_TOKEN_PATH",
    "VIKARA_GOOGLE_TOKEN_PATH",
)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Keep host env vars and any local .env out of tests."""
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def schedule_args() -> dict[str, str]:
    """Valid schedule_meeting arguments."""
    return {
        "title": "Sync",
        "attendeeEmail": "a@b.co",
        "startIso": "2026-11-26T17:00:00+05:30",
        "endIso": "2026-11-26T17:30:00+05:30",
    }
