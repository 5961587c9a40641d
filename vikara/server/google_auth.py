"""Google OAuth 2.0 for the calendar server.

google-auth-oauthlib runs the consent flow; google-auth owns the token
state and its refresh. Tokens are persisted as authorized-user JSON
(``Credentials.to_json()``) in a file, or supplied read-only through the
``VIKARA_GOOGLE_TOKEN_JSON`` env var (hosted deployments without a disk).
The env token is preferred until this process stores or clears a token.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from vikara.exceptions import (
    CalendarNotConnectedError,
    CalendarServiceError,
    ConfigError,
    OAuthExchangeError,
)
from vikara.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    import google.auth.transport

logger = get_logger("server.google_auth")

AUTH_ENDPOINT = "https://accounts.google.com/o/oauth2/auth"
TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
SCOPES = (
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/calendar.readonly",
)


class TokenStore:
    """Token persistence: an env-provided JSON blob, else a JSON file.

    ``save()`` and ``clear()`` retire the env token for the rest of the
    process, so a refreshed or revoked token is not shadowed by it.
    """

    def __init__(self, path: Path, env_json: str = "") -> None:
        self._path = path
        self._env_json = env_json.strip()
        self._env_active = bool(self._env_json)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any] | None:
        if self._env_active:
            try:
                data = json.loads(self._env_json)
            except ValueError:
                logger.warning("token_env_invalid")
                return None
            return data if isinstance(data, dict) else None
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("token_file_unreadable", path=str(self._path), exc_info=True)
            return None
        return data if isinstance(data, dict) else None

    def save(self, token: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(token, indent=2), encoding="utf-8")
        self._env_active = False
        logger.info("token_saved", path=str(self._path))

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
        self._env_active = False
        logger.info("token_cleared", path=str(self._path))


class GoogleOAuth:
    """Consent URL, code exchange and access-token refresh.

    Args:
        client_id: OAuth client id.
        client_secret: OAuth client secret.
        redirect_uri: Callback URL registered with Google.
        store: Where tokens live.
        auth_request: google-auth transport used for refreshes.
        flow_factory: Builds the consent flow (tests pass a fake).
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        store: TokenStore,
        *,
        auth_request: google.auth.transport.Request | None = None,
        flow_factory: Callable[[], Flow] | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._store = store
        self._auth_request = auth_request or Request()
        self._flow_factory = flow_factory or self._build_flow

    @property
    def store(self) -> TokenStore:
        return self._store

    def _require_client(self) -> None:
        if not self._client_id or not self._client_secret:
            msg = (
                "Google OAuth client is not configured "
                "(set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET)"
            )
            raise ConfigError(msg)

    def _build_flow(self) -> Flow:
        client_config = {
            "web": {
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "auth_uri": AUTH_ENDPOINT,
                "token_uri": TOKEN_ENDPOINT,
                "redirect_uris": [self._redirect_uri],
            }
        }
        # The callback builds a fresh flow, so there is no verifier to carry over.
        return Flow.from_client_config(
            client_config,
            scopes=list(SCOPES),
            redirect_uri=self._redirect_uri,
            autogenerate_code_verifier=False,
        )

    def authorization_url(self) -> str:
        """Consent URL requesting offline access to the calendar scopes."""
        self._require_client()
        url, _state = self._flow_factory().authorization_url(
            access_type="offline", prompt="consent"
        )
        return str(url)

    def is_connected(self) -> bool:
        return self._load_credentials() is not None

    def logout(self) -> None:
        self._store.clear()

    async def exchange_code(self, code: str) -> None:
        """Trade an authorization code for tokens and persist them.

        Raises:
            OAuthExchangeError: If Google rejects the code or cannot be reached.
        """
        self._require_client()
        flow = self._flow_factory()
        try:
            await asyncio.to_thread(flow.fetch_token, code=code)
        except Exception as exc:
            reason = str(exc) or type(exc).__name__
            logger.warning("oauth_code_exchange_failed", error=reason)
            raise OAuthExchangeError(reason) from exc

        credentials = flow.credentials
        self._store.save(json.loads(credentials.to_json()))
        logger.info("oauth_code_exchanged", has_refresh_token=credentials.refresh_token is not None)

    async def access_token(self) -> str:
        """Return a valid access token, refreshing it when it is about to expire.

        Raises:
            CalendarNotConnectedError: If no usable token is stored.
            OAuthExchangeError: If Google rejects the refresh.
            CalendarServiceError: If Google cannot be reached for the refresh.
        """
        credentials = self._load_credentials()
        if credentials is None:
            raise CalendarNotConnectedError
        if not credentials.valid:
            await self._refresh(credentials)
        return str(credentials.token)

    def _load_credentials(self) -> Credentials | None:
        info = self._store.load()
        if not info:
            return None
        info = {"client_id": self._client_id, "client_secret": self._client_secret, **info}
        try:
            return Credentials.from_authorized_user_info(info, list(SCOPES))
        except ValueError:
            logger.warning("stored_token_unusable", exc_info=True)
            return None

    async def _refresh(self, credentials: Credentials) -> None:
        try:
            await asyncio.to_thread(credentials.refresh, self._auth_request)
        except RefreshError as exc:
            logger.warning("oauth_refresh_rejected", error=str(exc))
            raise OAuthExchangeError(str(exc)) from exc
        except TransportError as exc:
            logger.warning("oauth_refresh_unreachable", error=str(exc))
            msg = f"Could not reach Google to refresh the access token: {exc}"
            raise CalendarServiceError(msg) from exc
        self._store.save(json.loads(credentials.to_json()))
        logger.info("oauth_token_refreshed")
