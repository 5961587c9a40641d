"""OAuth endpoints: consent URL, callback, status and logout."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from vikara.config.settings import ServerSettings  # noqa: TC001
from vikara.exceptions import InvalidRequestError
from vikara.logging import get_logger
from vikara.server.dependencies import get_oauth, get_server_settings
from vikara.server.google_auth import GoogleOAuth  # noqa: TC001

router = APIRouter(prefix="/api/auth", tags=["auth"])

logger = get_logger("server.routes.auth")


@router.get("/url")
async def auth_url(oauth: GoogleOAuth = Depends(get_oauth)) -> dict[str, str]:  # noqa: B008
    return {"url": oauth.authorization_url()}


@router.get("/callback")
async def auth_callback(
    code: str | None = None,
    error: str | None = None,
    oauth: GoogleOAuth = Depends(get_oauth),  # noqa: B008
    settings: ServerSettings = Depends(get_server_settings),  # noqa: B008
) -> RedirectResponse:
    """Google redirects here after consent; store the token and return to the app."""
    if error:
        raise InvalidRequestError(f"Authorization was not granted: {error}")
    if not code:
        raise InvalidRequestError("Missing authorization code")
    await oauth.exchange_code(code)
    logger.info("oauth_callback_complete")
    return RedirectResponse(settings.frontend_origin, status_code=302)


@router.get("/status")
async def auth_status(oauth: GoogleOAuth = Depends(get_oauth)) -> dict[str, Any]:  # noqa: B008
    return {"connected": oauth.is_connected()}


@router.post("/logout")
async def logout(oauth: GoogleOAuth = Depends(get_oauth)) -> dict[str, Any]:  # noqa: B008
    oauth.logout()
    return {"ok": True}
