"""Health check endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

import vikara

router = APIRouter()


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Liveness plus whether calendar credentials are stored."""
    response: dict[str, Any] = {"ok": True, "version": vikara.__version__}
    oauth = getattr(request.app.state, "oauth", None)
    if oauth is not None:
        response["calendarConnected"] = oauth.is_connected()
    return response
