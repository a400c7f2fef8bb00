"""Strava: OAuth link (connect/callback), disconnect, status."""

import html
import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from strava_mirror.api.deps import get_current_user, get_linker
from strava_mirror.core.errors import LinkError
from strava_mirror.db.session import get_db
from strava_mirror.models.user import User
from strava_mirror.services.credentials import get_credential
from strava_mirror.services.strava_link import StravaLinker

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/strava", tags=["strava"])

_PAGE = (
    "<!DOCTYPE html><html><head><meta charset='utf-8'><title>{title}</title></head>"
    "<body style='font-family: Arial, sans-serif; text-align: center; margin-top: 50px;'>"
    "<h1>{title}</h1><p>{message}</p>{script}</body></html>"
)
_NOTIFY_OPENER = (
    "<script>if (window.opener && !window.opener.closed) {"
    "window.opener.postMessage({type: 'STRAVA_CONNECTED', success: true}, '*');}"
    "setTimeout(function () { window.close(); }, 3000);</script>"
)


@router.get("/status")
async def get_strava_status(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """Return whether Strava is linked for the current user."""
    cred = await get_credential(session, user)
    if cred is None:
        return {"linked": False}
    return {"linked": True, "athlete_id": str(cred.athlete_id) if cred.athlete_id else None}


@router.get("/connect")
async def connect(
    user: Annotated[User, Depends(get_current_user)],
    linker: Annotated[StravaLinker, Depends(get_linker)],
    redirect: bool = False,
):
    """Strava authorization URL with a one-time state bound to the user (or a redirect to it)."""
    url = linker.begin_remote_link(user)
    if redirect:
        return RedirectResponse(url, status_code=302)
    return {"url": url}


@router.get("/callback", response_class=HTMLResponse)
async def strava_callback(
    session: Annotated[AsyncSession, Depends(get_db)],
    linker: Annotated[StravaLinker, Depends(get_linker)],
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
):
    """OAuth redirect target: exchange code for tokens and store them for the state's user."""
    if error:
        return HTMLResponse(
            _PAGE.format(title="Strava authorization failed", message=html.escape(error), script=""),
            status_code=400,
        )
    try:
        await linker.complete_remote_link(session, code, state)
    except LinkError as e:
        return HTMLResponse(
            _PAGE.format(
                title="Authentication Error",
                message=html.escape(e.message) + " Please try connecting again from the dashboard.",
                script="",
            ),
            status_code=400,
        )
    return HTMLResponse(
        _PAGE.format(
            title="Strava Connected Successfully!",
            message="You can close this window and return to the app.",
            script=_NOTIFY_OPENER,
        )
    )


@router.post("/disconnect")
async def disconnect(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    linker: Annotated[StravaLinker, Depends(get_linker)],
) -> dict:
    """Forget the Strava credential. Activities and photos are kept."""
    await linker.disconnect(session, user)
    return {"message": "Successfully disconnected Strava"}
