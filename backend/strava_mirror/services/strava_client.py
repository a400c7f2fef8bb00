"""
Strava API client: OAuth code exchange/refresh, activities, photos.
Every call takes an already valid access token, uses an explicit timeout and
never retries; non-2xx responses raise RemoteError(status, body).
"""
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from strava_mirror.config import settings
from strava_mirror.core.errors import RefreshFailed, RemoteError
from strava_mirror.services.http_client import get_http_client

logger = logging.getLogger(__name__)

EXERTION_TO_NUMBER = {"Easy": 1, "Moderate": 3, "Max Effort": 5}

# Local field name -> Strava field name for update_activity
_UPDATE_FIELDS = {
    "name": "name",
    "type": "type",
    "description": "description",
    "is_commute": "commute",
    "is_indoor": "trainer",
    "private_notes": "private_note",
}


@dataclass
class RemotePhoto:
    id: int | None
    url: str | None


def exertion_to_number(label: str | None) -> int | None:
    """Easy -> 1, Moderate -> 3, Max Effort -> 5; anything else -> None."""
    if not label:
        return None
    return EXERTION_TO_NUMBER.get(label)


def _api_url(path: str) -> str:
    return f"{settings.strava_api_base.rstrip('/')}/{path.lstrip('/')}"


def _auth(access_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}


async def _request(method: str, url: str, **kwargs: Any) -> Any:
    """Send one request; return decoded JSON (or None for empty body). Raises RemoteError."""
    client = get_http_client()
    try:
        r = await client.request(method, url, timeout=settings.strava_timeout_seconds, **kwargs)
    except httpx.HTTPError as e:
        logger.warning("Strava %s %s failed: %s", method, url, e)
        raise RemoteError(None, str(e)) from e
    if r.status_code >= 400:
        body = (r.text or "")[:500]
        logger.warning("Strava %s %s -> %s body=%s", method, url, r.status_code, body)
        raise RemoteError(r.status_code, body)
    if not r.content:
        return None
    try:
        return r.json()
    except ValueError as e:
        raise RemoteError(r.status_code, (r.text or "")[:500], "Strava returned invalid JSON") from e


async def exchange_code(code: str) -> dict[str, Any]:
    """Exchange authorization code for tokens (access_token, refresh_token, expires_at, athlete)."""
    data = {
        "client_id": settings.strava_client_id,
        "client_secret": settings.strava_client_secret,
        "code": code,
        "grant_type": "authorization_code",
    }
    result = await _request("POST", settings.strava_oauth_url, data=data)
    return result if isinstance(result, dict) else {}


async def refresh_access_token(refresh_token: str) -> dict[str, Any]:
    """Exchange a refresh token for a new token set. Raises RefreshFailed on any failure."""
    data = {
        "client_id": settings.strava_client_id,
        "client_secret": settings.strava_client_secret,
        "refresh_token": refresh_token,
        "grant_type": "refresh_token",
    }
    try:
        result = await _request("POST", settings.strava_oauth_url, data=data)
    except RemoteError as e:
        raise RefreshFailed(f"Strava token refresh failed (status={e.status})") from e
    if not isinstance(result, dict) or not result.get("access_token"):
        raise RefreshFailed("Strava token refresh returned no access token")
    return result


async def get_current_athlete(access_token: str) -> dict[str, Any]:
    result = await _request("GET", _api_url("athlete"), headers=_auth(access_token))
    return result if isinstance(result, dict) else {}


async def list_activities(access_token: str, per_page: int | None = None) -> list[dict]:
    """Most recent activity summaries, newest first (one page)."""
    params = {"per_page": per_page or settings.strava_sync_page_size, "page": 1}
    result = await _request("GET", _api_url("athlete/activities"), params=params, headers=_auth(access_token))
    return result if isinstance(result, list) else []


async def get_activity_detail(access_token: str, remote_id: int) -> dict[str, Any]:
    """Detailed activity including nested photo metadata."""
    result = await _request("GET", _api_url(f"activities/{remote_id}"), headers=_auth(access_token))
    if not isinstance(result, dict):
        raise RemoteError(200, "", f"Unexpected detail payload for activity {remote_id}")
    return result


async def get_activity_photos(access_token: str, remote_id: int, size: int = 600) -> list[dict]:
    result = await _request(
        "GET",
        _api_url(f"activities/{remote_id}/photos"),
        params={"size": size, "photo_sources": "true"},
        headers=_auth(access_token),
    )
    return result if isinstance(result, list) else []


def build_update_payload(fields: dict[str, Any], activity_type: str | None = None) -> dict[str, Any]:
    """Translate local field names to Strava's; exertion label becomes a number (omitted if unknown)."""
    payload: dict[str, Any] = {}
    if activity_type:
        payload["type"] = activity_type
    for local_name, remote_name in _UPDATE_FIELDS.items():
        if local_name in fields:
            value = fields[local_name]
            if local_name in ("is_commute", "is_indoor"):
                value = value is True
            elif local_name in ("description", "private_notes"):
                value = value or ""
            payload[remote_name] = value
    if "perceived_exertion" in fields:
        number = exertion_to_number(fields["perceived_exertion"])
        if number is not None:
            payload["perceived_exertion"] = number
    return payload


async def update_activity(access_token: str, remote_id: int, fields: dict[str, Any], activity_type: str | None = None) -> dict[str, Any]:
    payload = build_update_payload(fields, activity_type)
    logger.debug("Strava update activity %s fields=%s", remote_id, sorted(payload))
    result = await _request("PUT", _api_url(f"activities/{remote_id}"), json=payload, headers=_auth(access_token))
    return result if isinstance(result, dict) else {}


async def upload_photo(
    access_token: str,
    remote_id: int,
    filename: str,
    data: bytes,
    content_type: str = "image/jpeg",
) -> RemotePhoto:
    """Attach a photo to a Strava activity. Returns the remote id and its 600px url when Strava reports them."""
    result = await _request(
        "POST",
        _api_url(f"activities/{remote_id}/photos"),
        files={"file": (filename, data, content_type)},
        headers=_auth(access_token),
    )
    if not isinstance(result, dict):
        return RemotePhoto(id=None, url=None)
    photo_id = result.get("id")
    urls = result.get("urls") or {}
    url = urls.get("600") if isinstance(urls, dict) else None
    return RemotePhoto(id=int(photo_id) if isinstance(photo_id, (int, str)) and str(photo_id).isdigit() else None, url=url)


async def set_primary_photo(access_token: str, remote_activity_id: int, remote_photo_id: int) -> None:
    await _request(
        "PUT",
        _api_url(f"activities/{remote_activity_id}/photos/{remote_photo_id}"),
        json={"primary": True},
        headers=_auth(access_token),
    )
