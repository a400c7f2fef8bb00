"""
Map Strava payloads onto local Activity/Photo fields.
Strava's shapes are inconsistent (missing ids, unique_id instead of id, url maps
keyed by size); everything here is tolerant and returns None instead of raising.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from strava_mirror.config import settings
from strava_mirror.models.photo import STRAVA_ID_DERIVED, STRAVA_ID_REMOTE

logger = logging.getLogger(__name__)

PREFERRED_PHOTO_SIZE = "600"


@dataclass
class PhotoCandidate:
    strava_id: int | None
    strava_id_source: str | None
    url: str
    caption: str | None
    is_primary: bool


def exertion_to_label(value: Any) -> str | None:
    """Strava's numeric perceived exertion -> label. <=2 Easy, <=4 Moderate, else Max Effort."""
    if value is None or isinstance(value, bool):
        return None
    try:
        num = int(float(value))
    except (TypeError, ValueError):
        return None
    if num <= 0:
        return None
    if num <= 2:
        return "Easy"
    if num <= 4:
        return "Moderate"
    return "Max Effort"


def parse_start_date(item: dict) -> datetime | None:
    raw = item.get("start_date") or item.get("start_date_local")
    if not raw or not isinstance(raw, str):
        return None
    try:
        if "T" in raw:
            dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        else:
            dt = datetime.fromisoformat(raw + "T00:00:00+00:00")
    except (ValueError, TypeError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _int_or(value: Any, default: int | None) -> int | None:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value)
    return default


def _float_or_none(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def normalize_activity(detail: dict) -> dict[str, Any] | None:
    """Detail payload -> Activity column values. None when the payload has no usable id or start date."""
    remote_id = _int_or(detail.get("id"), None)
    start_date = parse_start_date(detail)
    if remote_id is None or start_date is None:
        return None
    calories = _int_or(detail.get("calories"), 0) or 0
    return {
        "strava_id": remote_id,
        "name": detail.get("name"),
        "type": detail.get("type") or detail.get("sport_type"),
        "distance_m": _float_or_none(detail.get("distance")),
        "moving_time_sec": _int_or(detail.get("moving_time"), None),
        "start_date": start_date,
        "description": detail.get("description") or None,
        "private_notes": detail.get("private_note") or None,
        "perceived_exertion": exertion_to_label(detail.get("perceived_exertion")),
        "is_commute": detail.get("commute") is True,
        "is_indoor": detail.get("trainer") is True,
        "calories": max(calories, 0),
        # Remote-origin records are never mock
        "is_mock": False,
    }


def pick_photo_url(urls: Any) -> str | None:
    """Prefer the 600px rendition, else the first url in the map."""
    if not isinstance(urls, dict) or not urls:
        return None
    url = urls.get(PREFERRED_PHOTO_SIZE) or urls.get(int(PREFERRED_PHOTO_SIZE))
    if url:
        return url
    for value in urls.values():
        if value:
            return value
    return None


def _numeric_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _detail_photo(entry: Any, is_primary: bool) -> PhotoCandidate | None:
    if not isinstance(entry, dict):
        return None
    photo_id = entry.get("id") or entry.get("unique_id")
    url = pick_photo_url(entry.get("urls"))
    if not photo_id or not url:
        logger.info("Skipping photo without id or urls: keys=%s", sorted(entry))
        return None
    numeric = _numeric_id(photo_id)
    return PhotoCandidate(
        strava_id=numeric,
        strava_id_source=STRAVA_ID_REMOTE if numeric is not None else None,
        url=url,
        caption=entry.get("caption") or None,
        is_primary=is_primary,
    )


def extract_detail_photos(detail: dict) -> list[PhotoCandidate]:
    """Nested photos of an activity detail: primary first, then `additional`. Bad entries are skipped."""
    photos = detail.get("photos")
    if not isinstance(photos, dict):
        return []
    out: list[PhotoCandidate] = []
    primary = _detail_photo(photos.get("primary"), is_primary=True)
    if primary:
        out.append(primary)
    additional = photos.get("additional")
    if isinstance(additional, list):
        for entry in additional:
            candidate = _detail_photo(entry, is_primary=False)
            if candidate:
                out.append(candidate)
    return out


def derive_surrogate_id(remote_activity_id: int, unique_id: str) -> int | None:
    """
    Lossy numeric stand-in for a photo that only has an opaque unique_id:
    activity id digits followed by the first 8 digits of unique_id.
    Callers must store it with STRAVA_ID_DERIVED provenance.
    """
    digits = re.sub(r"\D", "", unique_id or "")[:8]
    if not digits:
        return None
    surrogate = int(f"{remote_activity_id}{digits}")
    # Must fit a signed BigInteger column
    if surrogate >= 2**63:
        return None
    return surrogate


def extract_listed_photo(photo: Any, remote_activity_id: int) -> PhotoCandidate | None:
    """One entry from GET /activities/{id}/photos. None when neither id nor unique_id is present."""
    if not isinstance(photo, dict):
        return None
    numeric = _numeric_id(photo.get("id"))
    unique_id = photo.get("unique_id")
    if numeric is not None:
        strava_id, source = numeric, STRAVA_ID_REMOTE
    elif unique_id:
        strava_id = derive_surrogate_id(remote_activity_id, str(unique_id))
        source = STRAVA_ID_DERIVED if strava_id is not None else None
    else:
        logger.warning("Photo for activity %s has neither id nor unique_id", remote_activity_id)
        return None
    url = pick_photo_url(photo.get("urls"))
    if not url:
        if not unique_id:
            logger.warning("Photo %s for activity %s has no urls", strava_id, remote_activity_id)
            return None
        url = settings.strava_photo_fallback_url.format(activity_id=remote_activity_id, unique_id=unique_id)
    return PhotoCandidate(
        strava_id=strava_id,
        strava_id_source=source,
        url=url,
        caption=photo.get("caption") or None,
        is_primary=photo.get("primary") is True,
    )
