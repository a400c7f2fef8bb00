"""
Reconcile Strava activities and photos into local storage.

A sync pass lists recent activities, fetches each detail and upserts it keyed
by strava_id, replacing the activity's whole photo set. Each record runs in
its own SAVEPOINT: a failed fetch or write skips that record only and never
leaves a partially written activity. The replace (delete + insert) becomes
visible to other transactions at commit, so readers never see an empty set.
No lock or savepoint is held across a network call.
"""
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from strava_mirror.config import settings
from strava_mirror.core.errors import RemoteError
from strava_mirror.core.metrics import SYNC_PASSES, SYNC_RECORD_FAILURES
from strava_mirror.models.activity import Activity
from strava_mirror.models.photo import Photo
from strava_mirror.models.user import User
from strava_mirror.services import strava_client
from strava_mirror.services.strava_mapper import (
    PhotoCandidate,
    extract_detail_photos,
    extract_listed_photo,
    normalize_activity,
)
from strava_mirror.services.token_refresher import ensure_valid_token

logger = logging.getLogger(__name__)


class _NoPhotoStored(Exception):
    """Every insert of a photo-set replace failed."""


def _single_primary(candidates: list[PhotoCandidate]) -> list[PhotoCandidate]:
    """Keep is_primary on the first flagged candidate only."""
    seen_primary = False
    for c in candidates:
        if c.is_primary:
            if seen_primary:
                c.is_primary = False
            seen_primary = True
    return candidates


def _photo_row(activity_id: int, c: PhotoCandidate) -> Photo:
    return Photo(
        activity_id=activity_id,
        strava_id=c.strava_id,
        strava_id_source=c.strava_id_source,
        url=c.url,
        caption=c.caption,
        is_primary=c.is_primary,
    )


async def _upsert_activity(
    session: AsyncSession,
    user: User,
    values: dict[str, Any],
    candidates: list[PhotoCandidate],
) -> bool:
    """Insert or fully overwrite one activity and replace its photos. False if owned by another user."""
    r = await session.execute(select(Activity).where(Activity.strava_id == values["strava_id"]))
    row = r.scalar_one_or_none()
    if row is not None and row.user_id != user.id:
        logger.warning(
            "Strava activity %s already belongs to user_id=%s; skipping for user_id=%s",
            values["strava_id"],
            row.user_id,
            user.id,
        )
        return False
    now = datetime.now(timezone.utc)
    if row is None:
        row = Activity(user_id=user.id, updated_at=now, **values)
        session.add(row)
        await session.flush()
    else:
        for key, value in values.items():
            setattr(row, key, value)
        row.updated_at = now
    await session.execute(delete(Photo).where(Photo.activity_id == row.id))
    for c in _single_primary(candidates):
        session.add(_photo_row(row.id, c))
    await session.flush()
    session.expire(row, ["photos"])
    return True


async def sync_activities(session: AsyncSession, user: User) -> int:
    """
    One sync pass for user. Returns the number of summaries Strava listed
    (not the number upserted). Raises NotConnected / RefreshFailed / RemoteError
    only for failures before the first record (token, list call).
    """
    access_token = await ensure_valid_token(session, user)
    summaries = await strava_client.list_activities(access_token, settings.strava_sync_page_size)
    logger.info("Strava sync: user_id=%s fetched %s activities", user.id, len(summaries))
    upserted = 0
    for summary in summaries:
        remote_id = summary.get("id") if isinstance(summary, dict) else None
        if remote_id is None:
            logger.warning("Strava sync: summary without id skipped: %s", summary)
            SYNC_RECORD_FAILURES.labels(kind="activities").inc()
            continue
        try:
            detail = await strava_client.get_activity_detail(access_token, remote_id)
        except RemoteError as e:
            logger.error("Strava sync: detail fetch for activity %s failed: %s %s", remote_id, e.status, e.body)
            SYNC_RECORD_FAILURES.labels(kind="activities").inc()
            continue
        values = normalize_activity(detail)
        if values is None:
            logger.warning("Strava sync: activity %s has no usable id/start_date; skipped", remote_id)
            SYNC_RECORD_FAILURES.labels(kind="activities").inc()
            continue
        candidates = extract_detail_photos(detail)
        try:
            async with session.begin_nested():
                if await _upsert_activity(session, user, values, candidates):
                    upserted += 1
        except SQLAlchemyError:
            logger.exception("Strava sync: storing activity %s failed", remote_id)
            SYNC_RECORD_FAILURES.labels(kind="activities").inc()
    logger.info("Strava sync: user_id=%s upserted %s of %s", user.id, upserted, len(summaries))
    SYNC_PASSES.labels(kind="activities").inc()
    return len(summaries)


async def _insert_listed_photo(session: AsyncSession, activity: Activity, c: PhotoCandidate) -> bool:
    """Insert one photo; on a storage error retry once without the strava id. False if both fail."""
    try:
        async with session.begin_nested():
            session.add(_photo_row(activity.id, c))
            await session.flush()
        return True
    except SQLAlchemyError as e:
        logger.warning("Photo insert for activity %s failed (%s); retrying without strava id", activity.strava_id, e)
    try:
        async with session.begin_nested():
            session.add(
                Photo(
                    activity_id=activity.id,
                    url=c.url,
                    caption=c.caption,
                    is_primary=c.is_primary,
                )
            )
            await session.flush()
        return True
    except SQLAlchemyError:
        logger.exception("Photo insert for activity %s failed again; photo dropped", activity.strava_id)
        return False


async def sync_photos(session: AsyncSession, user: User) -> int:
    """
    Refresh photos of the user's non-mock activities from the photos endpoint.
    Returns the number of activities whose photo set was replaced.
    """
    access_token = await ensure_valid_token(session, user)
    r = await session.execute(
        select(Activity)
        .where(Activity.user_id == user.id, Activity.is_mock.is_(False))
        .order_by(Activity.start_date.desc())
    )
    activities = r.scalars().all()
    updated = 0
    for activity in activities:
        try:
            listed = await strava_client.get_activity_photos(access_token, activity.strava_id)
        except RemoteError as e:
            logger.error("Photo sync: fetch for activity %s failed: %s %s", activity.strava_id, e.status, e.body)
            SYNC_RECORD_FAILURES.labels(kind="photos").inc()
            continue
        if not listed:
            continue
        candidates = []
        for item in listed:
            candidate = extract_listed_photo(item, activity.strava_id)
            if candidate is not None:
                candidates.append(candidate)
        if not candidates:
            logger.warning("Photo sync: no usable photos for activity %s; keeping existing", activity.strava_id)
            continue
        try:
            async with session.begin_nested():
                await session.execute(delete(Photo).where(Photo.activity_id == activity.id))
                stored = 0
                for c in _single_primary(candidates):
                    if await _insert_listed_photo(session, activity, c):
                        stored += 1
                if not stored:
                    # Roll the delete back with the savepoint
                    raise _NoPhotoStored()
        except _NoPhotoStored:
            logger.warning("Photo sync: no photo of activity %s could be stored; keeping existing", activity.strava_id)
            SYNC_RECORD_FAILURES.labels(kind="photos").inc()
            continue
        except SQLAlchemyError:
            logger.exception("Photo sync: replacing photos for activity %s failed", activity.strava_id)
            SYNC_RECORD_FAILURES.labels(kind="photos").inc()
            continue
        session.expire(activity, ["photos"])
        updated += 1
    logger.info("Photo sync: user_id=%s updated %s activities", user.id, updated)
    SYNC_PASSES.labels(kind="photos").inc()
    return updated
