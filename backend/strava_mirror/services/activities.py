"""
Activity reads and edits.

An edit goes Validate -> (mock ? SkipRemote : PushRemote) -> PersistLocal.
For remote-backed activities Strava is updated first; if that fails nothing
local changes, so local and remote never diverge for authoritative records.
"""
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from strava_mirror.core.errors import Forbidden, NotConnected, NotFound, RefreshFailed, RemoteError, RemoteUpdateFailed
from strava_mirror.models.activity import Activity
from strava_mirror.models.user import User
from strava_mirror.services import strava_client
from strava_mirror.services.credentials import has_credential
from strava_mirror.services.token_refresher import ensure_valid_token

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "description", "perceived_exertion", "private_notes", "is_commute", "is_indoor")
# Columns that cannot hold NULL; a None for these is dropped before anything is pushed
NON_NULLABLE_FIELDS = ("is_commute", "is_indoor")


async def list_activities(session: AsyncSession, user: User) -> list[Activity]:
    r = await session.execute(
        select(Activity).where(Activity.user_id == user.id).order_by(Activity.start_date.desc(), Activity.id.desc())
    )
    return list(r.scalars().all())


async def get_owned_activity(session: AsyncSession, user: User, activity_id: int, for_update: bool = False) -> Activity:
    """Load an activity and check the user owns it. NotFound / Forbidden otherwise."""
    q = select(Activity).where(Activity.id == activity_id)
    if for_update:
        q = q.with_for_update()
    r = await session.execute(q)
    activity = r.scalar_one_or_none()
    if activity is None:
        raise NotFound("Activity not found")
    if activity.user_id != user.id:
        raise Forbidden("You don't have permission to access this activity")
    return activity


async def _push_remote(session: AsyncSession, user: User, activity: Activity, fields: dict[str, Any]) -> None:
    try:
        access_token = await ensure_valid_token(session, user)
        await strava_client.update_activity(access_token, activity.strava_id, fields, activity_type=activity.type)
    except (RemoteError, RefreshFailed, NotConnected) as e:
        logger.error("Strava update for activity %s failed: %s", activity.strava_id, e)
        raise RemoteUpdateFailed() from e
    logger.info("Strava update for activity %s succeeded", activity.strava_id)


async def update_activity(session: AsyncSession, user: User, activity_id: int, fields: dict[str, Any]) -> Activity:
    """Apply an edit. Only EDITABLE_FIELDS are considered; unknown keys are ignored."""
    fields = {
        k: v for k, v in fields.items() if k in EDITABLE_FIELDS and not (v is None and k in NON_NULLABLE_FIELDS)
    }
    activity = await get_owned_activity(session, user, activity_id)

    if activity.is_mock:
        logger.debug("Skipping Strava update for mock activity %s", activity.strava_id)
    elif await has_credential(session, user):
        await _push_remote(session, user, activity, fields)
    else:
        logger.info("User %s not linked to Strava; activity %s updated locally only", user.id, activity.strava_id)

    for key, value in fields.items():
        setattr(activity, key, value)
    activity.updated_at = datetime.now(timezone.utc)
    await session.flush()
    return activity
