"""
Local-only (mock) activities for testing and demos.
They carry is_mock=True and strava ids from a reserved range starting at
settings.mock_id_base, so they can never collide with real Strava ids and
are never sent to Strava.
"""
import logging
import random
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from strava_mirror.config import settings
from strava_mirror.models.activity import EXERTION_LABELS, Activity
from strava_mirror.models.photo import Photo
from strava_mirror.models.user import User

logger = logging.getLogger(__name__)

MOCK_ACTIVITY_TYPES = ["Run", "Ride", "Swim", "Walk", "Hike", "WeightTraining", "Yoga"]
MAX_DISTANCE_M = 10_000.0
MAX_MOVING_TIME_SEC = 7200
MAX_CALORIES = 999


async def _next_mock_id(session: AsyncSession) -> int:
    """
    First free id in the reserved range. Strava ids are unique store-wide, so the
    range is shared by all users: a user's first batch starts at mock_id_base only
    when no other user holds mock activities.
    """
    r = await session.execute(
        select(func.max(Activity.strava_id)).where(
            Activity.is_mock.is_(True),
            Activity.strava_id >= settings.mock_id_base,
        )
    )
    current = r.scalar_one_or_none()
    return settings.mock_id_base if current is None else int(current) + 1


async def generate_mock(session: AsyncSession, user: User, count: int, rng: random.Random | None = None) -> list[Activity]:
    rng = rng or random.Random()
    first_id = await _next_mock_id(session)
    now = datetime.now(timezone.utc)
    created = []
    for i in range(count):
        activity_type = rng.choice(MOCK_ACTIVITY_TYPES)
        start_date = now - timedelta(days=rng.randrange(settings.mock_window_days), seconds=rng.randrange(86400))
        activity = Activity(
            user_id=user.id,
            strava_id=first_id + i,
            name=f"Test {activity_type} {i + 1}",
            type=activity_type,
            distance_m=round(rng.uniform(0, MAX_DISTANCE_M), 1),
            moving_time_sec=rng.randrange(MAX_MOVING_TIME_SEC),
            start_date=start_date,
            description=f"Test description for {activity_type} activity",
            perceived_exertion=rng.choice(EXERTION_LABELS),
            private_notes="Some private notes" if rng.random() > 0.5 else None,
            is_commute=rng.random() > 0.7,
            is_indoor=rng.random() > 0.7,
            calories=rng.randrange(MAX_CALORIES + 1),
            is_mock=True,
            updated_at=now,
        )
        session.add(activity)
        created.append(activity)
    await session.flush()
    logger.info("Created %s mock activities for user_id=%s", len(created), user.id)
    return created


async def _delete_where(session: AsyncSession, *conditions) -> int:
    ids = select(Activity.id).where(*conditions)
    await session.execute(delete(Photo).where(Photo.activity_id.in_(ids)))
    result = await session.execute(delete(Activity).where(*conditions))
    await session.flush()
    return result.rowcount or 0


async def delete_mock(session: AsyncSession, user: User) -> int:
    """Delete the user's mock activities (and their photos). Real activities are untouched."""
    count = await _delete_where(session, Activity.user_id == user.id, Activity.is_mock.is_(True))
    logger.info("Deleted %s mock activities for user_id=%s", count, user.id)
    return count


async def delete_all(session: AsyncSession, user: User) -> int:
    """Delete every activity of the user regardless of origin. Irreversible; callers confirm first."""
    count = await _delete_where(session, Activity.user_id == user.id)
    logger.warning("Deleted all %s activities for user_id=%s", count, user.id)
    return count
