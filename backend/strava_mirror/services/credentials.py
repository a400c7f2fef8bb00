"""Credential store: per-user Strava access token, refresh token (encrypted at rest) and expiry."""

import logging
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from strava_mirror.models.strava_credentials import StravaCredentials
from strava_mirror.models.user import User
from strava_mirror.services.crypto import open_refresh_token, seal_refresh_token

logger = logging.getLogger(__name__)


@dataclass
class Credential:
    access_token: str
    refresh_token: str
    expires_at: int  # epoch seconds
    athlete_id: int | None = None


async def _load_row(session: AsyncSession, user_id: int) -> StravaCredentials | None:
    r = await session.execute(select(StravaCredentials).where(StravaCredentials.user_id == user_id))
    return r.scalar_one_or_none()


async def get_credential(session: AsyncSession, user: User) -> Credential | None:
    """Current credential for user, or None when not linked."""
    row = await _load_row(session, user.id)
    if row is None:
        return None
    return Credential(
        access_token=row.access_token,
        refresh_token=open_refresh_token(row.encrypted_refresh_token),
        expires_at=row.expires_at,
        athlete_id=row.strava_athlete_id,
    )


async def has_credential(session: AsyncSession, user: User) -> bool:
    return await _load_row(session, user.id) is not None


async def save_credential(
    session: AsyncSession,
    user: User,
    access_token: str,
    refresh_token: str,
    expires_at: int,
    athlete_id: int | None = None,
) -> None:
    """Write access token, refresh token and expiry together (one row, one flush)."""
    row = await _load_row(session, user.id)
    encrypted = seal_refresh_token(refresh_token)
    if row:
        row.access_token = access_token
        row.encrypted_refresh_token = encrypted
        row.expires_at = int(expires_at)
        if athlete_id is not None:
            row.strava_athlete_id = athlete_id
    else:
        session.add(
            StravaCredentials(
                user_id=user.id,
                access_token=access_token,
                encrypted_refresh_token=encrypted,
                expires_at=int(expires_at),
                strava_athlete_id=athlete_id,
            )
        )
    await session.flush()


async def clear_credential(session: AsyncSession, user: User) -> bool:
    """Remove the credential only; activities and photos are kept. Returns True if one existed."""
    result = await session.execute(delete(StravaCredentials).where(StravaCredentials.user_id == user.id))
    await session.flush()
    cleared = (result.rowcount or 0) > 0
    if cleared:
        logger.info("Strava credential cleared for user_id=%s", user.id)
    return cleared
