"""
Return a valid Strava access token for a user, refreshing (and persisting) it when expired.

Concurrent callers for the same user in this process share one refresh: each
user has an asyncio.Lock and the credential is re-read after acquiring it.
Across processes refreshes may still race; a loser using a rotated refresh
token gets RefreshFailed and is not retried.
"""
import asyncio
import logging
import time
import weakref

from sqlalchemy.ext.asyncio import AsyncSession

from strava_mirror.core.errors import NotConnected, RefreshFailed
from strava_mirror.core.metrics import TOKEN_REFRESHES
from strava_mirror.models.user import User
from strava_mirror.services import strava_client
from strava_mirror.services.credentials import get_credential, save_credential

logger = logging.getLogger(__name__)

_refresh_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()


def _lock_for(user_id: int) -> asyncio.Lock:
    lock = _refresh_locks.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _refresh_locks[user_id] = lock
    return lock


async def ensure_valid_token(session: AsyncSession, user: User) -> str:
    """Access token valid now. Raises NotConnected (no credential) or RefreshFailed (state untouched)."""
    cred = await get_credential(session, user)
    if cred is None:
        raise NotConnected()
    if cred.expires_at > int(time.time()):
        return cred.access_token

    lock = _lock_for(user.id)
    async with lock:
        # Another request may have refreshed while we waited
        cred = await get_credential(session, user)
        if cred is None:
            raise NotConnected()
        if cred.expires_at > int(time.time()):
            return cred.access_token
        if not cred.refresh_token:
            TOKEN_REFRESHES.labels(outcome="failed").inc()
            raise RefreshFailed("Stored refresh token is unreadable")
        logger.info("Refreshing Strava token for user_id=%s", user.id)
        try:
            data = await strava_client.refresh_access_token(cred.refresh_token)
        except RefreshFailed:
            TOKEN_REFRESHES.labels(outcome="failed").inc()
            logger.warning("Strava token refresh failed for user_id=%s", user.id)
            raise
        expires_at = data.get("expires_at")
        if not isinstance(expires_at, (int, float)):
            expires_in = data.get("expires_in")
            expires_at = int(time.time()) + int(expires_in) if isinstance(expires_in, (int, float)) else int(time.time())
        await save_credential(
            session,
            user,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or cred.refresh_token,
            expires_at=int(expires_at),
        )
        # Rotated refresh tokens must survive a later failure in the same request
        await session.commit()
        TOKEN_REFRESHES.labels(outcome="ok").inc()
        return data["access_token"]
