"""
Linking a user to Strava (OAuth authorization code flow).

The `state` parameter is a random one-time token mapped to the user id in a
bounded in-memory store with a TTL; the callback consumes it exactly once.
The store belongs to a StravaLinker instance kept on app.state.
"""
import logging
import secrets
import time
from collections import OrderedDict
from urllib.parse import urlencode

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from strava_mirror.config import settings
from strava_mirror.core.errors import LinkError, RemoteError
from strava_mirror.models.user import User
from strava_mirror.services import strava_client
from strava_mirror.services.credentials import clear_credential, save_credential

logger = logging.getLogger(__name__)


class OAuthStateStore:
    """Single-use state -> user id entries that expire after ttl seconds. Oldest evicted past max_entries."""

    def __init__(self, ttl_seconds: int, max_entries: int, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, tuple[int, float]]" = OrderedDict()

    def __len__(self) -> int:
        self._purge()
        return len(self._entries)

    def _purge(self) -> None:
        now = self._clock()
        # Entries are in insertion order, so expiries are non-decreasing
        while self._entries:
            state, (_, expires) = next(iter(self._entries.items()))
            if expires > now:
                break
            del self._entries[state]

    def issue(self, user_id: int) -> str:
        self._purge()
        state = secrets.token_urlsafe(24)
        self._entries[state] = (user_id, self._clock() + self.ttl_seconds)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return state

    def consume(self, state: str | None) -> int | None:
        """User id bound to state, or None if unknown/expired. The entry is removed either way."""
        if not state:
            return None
        entry = self._entries.pop(state, None)
        if entry is None:
            return None
        user_id, expires = entry
        if expires <= self._clock():
            return None
        return user_id


def _int_or_none(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


class StravaLinker:
    def __init__(self, state_store: OAuthStateStore | None = None):
        self.states = state_store or OAuthStateStore(settings.oauth_state_ttl_seconds, settings.oauth_state_max_entries)

    def begin_remote_link(self, user: User) -> str:
        """Strava authorization URL carrying a fresh one-time state bound to user."""
        if not settings.strava_client_id or not settings.strava_redirect_uri:
            raise LinkError("Strava app not configured.")
        state = self.states.issue(user.id)
        params = {
            "client_id": settings.strava_client_id,
            "response_type": "code",
            "redirect_uri": settings.strava_redirect_uri,
            "state": state,
            "approval_prompt": "force",
            "scope": settings.strava_scopes,
        }
        return f"{settings.strava_authorize_url}?{urlencode(params, safe=':,/')}"

    async def complete_remote_link(self, session: AsyncSession, code: str | None, state: str | None) -> User:
        """Consume state, exchange code and persist the credential. LinkError when state or exchange is bad."""
        user_id = self.states.consume(state)
        if user_id is None:
            logger.warning("Strava callback with unknown or expired state")
            raise LinkError()
        if not code:
            raise LinkError("Missing code parameter.")
        r = await session.execute(select(User).where(User.id == user_id))
        user = r.scalar_one_or_none()
        if user is None:
            raise LinkError("User not found. Please log in again.")
        try:
            data = await strava_client.exchange_code(code)
        except RemoteError as e:
            logger.error("Strava token exchange failed: %s %s", e.status, e.body)
            raise LinkError("Failed to exchange code for tokens.") from e
        access_token = data.get("access_token")
        refresh_token = data.get("refresh_token")
        expires_at = data.get("expires_at")
        if not access_token or not refresh_token or not isinstance(expires_at, (int, float)):
            raise LinkError("Incomplete token response from Strava.")
        athlete = data.get("athlete")
        if not isinstance(athlete, dict) or not athlete.get("id"):
            try:
                athlete = await strava_client.get_current_athlete(access_token)
            except RemoteError as e:
                # The link still succeeds; only the athlete id is missing
                logger.warning("Fetching Strava athlete after link failed: %s", e)
                athlete = {}
        await save_credential(
            session,
            user,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=int(expires_at),
            athlete_id=_int_or_none(athlete.get("id")),
        )
        logger.info("Strava linked for user_id=%s", user.id)
        return user

    async def disconnect(self, session: AsyncSession, user: User) -> bool:
        return await clear_credential(session, user)
