"""FastAPI dependencies: current user from the identity assertion, shared engine components."""

import logging
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from strava_mirror.core.auth import verify_identity
from strava_mirror.db.session import get_db
from strava_mirror.models.user import User
from strava_mirror.services.storage import BlobStorage, get_storage
from strava_mirror.services.strava_link import StravaLinker

logger = logging.getLogger(__name__)


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    # Browser redirects (e.g. /strava/connect) cannot set headers
    return request.query_params.get("token") or None


async def get_current_user(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Verify the identity token; create the User on first sight of its subject."""
    identity = verify_identity(_bearer_token(request))
    r = await session.execute(select(User).where(User.subject == identity.subject))
    user = r.scalar_one_or_none()
    if user is not None:
        if identity.email and user.email != identity.email:
            user.email = identity.email
        return user
    try:
        async with session.begin_nested():
            user = User(subject=identity.subject, email=identity.email)
            session.add(user)
    except IntegrityError:
        # Concurrent first request created it
        r = await session.execute(select(User).where(User.subject == identity.subject))
        user = r.scalar_one()
    else:
        logger.info("Created user_id=%s for subject %s", user.id, identity.subject)
    return user


def get_linker(request: Request) -> StravaLinker:
    return request.app.state.strava_linker


def get_blob_storage() -> BlobStorage:
    return get_storage()
