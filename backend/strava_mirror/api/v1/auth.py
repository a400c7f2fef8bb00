"""Auth: the identity provider authenticates users; /me provisions and returns the local user."""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from strava_mirror.api.deps import get_current_user
from strava_mirror.db.session import get_db
from strava_mirror.models.user import User
from strava_mirror.services.credentials import has_credential

router = APIRouter(tags=["auth"])


class UserOut(BaseModel):
    id: int
    subject: str
    email: str | None
    strava_connected: bool


@router.get("/me", response_model=UserOut)
async def me(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> UserOut:
    return UserOut(
        id=user.id,
        subject=user.subject,
        email=user.email,
        strava_connected=await has_credential(session, user),
    )
