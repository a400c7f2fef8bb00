"""Activities: sync from Strava, list, edit, mock generation and bulk deletes."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from strava_mirror.api.deps import get_current_user
from strava_mirror.db.session import get_db
from strava_mirror.models.user import User
from strava_mirror.schemas.activity import (
    ActivityResponse,
    ActivityUpdate,
    DeleteResult,
    MockCreate,
    MockResult,
    SyncResult,
)
from strava_mirror.services import activities as activity_service
from strava_mirror.services import mock_activities, strava_sync

router = APIRouter(prefix="/activities", tags=["activities"])


@router.post("/sync", response_model=SyncResult)
async def sync_activities(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> SyncResult:
    """Pull the most recent Strava activities (with photos) into local storage."""
    count = await strava_sync.sync_activities(session, user)
    return SyncResult(message="Activities synced successfully", count=count)


@router.post("/sync-photos", response_model=SyncResult)
async def sync_photos(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> SyncResult:
    count = await strava_sync.sync_photos(session, user)
    return SyncResult(message="Photos synced successfully", count=count)


@router.get("", response_model=list[ActivityResponse])
async def list_activities(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> list[ActivityResponse]:
    rows = await activity_service.list_activities(session, user)
    return [ActivityResponse.model_validate(a) for a in rows]


@router.put("/{activity_id}", response_model=ActivityResponse)
async def update_activity(
    activity_id: int,
    body: ActivityUpdate,
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> ActivityResponse:
    """Edit an activity; real (non-mock) activities are updated on Strava first."""
    activity = await activity_service.update_activity(session, user, activity_id, body.model_dump(exclude_unset=True))
    return ActivityResponse.model_validate(activity)


@router.post("/mock", response_model=MockResult)
async def create_mock_activities(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: MockCreate | None = None,
) -> MockResult:
    count = body.count if body else MockCreate().count
    created = await mock_activities.generate_mock(session, user, count)
    return MockResult(
        message=f"Created {len(created)} mock activities",
        activities=[ActivityResponse.model_validate(a) for a in created],
    )


@router.delete("/mock", response_model=DeleteResult)
async def delete_mock_activities(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> DeleteResult:
    count = await mock_activities.delete_mock(session, user)
    return DeleteResult(message=f"Successfully deleted {count} mock activities", count=count)


@router.delete("/all", response_model=DeleteResult)
async def delete_all_activities(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    confirm: Annotated[bool, Query(description="Must be true: deletes every activity and photo")] = False,
) -> DeleteResult:
    if not confirm:
        raise HTTPException(status_code=400, detail="Pass confirm=true to delete all activities.")
    count = await mock_activities.delete_all(session, user)
    return DeleteResult(message=f"Successfully deleted {count} activities", count=count)
