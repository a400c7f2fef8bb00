"""Photos: list per activity, upload (local + Strava mirror), delete, set primary."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from strava_mirror.api.deps import get_blob_storage, get_current_user
from strava_mirror.db.session import get_db
from strava_mirror.models.user import User
from strava_mirror.schemas.photo import PhotoResponse
from strava_mirror.services import photos as photo_service
from strava_mirror.services.storage import BlobStorage

router = APIRouter(prefix="/photos", tags=["photos"])


@router.get("/activity/{activity_id}", response_model=list[PhotoResponse])
async def list_photos(
    activity_id: int,
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> list[PhotoResponse]:
    rows = await photo_service.list_photos(session, user, activity_id)
    return [PhotoResponse.model_validate(p) for p in rows]


@router.post("/{activity_id}", response_model=PhotoResponse)
async def upload_photo(
    activity_id: int,
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    storage: Annotated[BlobStorage, Depends(get_blob_storage)],
    photo: Annotated[UploadFile, File(description="Image file")],
    caption: Annotated[str | None, Form()] = None,
) -> PhotoResponse:
    data = await photo.read()
    created = await photo_service.add_photo(
        session,
        user,
        activity_id,
        data,
        filename=photo.filename,
        content_type=photo.content_type,
        caption=caption,
        storage=storage,
    )
    return PhotoResponse.model_validate(created)


@router.delete("/{photo_id}")
async def delete_photo(
    photo_id: int,
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    storage: Annotated[BlobStorage, Depends(get_blob_storage)],
) -> dict:
    await photo_service.delete_photo(session, user, photo_id, storage=storage)
    return {"message": "Photo deleted successfully from application"}


@router.put("/{photo_id}/primary", response_model=PhotoResponse)
async def set_primary_photo(
    photo_id: int,
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> PhotoResponse:
    photo = await photo_service.set_primary(session, user, photo_id)
    return PhotoResponse.model_validate(photo)
