"""
Photo dual-write: every upload lands in our blob storage first (mandatory),
then is mirrored to Strava on a best-effort basis for remote-backed activities.
When Strava hands back its own URL the row points there and the local copy is removed.
Strava has no photo delete API, so deletes are local only.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from strava_mirror.config import settings
from strava_mirror.core.errors import Forbidden, InvalidUpload, NotConnected, NotFound, RefreshFailed, RemoteError
from strava_mirror.core.metrics import REMOTE_MIRROR_FAILURES
from strava_mirror.models.activity import Activity
from strava_mirror.models.photo import STRAVA_ID_REMOTE, Photo
from strava_mirror.models.user import User
from strava_mirror.services import strava_client
from strava_mirror.services.activities import get_owned_activity
from strava_mirror.services.credentials import has_credential
from strava_mirror.services.storage import BlobStorage, get_storage
from strava_mirror.services.token_refresher import ensure_valid_token

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/bmp", "image/webp"}


def validate_image(data: bytes, content_type: str | None) -> None:
    if not content_type or content_type not in ALLOWED_CONTENT_TYPES:
        raise InvalidUpload(f"Only image files are allowed. Received: {content_type}")
    if len(data) == 0:
        raise InvalidUpload("File is empty or invalid.")
    if len(data) > settings.max_upload_bytes:
        raise InvalidUpload(f"Image too large (max {settings.max_upload_bytes // (1024 * 1024)}MB)")
    magic = data[:12]
    if not (
        magic.startswith(b"\xff\xd8\xff")
        or magic.startswith(b"\x89PNG\r\n\x1a\n")
        or magic.startswith(b"GIF87a")
        or magic.startswith(b"GIF89a")
        or magic.startswith(b"BM")
        or (magic[:4] == b"RIFF" and magic[8:12] == b"WEBP")
    ):
        raise InvalidUpload("File must be a valid image (JPEG, PNG, GIF, BMP or WebP).")


async def _discard_blob(storage: BlobStorage, url: str) -> None:
    try:
        await storage.delete(url)
    except OSError as e:
        logger.error("Deleting stored file %s failed: %s", url, e)


async def list_photos(session: AsyncSession, user: User, activity_id: int) -> list[Photo]:
    await get_owned_activity(session, user, activity_id)
    r = await session.execute(
        select(Photo).where(Photo.activity_id == activity_id).order_by(Photo.is_primary.desc(), Photo.id)
    )
    return list(r.scalars().all())


async def _get_owned_photo(session: AsyncSession, user: User, photo_id: int) -> tuple[Photo, Activity]:
    r = await session.execute(
        select(Photo, Activity).join(Activity, Photo.activity_id == Activity.id).where(Photo.id == photo_id)
    )
    row = r.first()
    if row is None:
        raise NotFound("Photo not found")
    photo, activity = row
    if activity.user_id != user.id:
        raise Forbidden("You don't have permission to modify this photo")
    return photo, activity


async def add_photo(
    session: AsyncSession,
    user: User,
    activity_id: int,
    data: bytes,
    filename: str | None,
    content_type: str | None,
    caption: str | None = None,
    storage: BlobStorage | None = None,
) -> Photo:
    activity = await get_owned_activity(session, user, activity_id)
    validate_image(data, content_type)
    storage = storage or get_storage()

    # 1. Durable local copy; StorageWriteFailed aborts everything
    url = await storage.put(data, filename, content_type)
    strava_photo_id = None

    # 2. Best-effort mirror to Strava
    if not activity.is_mock and await has_credential(session, user):
        try:
            access_token = await ensure_valid_token(session, user)
            remote = await strava_client.upload_photo(
                access_token, activity.strava_id, filename or "photo.jpg", data, content_type or "image/jpeg"
            )
            strava_photo_id = remote.id
            logger.info("Photo mirrored to Strava activity %s as %s", activity.strava_id, remote.id)
        except (RemoteError, RefreshFailed, NotConnected) as e:
            REMOTE_MIRROR_FAILURES.labels(operation="upload_photo").inc()
            logger.warning("Uploading photo to Strava activity %s failed; keeping local copy: %s", activity.strava_id, e)
        else:
            if remote.url:
                # The row points at Strava from now on; nothing references the local copy
                local_url, url = url, remote.url
                await _discard_blob(storage, local_url)

    # 3. New uploads are never primary
    photo = Photo(
        activity_id=activity.id,
        strava_id=strava_photo_id,
        strava_id_source=STRAVA_ID_REMOTE if strava_photo_id is not None else None,
        url=url,
        caption=caption or None,
        is_primary=False,
    )
    session.add(photo)
    await session.flush()
    return photo


async def delete_photo(session: AsyncSession, user: User, photo_id: int, storage: BlobStorage | None = None) -> None:
    photo, activity = await _get_owned_photo(session, user, photo_id)
    storage = storage or get_storage()
    if not activity.is_mock and photo.strava_id is not None:
        logger.info(
            "Photo %s stays on Strava (no delete API); removing it from the application only",
            photo.strava_id,
        )
    if storage.owns(photo.url):
        # The row still goes; an orphaned file is harmless
        await _discard_blob(storage, photo.url)
    await session.delete(photo)
    await session.flush()


async def set_primary(session: AsyncSession, user: User, photo_id: int) -> Photo:
    """Make photo the activity's only primary photo (Strava updated best-effort first)."""
    photo, activity = await _get_owned_photo(session, user, photo_id)

    if not activity.is_mock and photo.strava_id is not None and photo.strava_id_source == STRAVA_ID_REMOTE:
        try:
            access_token = await ensure_valid_token(session, user)
            await strava_client.set_primary_photo(access_token, activity.strava_id, photo.strava_id)
        except (RemoteError, RefreshFailed, NotConnected) as e:
            REMOTE_MIRROR_FAILURES.labels(operation="set_primary_photo").inc()
            logger.warning("Setting primary photo on Strava failed for activity %s: %s", activity.strava_id, e)

    async with session.begin_nested():
        # Row lock on the parent serializes concurrent swaps on the same activity (no-op on SQLite)
        await session.execute(select(Activity.id).where(Activity.id == activity.id).with_for_update())
        await session.execute(
            update(Photo)
            .where(Photo.activity_id == activity.id, Photo.is_primary.is_(True), Photo.id != photo.id)
            .values(is_primary=False)
        )
        await session.execute(update(Photo).where(Photo.id == photo.id).values(is_primary=True))
    await session.refresh(photo)
    return photo
