"""API tests for photo upload (local + Strava mirror), delete and primary selection."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from conftest import JPEG_BYTES, add_activity, add_photo, link_strava
from strava_mirror.config import settings
from strava_mirror.core.errors import RemoteError
from strava_mirror.db.session import async_session_maker
from strava_mirror.models.photo import STRAVA_ID_DERIVED, Photo
from strava_mirror.models.user import User
from strava_mirror.services.storage import get_storage
from strava_mirror.services.strava_client import RemotePhoto


def _upload(client, activity_id, headers, data=JPEG_BYTES, content_type="image/jpeg", caption=None):
    form = {"caption": caption} if caption else None
    return client.post(
        f"/api/v1/photos/{activity_id}",
        files={"photo": ("ride.jpg", data, content_type)},
        data=form,
        headers=headers,
    )


async def _primary_ids(activity_id: int) -> list[int]:
    async with async_session_maker() as session:
        r = await session.execute(select(Photo.id).where(Photo.activity_id == activity_id, Photo.is_primary.is_(True)))
        return list(r.scalars().all())


@pytest.mark.asyncio
async def test_upload_to_mock_activity_is_local_only(client, auth_headers, test_user):
    await link_strava(test_user.id)
    activity_id = await add_activity(test_user.id, settings.mock_id_base, is_mock=True)
    with patch("strava_mirror.services.strava_client.upload_photo", new_callable=AsyncMock) as remote:
        response = await _upload(client, activity_id, auth_headers, caption="summit")
    assert response.status_code == 200
    body = response.json()
    assert body["url"].startswith(settings.uploads_url_prefix)
    assert body["caption"] == "summit"
    assert body["strava_id"] is None
    assert body["is_primary"] is False
    assert await get_storage().exists(body["url"])
    remote.assert_not_awaited()


@pytest.mark.asyncio
async def test_upload_keeps_local_copy_when_strava_fails(client, auth_headers, test_user):
    await link_strava(test_user.id)
    activity_id = await add_activity(test_user.id, 1001)
    with patch(
        "strava_mirror.services.strava_client.upload_photo",
        new_callable=AsyncMock,
        side_effect=RemoteError(500, "nope"),
    ):
        response = await _upload(client, activity_id, auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["url"].startswith(settings.uploads_url_prefix)
    assert body["strava_id"] is None
    assert await get_storage().exists(body["url"])


@pytest.mark.asyncio
async def test_upload_prefers_strava_url_and_id(client, auth_headers, test_user):
    await link_strava(test_user.id, access_token="tok")
    activity_id = await add_activity(test_user.id, 1002)
    with patch(
        "strava_mirror.services.strava_client.upload_photo",
        new_callable=AsyncMock,
        return_value=RemotePhoto(id=555, url="https://cdn.strava.example/555.jpg"),
    ) as remote:
        response = await _upload(client, activity_id, auth_headers)
    body = response.json()
    assert body["url"] == "https://cdn.strava.example/555.jpg"
    assert body["strava_id"] == "555"
    assert body["strava_id_source"] == "remote"
    assert remote.await_args.args[:2] == ("tok", 1002)


@pytest.mark.asyncio
async def test_upload_with_strava_url_removes_local_copy(client, auth_headers, test_user):
    await link_strava(test_user.id)
    activity_id = await add_activity(test_user.id, 1004)
    root = get_storage().root
    before = set(root.iterdir()) if root.exists() else set()
    with patch(
        "strava_mirror.services.strava_client.upload_photo",
        new_callable=AsyncMock,
        return_value=RemotePhoto(id=556, url="https://cdn.strava.example/556.jpg"),
    ):
        response = await _upload(client, activity_id, auth_headers)
    assert response.json()["url"] == "https://cdn.strava.example/556.jpg"
    after = set(root.iterdir()) if root.exists() else set()
    assert after == before


@pytest.mark.asyncio
async def test_upload_without_link_stays_local(client, auth_headers, test_user):
    activity_id = await add_activity(test_user.id, 1003)
    with patch("strava_mirror.services.strava_client.upload_photo", new_callable=AsyncMock) as remote:
        response = await _upload(client, activity_id, auth_headers)
    assert response.status_code == 200
    remote.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "data,content_type",
    [
        (JPEG_BYTES, "application/pdf"),
        (b"", "image/jpeg"),
        (b"definitely not an image", "image/png"),
    ],
)
async def test_invalid_upload_rejected(client, auth_headers, test_user, data, content_type):
    activity_id = await add_activity(test_user.id, 1004)
    response = await _upload(client, activity_id, auth_headers, data=data, content_type=content_type)
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_upload"


@pytest.mark.asyncio
async def test_upload_too_large_rejected(client, auth_headers, test_user, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_bytes", 10)
    activity_id = await add_activity(test_user.id, 1005)
    response = await _upload(client, activity_id, auth_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_photos_primary_first(client, auth_headers, test_user):
    activity_id = await add_activity(test_user.id, 1006)
    first = await add_photo(activity_id)
    primary = await add_photo(activity_id, is_primary=True)
    response = await client.get(f"/api/v1/photos/activity/{activity_id}", headers=auth_headers)
    assert [p["id"] for p in response.json()] == [primary, first]


@pytest.mark.asyncio
async def test_delete_removes_row_and_local_file(client, auth_headers, test_user):
    activity_id = await add_activity(test_user.id, settings.mock_id_base, is_mock=True)
    body = (await _upload(client, activity_id, auth_headers)).json()
    assert await get_storage().exists(body["url"])

    response = await client.delete(f"/api/v1/photos/{body['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert not await get_storage().exists(body["url"])
    async with async_session_maker() as session:
        assert await session.get(Photo, body["id"]) is None


@pytest.mark.asyncio
async def test_set_primary_keeps_exactly_one(client, auth_headers, test_user):
    activity_id = await add_activity(test_user.id, settings.mock_id_base, is_mock=True)
    a = await add_photo(activity_id, is_primary=True)
    b = await add_photo(activity_id)
    c = await add_photo(activity_id)

    for target in (b, c, a, a, b):
        response = await client.put(f"/api/v1/photos/{target}/primary", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["is_primary"] is True
        assert await _primary_ids(activity_id) == [target]


@pytest.mark.asyncio
async def test_set_primary_calls_strava_for_remote_ids_only(client, auth_headers, test_user):
    await link_strava(test_user.id, access_token="tok")
    activity_id = await add_activity(test_user.id, 1007)
    remote_photo = await add_photo(activity_id, strava_id=8001)
    derived_photo = await add_photo(activity_id, strava_id=100712345678)
    async with async_session_maker() as session:
        row = await session.get(Photo, derived_photo)
        row.strava_id_source = STRAVA_ID_DERIVED
        await session.commit()

    with patch("strava_mirror.services.strava_client.set_primary_photo", new_callable=AsyncMock) as remote:
        await client.put(f"/api/v1/photos/{remote_photo}/primary", headers=auth_headers)
        remote.assert_awaited_once_with("tok", 1007, 8001)
        remote.reset_mock()
        response = await client.put(f"/api/v1/photos/{derived_photo}/primary", headers=auth_headers)
        remote.assert_not_awaited()
    assert response.status_code == 200
    assert await _primary_ids(activity_id) == [derived_photo]


@pytest.mark.asyncio
async def test_set_primary_survives_strava_failure(client, auth_headers, test_user):
    await link_strava(test_user.id)
    activity_id = await add_activity(test_user.id, 1008)
    photo_id = await add_photo(activity_id, strava_id=9001)
    with patch(
        "strava_mirror.services.strava_client.set_primary_photo",
        new_callable=AsyncMock,
        side_effect=RemoteError(404, "gone"),
    ):
        response = await client.put(f"/api/v1/photos/{photo_id}/primary", headers=auth_headers)
    assert response.status_code == 200
    assert await _primary_ids(activity_id) == [photo_id]


@pytest.mark.asyncio
async def test_other_users_photos_are_forbidden(client, auth_headers):
    async with async_session_maker() as session:
        other = User(subject="uid-other")
        session.add(other)
        await session.commit()
        other_id = other.id
    activity_id = await add_activity(other_id, 1009)
    photo_id = await add_photo(activity_id)

    assert (await client.get(f"/api/v1/photos/activity/{activity_id}", headers=auth_headers)).status_code == 403
    assert (await _upload(client, activity_id, auth_headers)).status_code == 403
    assert (await client.delete(f"/api/v1/photos/{photo_id}", headers=auth_headers)).status_code == 403
    assert (await client.put(f"/api/v1/photos/{photo_id}/primary", headers=auth_headers)).status_code == 403
    assert (await client.delete("/api/v1/photos/999999", headers=auth_headers)).status_code == 404
