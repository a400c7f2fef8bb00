"""Pytest configuration and shared fixtures for API and service tests."""

import os
import tempfile
import time
import uuid
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt

# Test DB, uploads dir and secrets must be set before app imports so config/engine use them
_TMP = tempfile.mkdtemp(prefix="strava-mirror-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(_TMP, 'test.db')}")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TMP, "uploads"))
os.environ.setdefault("PUBLIC_BASE_URL", "http://test")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENCRYPTION_KEY", "A" * 43 + "=")
os.environ.setdefault("STRAVA_CLIENT_ID", "12345")
os.environ.setdefault("STRAVA_CLIENT_SECRET", "client-secret")
os.environ.setdefault("STRAVA_REDIRECT_URI", "http://test/api/v1/strava/callback")

from strava_mirror.config import settings
from strava_mirror.db.base import Base
from strava_mirror.db.session import async_session_maker, engine, init_db
from strava_mirror.main import app, limiter
from strava_mirror.models.activity import Activity
from strava_mirror.models.photo import Photo
from strava_mirror.models.user import User
from strava_mirror.services.credentials import save_credential

pytest_plugins = ["pytest_asyncio"]

limiter.enabled = False

JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00\xff\xd9"


def make_identity_token(subject: str, email: str | None = None, expires_in: int = 3600) -> str:
    payload = {"sub": subject, "exp": int(time.time()) + expires_in}
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.secret_key, algorithm="HS256")


async def _wipe_all():
    """Delete all rows in reverse dependency order so tests start clean."""
    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(table.delete())


@pytest_asyncio.fixture
async def clean_db():
    await init_db()
    await _wipe_all()
    yield


@pytest_asyncio.fixture
async def client(clean_db):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def session(clean_db):
    async with async_session_maker() as s:
        yield s


@pytest_asyncio.fixture
async def test_user(clean_db) -> User:
    """A committed user (subject uid-test)."""
    async with async_session_maker() as s:
        user = User(subject="uid-test", email="test@test.com")
        s.add(user)
        await s.commit()
        await s.refresh(user)
        return user


@pytest.fixture
def auth_headers(test_user) -> dict:
    return {"Authorization": f"Bearer {make_identity_token(test_user.subject, test_user.email)}"}


async def link_strava(user_id: int, expires_at: int | None = None, access_token: str = "access-1", refresh_token: str = "refresh-1"):
    """Give user a Strava credential (valid for an hour unless expires_at is given)."""
    async with async_session_maker() as s:
        user = await s.get(User, user_id)
        await save_credential(
            s,
            user,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at if expires_at is not None else int(time.time()) + 3600,
        )
        await s.commit()


async def add_activity(user_id: int, strava_id: int, is_mock: bool = False, **fields) -> int:
    values = {
        "name": f"Activity {strava_id}",
        "type": "Run",
        "distance_m": 5000.0,
        "moving_time_sec": 1500,
        "start_date": datetime(2026, 10, 1, 7, 30, tzinfo=timezone.utc),
        "calories": 300,
    }
    values.update(fields)
    async with async_session_maker() as s:
        activity = Activity(user_id=user_id, strava_id=strava_id, is_mock=is_mock, **values)
        s.add(activity)
        await s.commit()
        return activity.id


async def add_photo(activity_id: int, url: str | None = None, is_primary: bool = False, strava_id: int | None = None) -> int:
    async with async_session_maker() as s:
        photo = Photo(
            activity_id=activity_id,
            url=url or f"https://photos.example/{uuid.uuid4().hex}.jpg",
            is_primary=is_primary,
            strava_id=strava_id,
            strava_id_source="remote" if strava_id is not None else None,
        )
        s.add(photo)
        await s.commit()
        return photo.id
