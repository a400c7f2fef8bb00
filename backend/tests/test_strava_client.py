"""Tests for the Strava HTTP client against httpx.MockTransport."""

import json

import httpx
import pytest
import pytest_asyncio

from strava_mirror.core.errors import RefreshFailed, RemoteError
from strava_mirror.services import strava_client
from strava_mirror.services.http_client import close_http_client, init_http_client


class Recorder:
    """MockTransport handler returning queued responses and remembering requests."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


@pytest_asyncio.fixture
async def strava():
    recorder = Recorder()
    await close_http_client()
    init_http_client(transport=httpx.MockTransport(recorder))
    yield recorder
    await close_http_client()


@pytest.mark.asyncio
async def test_list_activities_sends_bearer_and_page_size(strava):
    strava.responses.append(httpx.Response(200, json=[{"id": 1}, {"id": 2}]))
    result = await strava_client.list_activities("tok", per_page=30)
    assert result == [{"id": 1}, {"id": 2}]
    req = strava.requests[0]
    assert req.url.path == "/api/v3/athlete/activities"
    assert req.url.params["per_page"] == "30"
    assert req.headers["Authorization"] == "Bearer tok"


@pytest.mark.asyncio
async def test_non_2xx_raises_remote_error_with_status_and_body(strava):
    strava.responses.append(httpx.Response(404, text='{"message":"Record Not Found"}'))
    with pytest.raises(RemoteError) as exc:
        await strava_client.get_activity_detail("tok", 99)
    assert exc.value.status == 404
    assert "Record Not Found" in exc.value.body


@pytest.mark.asyncio
async def test_transport_error_raises_remote_error_without_status():
    def boom(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    await close_http_client()
    init_http_client(transport=httpx.MockTransport(boom))
    try:
        with pytest.raises(RemoteError) as exc:
            await strava_client.list_activities("tok")
        assert exc.value.status is None
    finally:
        await close_http_client()


@pytest.mark.asyncio
async def test_update_activity_translates_fields(strava):
    strava.responses.append(httpx.Response(200, json={"id": 5}))
    await strava_client.update_activity(
        "tok",
        5,
        {
            "name": "Evening Ride",
            "description": None,
            "perceived_exertion": "Moderate",
            "private_notes": "legs tired",
            "is_commute": True,
            "is_indoor": False,
        },
        activity_type="Ride",
    )
    req = strava.requests[0]
    assert req.method == "PUT"
    assert req.url.path == "/api/v3/activities/5"
    body = json.loads(req.content)
    assert body == {
        "type": "Ride",
        "name": "Evening Ride",
        "description": "",
        "perceived_exertion": 3,
        "private_note": "legs tired",
        "commute": True,
        "trainer": False,
    }


def test_exertion_to_number():
    assert strava_client.exertion_to_number("Easy") == 1
    assert strava_client.exertion_to_number("Moderate") == 3
    assert strava_client.exertion_to_number("Max Effort") == 5
    assert strava_client.exertion_to_number(None) is None
    assert strava_client.exertion_to_number("Extreme") is None


@pytest.mark.asyncio
async def test_refresh_failure_raises_refresh_failed(strava):
    strava.responses.append(httpx.Response(400, json={"message": "Bad Request"}))
    with pytest.raises(RefreshFailed):
        await strava_client.refresh_access_token("stale")
    body = strava.requests[0].content.decode()
    assert "grant_type=refresh_token" in body


@pytest.mark.asyncio
async def test_upload_photo_returns_remote_id_and_url(strava):
    strava.responses.append(httpx.Response(201, json={"id": 555, "urls": {"600": "https://p/555.jpg"}}))
    remote = await strava_client.upload_photo("tok", 5, "a.jpg", b"\xff\xd8\xff", "image/jpeg")
    assert remote.id == 555
    assert remote.url == "https://p/555.jpg"
    assert strava.requests[0].url.path == "/api/v3/activities/5/photos"


@pytest.mark.asyncio
async def test_set_primary_photo(strava):
    strava.responses.append(httpx.Response(200, json={}))
    await strava_client.set_primary_photo("tok", 5, 555)
    req = strava.requests[0]
    assert req.method == "PUT"
    assert req.url.path == "/api/v3/activities/5/photos/555"
    assert json.loads(req.content) == {"primary": True}
