"""Unit tests for Strava payload normalization (no DB, no network)."""

from datetime import datetime, timezone

from strava_mirror.services.strava_mapper import (
    derive_surrogate_id,
    exertion_to_label,
    extract_detail_photos,
    extract_listed_photo,
    normalize_activity,
    pick_photo_url,
)


def test_exertion_to_label_buckets():
    assert exertion_to_label(1) == "Easy"
    assert exertion_to_label(2) == "Easy"
    assert exertion_to_label(3) == "Moderate"
    assert exertion_to_label(4.0) == "Moderate"
    assert exertion_to_label(5) == "Max Effort"
    assert exertion_to_label(10) == "Max Effort"


def test_exertion_to_label_missing_values():
    assert exertion_to_label(None) is None
    assert exertion_to_label(0) is None
    assert exertion_to_label("hard") is None
    assert exertion_to_label(True) is None


def test_normalize_activity_defaults_and_mock_flag():
    values = normalize_activity({"id": 123, "name": "Lunch Run", "type": "Run", "start_date": "2026-10-01T07:30:00Z"})
    assert values["strava_id"] == 123
    assert values["start_date"] == datetime(2026, 10, 1, 7, 30, tzinfo=timezone.utc)
    assert values["description"] is None
    assert values["private_notes"] is None
    assert values["perceived_exertion"] is None
    assert values["is_commute"] is False
    assert values["is_indoor"] is False
    assert values["calories"] == 0
    assert values["is_mock"] is False


def test_normalize_activity_maps_fields():
    values = normalize_activity(
        {
            "id": 9,
            "start_date": "2026-10-02T18:00:00Z",
            "distance": 21097.5,
            "moving_time": 6000,
            "private_note": "felt strong",
            "perceived_exertion": 5,
            "commute": True,
            "trainer": True,
            "calories": 1450.7,
        }
    )
    assert values["distance_m"] == 21097.5
    assert values["moving_time_sec"] == 6000
    assert values["private_notes"] == "felt strong"
    assert values["perceived_exertion"] == "Max Effort"
    assert values["is_commute"] is True
    assert values["is_indoor"] is True
    assert values["calories"] == 1450


def test_normalize_activity_without_id_or_date():
    assert normalize_activity({"name": "no id", "start_date": "2026-10-01T07:30:00Z"}) is None
    assert normalize_activity({"id": 1}) is None


def test_pick_photo_url_prefers_600():
    assert pick_photo_url({"100": "small", "600": "big"}) == "big"
    assert pick_photo_url({"100": "small"}) == "small"
    assert pick_photo_url({}) is None
    assert pick_photo_url(None) is None


def test_extract_detail_photos_primary_first_and_skips_incomplete():
    detail = {
        "photos": {
            "count": 3,
            "primary": {"id": 11, "urls": {"600": "https://p/11.jpg"}, "caption": "summit"},
            "additional": [
                {"id": 12, "urls": {"600": "https://p/12.jpg"}},
                {"id": 13},
                {"urls": {"600": "https://p/14.jpg"}},
            ],
        }
    }
    photos = extract_detail_photos(detail)
    assert [p.strava_id for p in photos] == [11, 12]
    assert photos[0].is_primary is True
    assert photos[0].caption == "summit"
    assert photos[1].is_primary is False


def test_extract_detail_photos_no_photos():
    assert extract_detail_photos({}) == []
    assert extract_detail_photos({"photos": {"count": 0, "primary": None}}) == []


def test_derive_surrogate_id_uses_activity_and_unique_id_digits():
    assert derive_surrogate_id(42, "a1b2-c3d4-e5f6-7890") == int("42" + "12345678")
    assert derive_surrogate_id(42, "no-digits") is None


def test_extract_listed_photo_numeric_id_is_remote():
    c = extract_listed_photo({"id": 77, "urls": {"600": "https://p/77.jpg"}, "primary": True}, 42)
    assert c.strava_id == 77
    assert c.strava_id_source == "remote"
    assert c.is_primary is True


def test_extract_listed_photo_unique_id_is_derived_with_fallback_url():
    c = extract_listed_photo({"unique_id": "9f8e7d6c-1234", "activity_id": 42}, 42)
    assert c.strava_id == int("42" + "98761234")
    assert c.strava_id_source == "derived"
    assert c.url == "https://dgalywyr863hv.cloudfront.net/pictures/activities/42/photos/9f8e7d6c-1234/large.jpg"
    assert c.is_primary is False


def test_extract_listed_photo_without_any_id():
    assert extract_listed_photo({"urls": {"600": "https://p/x.jpg"}}, 42) is None
