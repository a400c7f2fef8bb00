"""Pydantic schemas for photo API."""

from pydantic import BaseModel, ConfigDict, field_serializer


class PhotoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    activity_id: int
    strava_id: int | None
    strava_id_source: str | None
    url: str
    caption: str | None
    is_primary: bool

    @field_serializer("strava_id")
    def serialize_strava_id(self, value: int | None) -> str | None:
        return str(value) if value is not None else None
