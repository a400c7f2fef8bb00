"""Pydantic schemas for activity API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

ExertionLabel = Literal["Easy", "Moderate", "Max Effort"]


class ActivityUpdate(BaseModel):
    """Body for editing an activity. Only fields present in the body are changed."""

    name: str | None = Field(None, max_length=512)
    description: str | None = None
    perceived_exertion: ExertionLabel | None = None
    private_notes: str | None = None
    is_commute: bool | None = None
    is_indoor: bool | None = None

    @field_validator("is_commute", "is_indoor", mode="before")
    @classmethod
    def flags_not_null(cls, value):
        # Omit the field to leave a flag unchanged; the columns are NOT NULL
        if value is None:
            raise ValueError("must be true or false")
        return value


class MockCreate(BaseModel):
    count: int = Field(10, ge=1, le=100)


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    strava_id: int
    name: str | None
    type: str | None
    distance_m: float | None
    moving_time_sec: int | None
    start_date: datetime
    description: str | None
    private_notes: str | None
    perceived_exertion: str | None
    is_commute: bool
    is_indoor: bool
    calories: int
    is_mock: bool
    updated_at: datetime | None

    @field_serializer("strava_id")
    def serialize_strava_id(self, value: int) -> str:
        # Strava ids exceed JavaScript's safe integer range
        return str(value)


class SyncResult(BaseModel):
    message: str
    count: int


class DeleteResult(BaseModel):
    message: str
    count: int


class MockResult(BaseModel):
    message: str
    activities: list[ActivityResponse]
