from datetime import datetime
from sqlalchemy import BigInteger, Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from strava_mirror.db.base import Base

EXERTION_LABELS = ("Easy", "Moderate", "Max Effort")


class Activity(Base):
    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Unique across the whole store, not per user
    strava_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    type: Mapped[str | None] = mapped_column(String(64), nullable=True)  # Run, Ride, Swim, ...
    distance_m: Mapped[float | None] = mapped_column(Float, nullable=True)
    moving_time_sec: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    private_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    perceived_exertion: Mapped[str | None] = mapped_column(String(16), nullable=True)  # one of EXERTION_LABELS
    is_commute: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_indoor: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    calories: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_mock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    user: Mapped["User"] = relationship("User", back_populates="activities")
    photos: Mapped[list["Photo"]] = relationship(
        "Photo",
        back_populates="activity",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Photo.id",
    )
