from datetime import datetime
from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from strava_mirror.db.base import Base

# Provenance of Photo.strava_id
STRAVA_ID_REMOTE = "remote"  # numeric id returned by Strava
STRAVA_ID_DERIVED = "derived"  # surrogate built from unique_id digits; not a real Strava id


class Photo(Base):
    __tablename__ = "photos"
    __table_args__ = (
        # At most one primary photo per activity
        Index(
            "uq_photos_activity_primary",
            "activity_id",
            unique=True,
            postgresql_where=text("is_primary"),
            sqlite_where=text("is_primary = 1"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    activity_id: Mapped[int] = mapped_column(ForeignKey("activities.id", ondelete="CASCADE"), nullable=False, index=True)
    strava_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    strava_id_source: Mapped[str | None] = mapped_column(String(16), nullable=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    activity: Mapped["Activity"] = relationship("Activity", back_populates="photos")
