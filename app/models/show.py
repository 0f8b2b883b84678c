from sqlalchemy import String, Integer, DateTime, JSON, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone, date, time
from zoneinfo import ZoneInfo
from app.db.session import Base

JSONDoc = JSON().with_variant(JSONB(), "postgresql")

class Show(Base):
    __tablename__ = "shows"
    __table_args__ = (
        UniqueConstraint("theatre_id", "screen_number", "date_str", "start", name="uq_show_screen_date_start"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    movie_id: Mapped[int] = mapped_column(Integer, index=True)  # external catalog (TMDB) id
    theatre_id: Mapped[str] = mapped_column(String(36), index=True)
    screen_number: Mapped[int] = mapped_column(Integer)

    date_str: Mapped[str] = mapped_column(String(10), index=True)  # YYYY-MM-DD
    start: Mapped[str] = mapped_column(String(5))  # HH:MM, local to SHOW_TIMEZONE
    language: Mapped[str] = mapped_column(String(40), nullable=True)
    format: Mapped[str] = mapped_column(String(4), default="2D")  # 2D|3D

    price_map: Mapped[dict] = mapped_column(JSONDoc, default=dict)      # {"A": 200, "B": 250}
    booked_seats: Mapped[list] = mapped_column(JSONDoc, default=list)   # ["A1", "A2"]
    locked_seats: Mapped[list] = mapped_column(JSONDoc, default=list)   # [{"seatId", "userId", "lockedAt"}]

    # Bumped on every flush; a write based on a stale read raises StaleDataError.
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __mapper_args__ = {"version_id_col": version}

    def starts_at(self, tz_name: str) -> datetime:
        d = date.fromisoformat(self.date_str)
        hh, mm = map(int, self.start.split(":"))
        return datetime.combine(d, time(hh, mm), tzinfo=ZoneInfo(tz_name))
